"""Route modules for the CraftRec API."""
