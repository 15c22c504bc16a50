"""FastAPI application module for CraftRec.

This module contains the FastAPI application, route handlers, and API
endpoints that expose recommendations and preference tracking to the
storefront.
"""
