"""Recommendation module for CraftRec.

This module contains the component scorers, the primary and fallback
ranking strategies, the visitor preference store, and the catalog clients
that feed them.
"""
