"""CraftRec: product recommendations for a handcrafted-goods storefront.

This package ranks catalog products against the product a visitor is viewing,
blended with a per-visitor preference profile learned from browsing.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: Scoring, ranking, preference tracking and catalog access
"""

__version__ = "0.1.0"
