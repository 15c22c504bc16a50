"""Recommendation endpoints for the CraftRec API.

This module exposes product recommendations and visitor preference tracking
to the storefront. Visitors are identified by the ``X-Visitor-ID`` header;
each visitor has its own preference profile.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from starlette.concurrency import run_in_threadpool

from src.api.exceptions import (
    CatalogUnavailableError,
    InvalidLimitError,
    ProductNotFoundError,
)
from src.api.metrics import metrics_service
from src.config import Settings, get_settings
from src.recommender.catalog import (
    CatalogClient,
    CatalogError,
    InMemoryCatalog,
    create_supabase_catalog,
)
from src.recommender.engine import RecommendationEngine
from src.recommender.models import Product, ScoredCandidate
from src.recommender.preferences import (
    DEFAULT_STORAGE_KEY,
    FileStorage,
    InMemoryStorage,
    PreferenceStorage,
    PreferenceStore,
)
from src.recommender.scoring import price_bracket

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)

preferences_router = APIRouter(
    prefix="/preferences",
    tags=["preferences"],
)

ANONYMOUS_VISITOR = "anonymous"

# Process-wide caches, cleared by reset_caches()
_catalog_cache: Optional[CatalogClient] = None
_storage_cache: Optional[PreferenceStorage] = None
# Least recently used visitor first; bounded by settings.visitor_cache_size
_preference_stores: "OrderedDict[str, PreferenceStore]" = OrderedDict()
_preference_stores_lock = threading.Lock()


class RecommendationItem(BaseModel):
    """One recommended product.

    Component scores are only filled in when ``explain=true``.
    """

    product_id: Union[int, str]
    name: str
    category: Optional[str] = None
    price: Optional[float] = None
    price_bracket: str
    image_urls: List[str] = Field(default_factory=list)
    recommendation_score: float
    is_fallback: bool = False
    category_score: Optional[float] = None
    price_score: Optional[float] = None
    popularity_score: Optional[float] = None
    preference_score: Optional[float] = None


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests."""

    product_id: Union[int, str] = Field(..., description="Reference product ID")
    visitor_id: str = Field(..., description="Visitor the results were ranked for")
    recommendations: List[RecommendationItem] = Field(
        ..., description="Recommended products, best first"
    )
    fallback: bool = Field(
        default=False, description="True when the newest-products fallback was used"
    )


class TrendingProduct(BaseModel):
    product_id: Union[int, str]
    name: str
    category: Optional[str] = None
    price: Optional[float] = None
    price_bracket: str
    ordered_quantity: int


def get_catalog(settings: Settings = Depends(get_settings)) -> CatalogClient:
    """Return the configured catalog client, creating it on first use."""
    global _catalog_cache

    if _catalog_cache is not None:
        return _catalog_cache

    try:
        if settings.catalog_backend == "supabase":
            if not settings.supabase_url or not settings.supabase_key:
                raise CatalogError("Supabase URL and key must be configured")
            logger.info("Connecting to Supabase catalog")
            _catalog_cache = create_supabase_catalog(
                settings.supabase_url,
                settings.supabase_key,
                table=settings.products_table,
            )
        elif settings.catalog_csv is not None:
            logger.info(f"Loading catalog from {settings.catalog_csv}")
            _catalog_cache = InMemoryCatalog.from_csv(settings.catalog_csv)
        else:
            logger.warning("No catalog configured, serving an empty catalog")
            _catalog_cache = InMemoryCatalog()
    except CatalogError as e:
        raise CatalogUnavailableError(e) from e

    return _catalog_cache


def get_preference_storage(settings: Settings = Depends(get_settings)) -> PreferenceStorage:
    global _storage_cache

    if _storage_cache is None:
        if settings.preferences_dir is not None:
            _storage_cache = FileStorage(settings.preferences_dir)
        else:
            _storage_cache = InMemoryStorage()
    return _storage_cache


def get_visitor_id(x_visitor_id: Optional[str] = Header(default=None)) -> str:
    return (x_visitor_id or "").strip() or ANONYMOUS_VISITOR


def get_preference_store(
    visitor_id: str, storage: PreferenceStorage, max_visitors: int
) -> PreferenceStore:
    """Return the visitor's store, loading it from storage when not cached.

    Evicted visitors lose nothing: their profile is reloaded from storage on
    the next request.
    """
    with _preference_stores_lock:
        store = _preference_stores.get(visitor_id)
        if store is not None:
            _preference_stores.move_to_end(visitor_id)
            return store

        store = PreferenceStore(storage, key=f"{DEFAULT_STORAGE_KEY}:{visitor_id}")
        _preference_stores[visitor_id] = store
        while len(_preference_stores) > max_visitors:
            evicted, _ = _preference_stores.popitem(last=False)
            logger.debug("Evicted cached visitor preferences", extra={"visitor_id": evicted})
        return store


def get_engine(
    visitor_id: str = Depends(get_visitor_id),
    catalog: CatalogClient = Depends(get_catalog),
    storage: PreferenceStorage = Depends(get_preference_storage),
    settings: Settings = Depends(get_settings),
) -> RecommendationEngine:
    """Build a recommendation engine bound to the visitor's preferences."""
    store = get_preference_store(visitor_id, storage, settings.visitor_cache_size)

    return RecommendationEngine(
        catalog=catalog,
        preferences=store,
        default_limit=settings.default_limit,
    )


def reset_caches() -> None:
    """Drop cached catalog, storage and visitor profiles."""
    global _catalog_cache, _storage_cache

    _catalog_cache = None
    _storage_cache = None
    with _preference_stores_lock:
        _preference_stores.clear()


def _validate_limit(limit: Optional[int], default: int, settings: Settings) -> int:
    if limit is None:
        return default
    if limit < 1 or limit > settings.max_limit:
        raise InvalidLimitError(limit, settings.max_limit)
    return limit


async def _fetch_product(catalog: CatalogClient, product_id: str) -> Product:
    try:
        product = await catalog.get_product(product_id)
    except CatalogError as e:
        raise CatalogUnavailableError(e) from e

    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def _to_item(candidate: ScoredCandidate, explain: bool) -> RecommendationItem:
    product = candidate.product
    item = RecommendationItem(
        product_id=product.id,
        name=product.name,
        category=product.category,
        price=product.price,
        price_bracket=price_bracket(product.price),
        image_urls=product.image_urls,
        recommendation_score=round(candidate.recommendation_score, 4),
        is_fallback=candidate.is_fallback,
    )
    if explain:
        item.category_score = candidate.category_score
        item.price_score = candidate.price_score
        item.popularity_score = candidate.popularity_score
        item.preference_score = candidate.preference_score
    return item


@router.get("/trending", response_model=List[TrendingProduct])
async def get_trending(
    limit: Optional[int] = None,
    engine: RecommendationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> List[TrendingProduct]:
    """Get the best-selling in-stock products.

    Example:
        GET /recommend/trending?limit=4
    """
    limit = _validate_limit(limit, settings.default_limit, settings)

    try:
        products = await engine.get_trending_products(limit)
    except CatalogError as e:
        raise CatalogUnavailableError(e) from e

    return [
        TrendingProduct(
            product_id=p.id,
            name=p.name,
            category=p.category,
            price=p.price,
            price_bracket=price_bracket(p.price),
            ordered_quantity=p.ordered_quantity,
        )
        for p in products
    ]


@router.get("/{product_id}", response_model=RecommendationResponse)
async def get_recommendations(
    product_id: str,
    limit: Optional[int] = None,
    explain: bool = False,
    visitor_id: str = Depends(get_visitor_id),
    engine: RecommendationEngine = Depends(get_engine),
    settings: Settings = Depends(get_settings),
) -> RecommendationResponse:
    """Get recommendations for the product a visitor is viewing.

    Viewing counts as a preference signal, so the visitor's profile is
    updated before ranking.

    Args:
        product_id: ID of the product being viewed.
        limit: Maximum results (default: the product page limit).
        explain: Include component scores in the response.

    Raises:
        ProductNotFoundError: If the product does not exist.
        CatalogUnavailableError: If the catalog cannot be queried.

    Example:
        GET /recommend/42?limit=4&explain=true
    """
    limit = _validate_limit(limit, settings.product_page_limit, settings)
    start_time = time.time()

    reference = await _fetch_product(engine.catalog, product_id)

    try:
        candidates = await engine.get_recommendations(reference, limit)
    except CatalogError as e:
        raise CatalogUnavailableError(e) from e

    fallback = bool(candidates) and candidates[0].is_fallback
    metrics_service.record_recommendation(
        latency_ms=(time.time() - start_time) * 1000,
        num_results=len(candidates),
        fallback=fallback,
    )

    return RecommendationResponse(
        product_id=reference.id,
        visitor_id=visitor_id,
        recommendations=[_to_item(c, explain) for c in candidates],
        fallback=fallback,
    )


@preferences_router.get("")
async def get_preferences(engine: RecommendationEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Return the visitor's preference profile."""
    return engine.preferences.profile.model_dump(mode="json", by_alias=True)


@preferences_router.post("/view/{product_id}")
async def record_view(
    product_id: str,
    engine: RecommendationEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Record that the visitor viewed a product, e.g. a recommendation click."""
    product = await _fetch_product(engine.catalog, product_id)
    await run_in_threadpool(engine.update_user_preferences, product)
    return engine.preferences.profile.model_dump(mode="json", by_alias=True)


@preferences_router.delete("")
async def reset_preferences(engine: RecommendationEngine = Depends(get_engine)) -> Dict[str, Any]:
    """Clear the visitor's preference profile."""
    await run_in_threadpool(engine.reset_user_preferences)
    return engine.preferences.profile.model_dump(mode="json", by_alias=True)
