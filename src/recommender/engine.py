"""Recommendation engine.

Ranks catalog products against a reference product. Two strategies share
one interface:

- ``PrimaryRanker`` scores every candidate, drops out-of-stock products and
  returns the best ``limit`` by composite score.
- ``FallbackRanker`` returns the newest in-stock products with placeholder
  scores. It is used only when the primary ranker finds nothing.

``RecommendationEngine`` ties them to a catalog client and a visitor's
preference store.
"""

import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from starlette.concurrency import run_in_threadpool

from src.recommender.catalog import CatalogClient, CatalogError
from src.recommender.models import PreferenceProfile, Product, ScoredCandidate
from src.recommender.preferences import PreferenceStore
from src.recommender.scoring import (
    category_score,
    composite_score,
    popularity_score,
    preference_score,
    price_score,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_LIMIT = 6
PRODUCT_PAGE_LIMIT = 8

# Placeholder scores attached to fallback results
FALLBACK_CATEGORY_SCORE = 0.3
FALLBACK_PRICE_SCORE = 0.5
FALLBACK_POPULARITY_SCORE = 0.2
FALLBACK_PREFERENCE_SCORE = 0.5
FALLBACK_RECOMMENDATION_SCORE = 0.5


def _check_limit(limit: int) -> None:
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")


class Ranker(ABC):
    """Strategy that turns candidate products into ranked recommendations."""

    @abstractmethod
    def rank(
        self,
        reference: Product,
        candidates: List[Product],
        profile: PreferenceProfile,
        limit: int,
        now: Optional[datetime] = None,
    ) -> List[ScoredCandidate]:
        """Rank ``candidates`` against ``reference``, returning at most ``limit``."""


class PrimaryRanker(Ranker):
    """Weighted multi-factor ranking."""

    def score(
        self,
        reference: Product,
        candidate: Product,
        profile: PreferenceProfile,
        now: Optional[datetime] = None,
    ) -> ScoredCandidate:
        category = category_score(reference.category, candidate.category)
        price = price_score(reference.price, candidate.price)
        popularity = popularity_score(candidate)
        preference = preference_score(candidate, profile, now=now)

        return ScoredCandidate(
            product=candidate,
            category_score=category,
            price_score=price,
            popularity_score=popularity,
            preference_score=preference,
            recommendation_score=composite_score(category, price, popularity, preference),
        )

    def rank(
        self,
        reference: Product,
        candidates: List[Product],
        profile: PreferenceProfile,
        limit: int,
        now: Optional[datetime] = None,
    ) -> List[ScoredCandidate]:
        _check_limit(limit)

        scored = [
            self.score(reference, candidate, profile, now=now)
            for candidate in candidates
            if candidate.id != reference.id
        ]
        eligible = [c for c in scored if c.product.in_stock]

        # Stable: equal scores keep catalog order
        eligible.sort(key=lambda c: c.recommendation_score, reverse=True)

        return eligible[:limit]


class FallbackRanker(Ranker):
    """Newest in-stock products, used when nothing else qualifies."""

    def rank(
        self,
        reference: Product,
        candidates: List[Product],
        profile: PreferenceProfile,
        limit: int,
        now: Optional[datetime] = None,
    ) -> List[ScoredCandidate]:
        _check_limit(limit)

        picked = [
            p for p in candidates if p.id != reference.id and p.in_stock
        ][:limit]

        # With only two products, skip the one the visitor just looked at
        if len(picked) == 2:
            recent_ids = set(profile.recently_viewed_ids)
            seen = [p for p in picked if p.id in recent_ids]
            # Even if both were viewed, only the first one found is skipped
            others = [p for p in picked if seen and p.id != seen[0].id]
            if others:
                logger.info(
                    "Cross-recommending the other fallback product",
                    extra={"seen_id": seen[0].id, "recommended_id": others[0].id},
                )
                picked = others[:1]

        return [
            ScoredCandidate(
                product=product,
                category_score=FALLBACK_CATEGORY_SCORE,
                price_score=FALLBACK_PRICE_SCORE,
                popularity_score=FALLBACK_POPULARITY_SCORE,
                preference_score=FALLBACK_PREFERENCE_SCORE,
                recommendation_score=FALLBACK_RECOMMENDATION_SCORE,
                is_fallback=True,
            )
            for product in picked
        ]


class RecommendationEngine:
    """Recommendations for one visitor.

    Args:
        catalog: Catalog client used for candidates and fallback data.
        preferences: The visitor's preference store.
        primary: Ranking strategy for scored results.
        fallback: Strategy used when the primary ranking is empty.
        default_limit: Limit applied when callers pass none.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        preferences: PreferenceStore,
        primary: Optional[Ranker] = None,
        fallback: Optional[Ranker] = None,
        default_limit: int = DEFAULT_LIMIT,
    ):
        self.catalog = catalog
        self.preferences = preferences
        self.primary = primary or PrimaryRanker()
        self.fallback = fallback or FallbackRanker()
        self.default_limit = default_limit

    def update_user_preferences(self, product: Optional[Product]) -> None:
        self.preferences.update(product)

    def reset_user_preferences(self) -> None:
        self.preferences.reset()

    async def get_recommendations(
        self, reference: Product, limit: Optional[int] = None
    ) -> List[ScoredCandidate]:
        """Get recommendations for a viewed product.

        Viewing the product counts as a preference signal, so preferences are
        updated before scoring.

        Args:
            reference: Product being viewed.
            limit: Maximum number of results (default: ``default_limit``).

        Returns:
            Ranked candidates. Fallback results carry ``is_fallback=True``.
            An empty list means there is nothing to recommend.

        Raises:
            ValueError: If ``limit`` is not positive.
            CatalogError: If the catalog cannot be queried.
        """
        limit = self.default_limit if limit is None else limit
        _check_limit(limit)

        start_time = time.time()

        # Storage writes may block on disk
        await run_in_threadpool(self.update_user_preferences, reference)
        profile = self.preferences.profile
        now = self.preferences.clock()

        try:
            candidates = await self.catalog.list_products(exclude_id=reference.id)
            recommendations = self.primary.rank(reference, candidates, profile, limit, now=now)

            if not recommendations:
                logger.info(
                    "No scored recommendations, using newest products",
                    extra={"product_id": reference.id, "num_candidates": len(candidates)},
                )
                recent = await self.catalog.list_recent_products(limit)
                recommendations = self.fallback.rank(reference, recent, profile, limit, now=now)
        except CatalogError as e:
            logger.error(
                "Catalog unavailable for recommendations",
                extra={"product_id": reference.id, "error": str(e)},
            )
            raise

        total_time = time.time() - start_time

        logger.info(
            "Recommendations generated",
            extra={
                "product_id": reference.id,
                "num_candidates": len(candidates),
                "num_recommendations": len(recommendations),
                "fallback": bool(recommendations) and recommendations[0].is_fallback,
                "total_time_ms": round(total_time * 1000, 2),
            },
        )

        return recommendations

    async def get_trending_products(self, limit: Optional[int] = None) -> List[Product]:
        """Get best-selling in-stock products.

        Raises:
            ValueError: If ``limit`` is not positive.
            CatalogError: If the catalog cannot be queried.
        """
        limit = self.default_limit if limit is None else limit
        _check_limit(limit)

        products = await self.catalog.list_trending_products(limit)
        return [p for p in products if p.in_stock]
