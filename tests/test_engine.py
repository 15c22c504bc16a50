"""Tests for ranking strategies and the recommendation engine."""

import asyncio
import threading
from datetime import datetime, timedelta, timezone

import pytest

from src.recommender.catalog import CatalogClient, CatalogError, InMemoryCatalog
from src.recommender.engine import FallbackRanker, PrimaryRanker, RecommendationEngine
from src.recommender.models import PreferenceProfile, Product, RecentView
from src.recommender.preferences import InMemoryStorage, PreferenceStore
from src.recommender.scoring import preference_score

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_product(product_id, category="saree", price=2000, quantity=10, ordered_quantity=0, days_old=0):
    return Product(
        id=product_id,
        name=f"Product {product_id}",
        category=category,
        price=price,
        quantity=quantity,
        ordered_quantity=ordered_quantity,
        created_at=NOW - timedelta(days=days_old),
    )


class SpyCatalog(CatalogClient):
    """Catalog with separate candidate and recent lists that counts calls."""

    def __init__(self, products=(), recent=(), error=None):
        self.products = list(products)
        self.recent = list(recent)
        self.error = error
        self.calls = []

    async def list_products(self, exclude_id=None):
        self.calls.append(("list_products", exclude_id))
        if self.error is not None:
            raise self.error
        return [p for p in self.products if p.id != exclude_id]

    async def list_recent_products(self, limit):
        self.calls.append(("list_recent_products", limit))
        return self.recent[:limit]

    async def list_trending_products(self, limit):
        return []

    async def get_product(self, product_id):
        return None


@pytest.fixture
def preferences():
    return PreferenceStore(InMemoryStorage(), clock=lambda: NOW)


def make_engine(catalog, preferences):
    return RecommendationEngine(catalog=catalog, preferences=preferences)


# ===== Primary Ranking Tests =====


def test_reference_scenario_returns_matching_saree(preferences):
    """Test the saree scenario: same-category match kept, sold-out item dropped."""
    reference = make_product(1, category="saree", price=2000, quantity=10, ordered_quantity=2)
    catalog = InMemoryCatalog([
        reference,
        make_product(2, category="saree", price=2100, quantity=5, ordered_quantity=1),
        make_product(3, category="shoes", price=9000, quantity=0, ordered_quantity=0),
    ])

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference, 8))

    assert [r.product.id for r in results] == [2]
    top = results[0]
    assert top.category_score == 1.0
    assert top.price_score == 1.0
    assert top.popularity_score == pytest.approx(0.24)
    assert top.preference_score == 1.0
    assert top.recommendation_score == pytest.approx(0.4 + 0.25 + 0.2 * 0.24 + 0.15)
    assert not top.is_fallback


def test_new_visitor_unrelated_item_still_returned(preferences):
    """Test that an unrelated in-stock item is recommended for a new visitor."""
    reference = make_product(1, category="saree", price=2000)
    candidate = make_product(2, category="painting", price=90000, quantity=5)

    assert preference_score(candidate, PreferenceProfile(), now=NOW) == 0.5

    results = asyncio.run(
        make_engine(InMemoryCatalog([reference, candidate]), preferences).get_recommendations(reference)
    )

    assert [r.product.id for r in results] == [2]
    assert results[0].recommendation_score > 0
    # The reference view itself makes the profile recent
    assert results[0].preference_score == pytest.approx(0.55)
    assert not results[0].is_fallback


def test_out_of_stock_never_ranked_even_when_best(preferences):
    reference = make_product(1)
    sold_out = make_product(2, quantity=4, ordered_quantity=4)
    oversold = make_product(3, quantity=1, ordered_quantity=2)
    weak = make_product(4, category="shoes", price=50000)

    results = PrimaryRanker().rank(reference, [sold_out, oversold, weak], preferences.profile, 6, now=NOW)

    assert [r.product.id for r in results] == [4]


def test_reference_never_in_results(preferences):
    reference = make_product(1)
    candidates = [reference, make_product(2), make_product(3)]

    results = PrimaryRanker().rank(reference, candidates, preferences.profile, 6, now=NOW)

    assert 1 not in [r.product.id for r in results]


def test_results_sorted_and_limited(preferences):
    """Test descending order and truncation to the limit."""
    reference = make_product(1, category="saree", price=2000)
    candidates = [
        make_product(2, category="shoes", price=50000),
        make_product(3, category="saree", price=2000, ordered_quantity=5),
        make_product(4, category="kurta", price=2500),
        make_product(5, category="saree", price=2000),
        make_product(6, category="painting", price=3500),
    ]

    results = PrimaryRanker().rank(reference, candidates, preferences.profile, 3, now=NOW)

    assert len(results) == 3
    assert [r.product.id for r in results] == [3, 5, 4]
    scores = [r.recommendation_score for r in results]
    assert scores == sorted(scores, reverse=True)


def test_ties_keep_catalog_order(preferences):
    reference = make_product(1)
    candidates = [make_product(i) for i in (7, 3, 9, 5)]

    results = PrimaryRanker().rank(reference, candidates, preferences.profile, 6, now=NOW)

    assert [r.product.id for r in results] == [7, 3, 9, 5]


def test_output_never_exceeds_limit(preferences):
    reference = make_product(0)
    candidates = [make_product(i, price=1000 + i * 100) for i in range(1, 21)]

    for limit in (1, 2, 6, 8, 30):
        results = PrimaryRanker().rank(reference, candidates, preferences.profile, limit, now=NOW)
        assert len(results) == min(limit, 20)


def test_malformed_prices_degrade_to_neutral(preferences):
    reference = make_product(1, price="price on request")
    catalog = InMemoryCatalog([reference, {"id": 2, "category": "saree", "price": "TBD", "quantity": 3}])

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference))

    assert results[0].price_score == 0.5


# ===== Fallback Tests =====


def test_fallback_tags_placeholder_scores():
    reference = make_product(1)
    recent = [make_product(2), make_product(3), make_product(4)]

    results = FallbackRanker().rank(reference, recent, PreferenceProfile(), 6)

    assert [r.product.id for r in results] == [2, 3, 4]
    for r in results:
        assert r.is_fallback
        assert r.category_score == 0.3
        assert r.price_score == 0.5
        assert r.popularity_score == 0.2
        assert r.preference_score == 0.5
        assert r.recommendation_score == 0.5


def test_fallback_excludes_reference_and_out_of_stock():
    reference = make_product(1)
    recent = [reference, make_product(2, quantity=0), make_product(3), make_product(4)]

    results = FallbackRanker().rank(reference, recent, PreferenceProfile(), 6)

    assert [r.product.id for r in results] == [3, 4]


def test_fallback_two_items_skips_recently_viewed():
    """Test that with exactly two candidates the just-viewed one is dropped."""
    reference = make_product(1)
    profile = PreferenceProfile(recently_viewed=[RecentView(id=2, name="A", viewed_at=NOW)])

    results = FallbackRanker().rank(reference, [make_product(2), make_product(3)], profile, 6)

    assert [r.product.id for r in results] == [3]
    assert results[0].is_fallback


def test_fallback_two_items_without_history_returns_both():
    reference = make_product(1)
    results = FallbackRanker().rank(reference, [make_product(2), make_product(3)], PreferenceProfile(), 6)
    assert [r.product.id for r in results] == [2, 3]


def test_fallback_two_items_both_viewed_returns_the_second():
    """Test that the first viewed item is skipped even when both were viewed."""
    reference = make_product(1)
    profile = PreferenceProfile(recently_viewed=[
        RecentView(id=2, name="A", viewed_at=NOW),
        RecentView(id=3, name="B", viewed_at=NOW),
    ])
    results = FallbackRanker().rank(reference, [make_product(2), make_product(3)], profile, 6)
    assert [r.product.id for r in results] == [3]


def test_fallback_rule_only_applies_to_two_items():
    reference = make_product(1)
    profile = PreferenceProfile(recently_viewed=[RecentView(id=2, name="A", viewed_at=NOW)])
    recent = [make_product(2), make_product(3), make_product(4)]

    results = FallbackRanker().rank(reference, recent, profile, 6)

    assert [r.product.id for r in results] == [2, 3, 4]


# ===== Engine Tests =====


def test_engine_uses_fallback_when_nothing_eligible(preferences):
    """Test that fallback runs only once the scored set is empty."""
    reference = make_product(1)
    catalog = SpyCatalog(
        products=[make_product(2, quantity=0), make_product(3, quantity=1, ordered_quantity=1)],
        recent=[make_product(4, days_old=1), make_product(5, days_old=2), make_product(6, days_old=3)],
    )

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference, 2))

    assert [r.product.id for r in results] == [4, 5]
    assert all(r.is_fallback for r in results)
    assert catalog.calls == [("list_products", 1), ("list_recent_products", 2)]


def test_engine_skips_fallback_when_primary_has_results(preferences):
    reference = make_product(1)
    catalog = SpyCatalog(products=[make_product(2)], recent=[make_product(3)])

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference))

    assert [r.product.id for r in results] == [2]
    assert not results[0].is_fallback
    assert catalog.calls == [("list_products", 1)]


def test_engine_fallback_skips_product_viewed_earlier(preferences):
    """Test the two-item rule end to end, using the visitor's real history."""
    preferences.update(make_product(2))
    reference = make_product(1)
    catalog = SpyCatalog(products=[], recent=[make_product(2), make_product(3)])

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference))

    assert [r.product.id for r in results] == [3]


def test_engine_empty_catalog_returns_empty_list(preferences):
    reference = make_product(1)
    results = asyncio.run(make_engine(InMemoryCatalog([reference]), preferences).get_recommendations(reference))
    assert results == []


def test_engine_updates_preferences_before_scoring(preferences):
    reference = make_product(1, category="kurta", price=1000)
    catalog = InMemoryCatalog([reference, make_product(2, category="kurta", price=1000)])

    results = asyncio.run(make_engine(catalog, preferences).get_recommendations(reference))

    profile = preferences.profile
    assert profile.viewed_categories == ["kurta"]
    assert profile.recently_viewed_ids == [1]
    # Category, price band and recency all apply to the candidate
    assert results[0].preference_score == 1.0


class ThreadRecordingStorage(InMemoryStorage):
    def __init__(self):
        super().__init__()
        self.write_threads = []

    def set(self, key, value):
        self.write_threads.append(threading.get_ident())
        super().set(key, value)


def test_engine_persists_preferences_off_the_event_loop():
    """Test that the blocking profile write runs in a worker thread."""
    storage = ThreadRecordingStorage()
    store = PreferenceStore(storage, clock=lambda: NOW)
    reference = make_product(1)

    asyncio.run(make_engine(InMemoryCatalog([reference, make_product(2)]), store).get_recommendations(reference))

    assert len(storage.write_threads) == 1
    assert storage.write_threads[0] != threading.get_ident()
    assert store.profile.recently_viewed_ids == [1]


def test_engine_catalog_failure_propagates(preferences):
    """Test that catalog errors reach the caller instead of an empty list."""
    catalog = SpyCatalog(error=CatalogError("connection refused"))

    with pytest.raises(CatalogError):
        asyncio.run(make_engine(catalog, preferences).get_recommendations(make_product(1)))


def test_engine_rejects_non_positive_limit(preferences):
    engine = make_engine(InMemoryCatalog([]), preferences)

    with pytest.raises(ValueError):
        asyncio.run(engine.get_recommendations(make_product(1), 0))

    assert preferences.profile.recently_viewed == []


def test_engine_default_limit(preferences):
    reference = make_product(0)
    catalog = InMemoryCatalog([make_product(i) for i in range(1, 11)])

    engine = RecommendationEngine(catalog=catalog, preferences=preferences, default_limit=4)
    results = asyncio.run(engine.get_recommendations(reference))

    assert len(results) == 4


def test_engine_reset_user_preferences(preferences):
    engine = make_engine(InMemoryCatalog([]), preferences)
    engine.update_user_preferences(make_product(1))
    engine.reset_user_preferences()

    assert preferences.profile == PreferenceProfile()


def test_engine_trending_products_in_stock_only(preferences):
    catalog = InMemoryCatalog([
        make_product(1, quantity=10, ordered_quantity=3),
        make_product(2, quantity=5, ordered_quantity=5),
        make_product(3, quantity=10, ordered_quantity=8),
        make_product(4, quantity=10, ordered_quantity=0),
    ])

    products = asyncio.run(make_engine(catalog, preferences).get_trending_products(3))

    assert [p.id for p in products] == [3, 1]
