"""Tests for product normalization and price coercion."""

from datetime import datetime, timezone

import pytest

from src.recommender.models import PreferenceProfile, Product, parse_price


@pytest.mark.parametrize(
    "raw, expected",
    [
        (2000, 2000.0),
        (1299.5, 1299.5),
        ("2000", 2000.0),
        ("2,000", 2000.0),
        ("Rs. 1,299.50", 1299.5),
        ("Rs. 2,100", 2100.0),
        ("Rs.1,299", 1299.0),
        ("INR 12,50,000", 1250000.0),
        (".75", 0.75),
        ("₹ 850", 850.0),
        ("12.", 12.0),
        ("1.2.3", 1.2),
    ],
)
def test_parse_price_numeric_like_values(raw, expected):
    """Test that numeric-like prices are coerced to floats."""
    assert parse_price(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", [None, "", "n/a", ".", "free", 0, "0", -250, -0.5, True, float("nan")])
def test_parse_price_without_signal_returns_none(raw):
    """Test that unusable prices mean 'no price signal'."""
    assert parse_price(raw) is None


def test_product_normalizes_loose_record():
    """Test that a raw catalog row is normalized at construction."""
    product = Product.model_validate({
        "id": 7,
        "name": "Block print kurta",
        "category": " kurta ",
        "price": "Rs. 1,450",
        "quantity": 4,
        "ordered_quantity": None,
        "imageUrl": "https://example.com/kurta.jpg",
        "created_at": "2025-05-01T10:00:00",
        "description": "ignored",
    })

    assert product.price == 1450.0
    assert product.category == "kurta"
    assert product.ordered_quantity == 0
    assert product.image_urls == ["https://example.com/kurta.jpg"]
    assert product.created_at == datetime(2025, 5, 1, 10, tzinfo=timezone.utc)


def test_product_blank_category_is_missing():
    product = Product(id=1, category="   ")
    assert product.category is None


def test_product_remaining_stock():
    """Test remaining = quantity - ordered_quantity and the in-stock flag."""
    assert Product(id=1, quantity=10, ordered_quantity=3).remaining == 7
    assert Product(id=1, quantity=10, ordered_quantity=3).in_stock
    assert not Product(id=2, quantity=5, ordered_quantity=5).in_stock
    assert not Product(id=3, quantity=0).in_stock


def test_preference_profile_json_uses_camel_case():
    """Test that profiles serialize with the storefront's field names."""
    profile = PreferenceProfile(viewed_categories=["saree"])
    payload = profile.to_json()

    assert '"viewedCategories"' in payload
    assert '"preferredPriceRange"' in payload
    assert PreferenceProfile.from_json(payload) == profile
