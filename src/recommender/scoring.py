"""Component scorers for product recommendations.

Each scorer is a pure function returning a value in [0, 1]. The composite
score is a fixed-weight linear blend of the four components:

    score = 0.40 * category + 0.25 * price + 0.20 * popularity + 0.15 * preference
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

from src.recommender.models import PreferenceProfile, Product

# Composite weights
CATEGORY_WEIGHT = 0.40
PRICE_WEIGHT = 0.25
POPULARITY_WEIGHT = 0.20
PREFERENCE_WEIGHT = 0.15

# Category relationships. Not symmetric as stored; lookups check both ways.
CATEGORY_RELATIONSHIPS: Dict[str, Tuple[str, ...]] = {
    "saree": ("kurta", "dupatta", "blouse"),
    "kurta": ("saree", "dupatta", "t-shirt"),
    "dupatta": ("saree", "kurta", "blouse"),
    "blouse": ("saree", "dupatta", "kurta"),
    "t-shirt": ("kurta", "shirt", "top"),
    "wall-hanging": ("painting", "decoration", "art"),
    "painting": ("wall-hanging", "art", "decoration"),
    "decoration": ("wall-hanging", "painting", "art"),
}

MISSING_CATEGORY_SCORE = 0.1
SAME_CATEGORY_SCORE = 1.0
RELATED_CATEGORY_SCORE = 0.7
UNRELATED_CATEGORY_SCORE = 0.2

NEUTRAL_PRICE_SCORE = 0.5
# (max relative difference, score), checked in order, bounds inclusive
PRICE_BANDS = (
    (0.3, 1.0),
    (0.5, 0.7),
    (1.0, 0.4),
)
FAR_PRICE_SCORE = 0.1

SELLING_BOOST = 1.2
TURNOVER_THRESHOLD = 0.3
TURNOVER_BOOST = 1.1

BASE_PREFERENCE_SCORE = 0.5
CATEGORY_PREFERENCE_BONUS = 0.3
PRICE_PREFERENCE_BONUS = 0.2
RECENT_ACTIVITY_WINDOW = timedelta(days=7)
RECENT_ACTIVITY_BOOST = 1.1

# Informational price brackets: name -> [min, max)
PRICE_BRACKETS = (
    ("budget", 0.0, 3000.0),
    ("mid", 3000.0, 8000.0),
    ("premium", 8000.0, 15000.0),
    ("luxury", 15000.0, float("inf")),
)
DEFAULT_PRICE_BRACKET = "mid"


def category_score(
    reference_category: Optional[str], candidate_category: Optional[str]
) -> float:
    """Score how closely two categories are related.

    Args:
        reference_category: Category of the product being viewed.
        candidate_category: Category of the candidate product.

    Returns:
        1.0 for the same category, 0.7 for related categories, 0.2 for
        unrelated ones and 0.1 when either category is missing.
    """
    if not reference_category or not candidate_category:
        return MISSING_CATEGORY_SCORE

    if reference_category == candidate_category:
        return SAME_CATEGORY_SCORE

    if candidate_category in CATEGORY_RELATIONSHIPS.get(reference_category, ()):
        return RELATED_CATEGORY_SCORE
    if reference_category in CATEGORY_RELATIONSHIPS.get(candidate_category, ()):
        return RELATED_CATEGORY_SCORE

    return UNRELATED_CATEGORY_SCORE


def price_score(reference_price: Optional[float], candidate_price: Optional[float]) -> float:
    """Score price compatibility by relative difference to the reference.

    Args:
        reference_price: Normalized price of the reference product.
        candidate_price: Normalized price of the candidate.

    Returns:
        Banded score; 0.5 when either price is missing.
    """
    if not reference_price or not candidate_price:
        return NEUTRAL_PRICE_SCORE

    diff = abs(candidate_price - reference_price) / reference_price

    for max_diff, score in PRICE_BANDS:
        if diff <= max_diff:
            return score
    return FAR_PRICE_SCORE


def popularity_score(product: Product) -> float:
    """Score a product by how well it sells relative to its stock."""
    ordered = max(product.ordered_quantity, 0)
    turnover = ordered / max(product.quantity, 1)

    popularity = min(turnover, 1.0)
    if ordered > 0:
        popularity *= SELLING_BOOST
    if turnover > TURNOVER_THRESHOLD:
        popularity *= TURNOVER_BOOST

    return min(popularity, 1.0)


def preference_score(
    product: Product,
    profile: PreferenceProfile,
    now: Optional[datetime] = None,
) -> float:
    """Score a product against a visitor's preference profile.

    Starts from 0.5 for a visitor we know nothing about, adds bonuses for a
    viewed category and for a price inside the preferred band, then boosts
    the total by 10% when the profile was updated in the last 7 days.

    Args:
        product: Candidate product.
        profile: Visitor preference profile.
        now: Current time (UTC). Defaults to ``datetime.now(timezone.utc)``.

    Returns:
        Preference score capped at 1.0.
    """
    score = BASE_PREFERENCE_SCORE

    if product.category and product.category in profile.viewed_categories:
        score += CATEGORY_PREFERENCE_BONUS

    price_range = profile.preferred_price_range
    if price_range is not None and product.price is not None:
        if price_range.contains(product.price):
            score += PRICE_PREFERENCE_BONUS

    if profile.last_updated is not None:
        now = now or datetime.now(timezone.utc)
        last_updated = profile.last_updated
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        if now - last_updated < RECENT_ACTIVITY_WINDOW:
            score *= RECENT_ACTIVITY_BOOST

    return min(score, 1.0)


def composite_score(
    category: float, price: float, popularity: float, preference: float
) -> float:
    return (
        CATEGORY_WEIGHT * category
        + PRICE_WEIGHT * price
        + POPULARITY_WEIGHT * popularity
        + PREFERENCE_WEIGHT * preference
    )


def price_bracket(price: Optional[float]) -> str:
    """Classify a price into budget/mid/premium/luxury."""
    if price is None:
        return DEFAULT_PRICE_BRACKET

    for name, low, high in PRICE_BRACKETS:
        if low <= price < high:
            return name
    return DEFAULT_PRICE_BRACKET
