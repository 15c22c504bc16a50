"""Data models for the recommendation engine.

Products arrive from the catalog as loosely formatted rows (prices such as
"Rs. 1,299" or plain numbers). They are normalized here, once, so the scoring
code only ever sees a strict ``float | None`` price.
"""

import re
from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# Thousands separators inside a price string
_PRICE_GROUPING_RE = re.compile(r"(?<=\d),(?=\d)")
# First decimal number; a dot glued to a word ("Rs.") never starts one
_PRICE_NUMBER_RE = re.compile(r"\d+(?:\.\d*)?|(?<![A-Za-z.])\.\d+")

MAX_RECENTLY_VIEWED = 5


def parse_price(value: object) -> Optional[float]:
    """Coerce a price value to a float.

    Drops thousands separators and reads the first decimal number in the
    string, so currency prefixes such as ``Rs.`` or ``₹`` are ignored.
    Returns None when there is no usable price signal, which includes a
    price of zero.

    Args:
        value: Raw price (number, numeric-like string or None).

    Returns:
        Positive float price, or None.

    Example:
        >>> parse_price("Rs. 1,299.50")
        1299.5
        >>> parse_price("n/a") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        price = float(value)
    else:
        cleaned = _PRICE_GROUPING_RE.sub("", str(value))
        match = _PRICE_NUMBER_RE.search(cleaned)
        if match is None:
            return None
        price = float(match.group(0))

    if price != price or price <= 0:
        return None
    return price


class Product(BaseModel):
    """A catalog product, read-only to the recommender."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    id: Union[int, str]
    name: str = ""
    category: Optional[str] = None
    price: Optional[float] = None
    image_urls: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("image_urls", "imageUrls", "imageUrl", "image_url"),
    )
    quantity: int = 0
    ordered_quantity: int = 0
    created_at: Optional[datetime] = None

    @field_validator("price", mode="before")
    @classmethod
    def _coerce_price(cls, v):
        return parse_price(v)

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("quantity", "ordered_quantity", mode="before")
    @classmethod
    def _null_quantity(cls, v):
        # Missing counts come through as null/NaN from the database and CSVs
        if v is None or (isinstance(v, float) and v != v):
            return 0
        return v

    @field_validator("image_urls", mode="before")
    @classmethod
    def _split_image_urls(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [url.strip() for url in v.split(",") if url.strip()]
        return v

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @property
    def remaining(self) -> int:
        return self.quantity - self.ordered_quantity

    @property
    def in_stock(self) -> bool:
        return self.remaining > 0


class PriceRange(BaseModel):
    """Preferred price band inferred from browsing."""

    min: float
    max: float

    def contains(self, price: float) -> bool:
        return self.min <= price <= self.max


class RecentView(BaseModel):
    """One entry of the recently-viewed history."""

    model_config = ConfigDict(populate_by_name=True)

    id: Union[int, str]
    name: str = ""
    viewed_at: datetime = Field(alias="viewedAt")


class PreferenceProfile(BaseModel):
    """Per-visitor record of inferred interests.

    Serialized with camelCase aliases so profiles written by the storefront
    client (``viewedCategories``, ``preferredPriceRange`` ...) load as-is.
    """

    model_config = ConfigDict(populate_by_name=True)

    viewed_categories: List[str] = Field(default_factory=list, alias="viewedCategories")
    preferred_price_range: Optional[PriceRange] = Field(
        default=None, alias="preferredPriceRange"
    )
    recently_viewed: List[RecentView] = Field(default_factory=list, alias="recentlyViewed")
    last_updated: Optional[datetime] = Field(default=None, alias="lastUpdated")

    @property
    def recently_viewed_ids(self) -> List[Union[int, str]]:
        return [entry.id for entry in self.recently_viewed]

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "PreferenceProfile":
        return cls.model_validate_json(payload)


class ScoredCandidate(BaseModel):
    """A candidate product with its component and composite scores."""

    product: Product
    category_score: float
    price_score: float
    popularity_score: float
    preference_score: float
    recommendation_score: float
    is_fallback: bool = False
