"""Visitor preference tracking.

The preference store keeps a per-visitor ``PreferenceProfile`` and persists
it through a small key/value storage interface after every change. Tracking
is best-effort: storage failures are logged and never reach the caller.
"""

import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Optional, Union
from urllib.parse import quote

from pydantic import ValidationError

from src.recommender.models import (
    MAX_RECENTLY_VIEWED,
    PreferenceProfile,
    PriceRange,
    Product,
    RecentView,
)

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "userPreferences"

# Price band envelope around a viewed product
PRICE_RANGE_LOW = 0.7
PRICE_RANGE_HIGH = 1.3


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class PreferenceStorage(ABC):
    """Durable string key/value storage for preference profiles."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored value for ``key``, or None if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``."""


class InMemoryStorage(PreferenceStorage):
    """Dict-backed storage, for tests and single-process deployments."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value


class FileStorage(PreferenceStorage):
    """Stores each key as a JSON file in a directory.

    File names are the percent-encoded key, so distinct keys never share a
    file.
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        safe_key = quote(key, safe="")
        return self.directory / f"{safe_key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        self._path(key).write_text(value, encoding="utf-8")


class PreferenceStore:
    """Holds one visitor's preference profile and keeps it persisted.

    Concurrent writers (several processes sharing one storage key) are
    last-write-wins; profiles are never merged. Within a process, updates
    and resets are serialized by a lock.
    """

    def __init__(
        self,
        storage: PreferenceStorage,
        key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.storage = storage
        self.key = key
        self.clock = clock
        self._lock = threading.Lock()
        self._profile = self._load()

    @property
    def profile(self) -> PreferenceProfile:
        return self._profile

    def _load(self) -> PreferenceProfile:
        try:
            payload = self.storage.get(self.key)
        except Exception as e:
            logger.error(
                "Failed to read preferences, starting empty",
                extra={"storage_key": self.key, "error": str(e)},
                exc_info=True,
            )
            return PreferenceProfile()

        if not payload:
            return PreferenceProfile()

        try:
            return PreferenceProfile.from_json(payload)
        except ValidationError as e:
            logger.warning(
                "Stored preferences are malformed, starting empty",
                extra={"storage_key": self.key, "error": str(e)},
            )
            return PreferenceProfile()

    def _save(self) -> None:
        try:
            self.storage.set(self.key, self._profile.to_json())
        except Exception as e:
            # In-memory profile stays authoritative for the session
            logger.error(
                "Failed to persist preferences",
                extra={"storage_key": self.key, "error": str(e)},
                exc_info=True,
            )

    def update(self, product: Optional[Product]) -> None:
        """Record a product view.

        Adds the category to the viewed set, moves the product to the front
        of the recently-viewed history (max 5 entries), and pulls the
        preferred price band toward the product's price. The first priced
        view sets the band to +/-30% of the price; later views average each
        bound with the new envelope.

        Args:
            product: The viewed product. None is ignored.
        """
        if product is None:
            return

        with self._lock:
            self._record_view(product)

    def _record_view(self, product: Product) -> None:
        now = self.clock()
        profile = self._profile

        if product.category and product.category not in profile.viewed_categories:
            profile.viewed_categories.append(product.category)

        history = [entry for entry in profile.recently_viewed if entry.id != product.id]
        history.insert(0, RecentView(id=product.id, name=product.name, viewed_at=now))
        profile.recently_viewed = history[:MAX_RECENTLY_VIEWED]

        price = product.price
        if price:
            low, high = price * PRICE_RANGE_LOW, price * PRICE_RANGE_HIGH
            if profile.preferred_price_range is None:
                profile.preferred_price_range = PriceRange(min=low, max=high)
            else:
                current = profile.preferred_price_range
                profile.preferred_price_range = PriceRange(
                    min=(current.min + low) / 2,
                    max=(current.max + high) / 2,
                )

        profile.last_updated = now

        logger.debug(
            "Updated preferences",
            extra={
                "storage_key": self.key,
                "product_id": product.id,
                "num_categories": len(profile.viewed_categories),
            },
        )

        self._save()

    def reset(self) -> None:
        """Clear every preference field and persist the empty profile."""
        with self._lock:
            self._profile = PreferenceProfile()
            logger.info("Reset preferences", extra={"storage_key": self.key})
            self._save()
