"""Catalog access for the recommendation engine.

Catalog clients fetch raw product rows and normalize them into ``Product``
models at the boundary. Excluding the reference product is done by the
client's query, so it never shows up in a candidate list.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import pandas as pd
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from src.recommender.models import Product

# Configure module logger
logger = logging.getLogger(__name__)

ProductId = Union[int, str]

DEFAULT_PRODUCTS_TABLE = "products"


class CatalogError(Exception):
    """Raised when the product catalog cannot be reached or queried."""


def normalize_products(records: Iterable[Dict[str, Any]]) -> List[Product]:
    """Convert raw catalog rows to products, skipping malformed rows.

    Args:
        records: Raw rows as returned by the data source.

    Returns:
        Normalized products, in input order.
    """
    products = []
    for record in records:
        try:
            products.append(Product.model_validate(record))
        except ValidationError as e:
            logger.warning(
                "Skipping malformed product record",
                extra={
                    "product_id": record.get("id") if isinstance(record, dict) else None,
                    "error_count": e.error_count(),
                },
            )
    return products


class CatalogClient(ABC):
    """Read-only access to the product catalog."""

    @abstractmethod
    async def list_products(self, exclude_id: Optional[ProductId] = None) -> List[Product]:
        """Return every product, minus ``exclude_id`` when given."""

    @abstractmethod
    async def list_recent_products(self, limit: int) -> List[Product]:
        """Return the ``limit`` most recently created products, newest first."""

    @abstractmethod
    async def list_trending_products(self, limit: int) -> List[Product]:
        """Return the ``limit`` best-selling products, by ordered quantity."""

    @abstractmethod
    async def get_product(self, product_id: ProductId) -> Optional[Product]:
        """Return one product, or None when it does not exist."""


class InMemoryCatalog(CatalogClient):
    """Catalog held in memory, for tests, the CLI and CSV-backed deployments."""

    def __init__(self, records: Iterable[Union[Dict[str, Any], Product]] = ()):
        self._products: List[Product] = []
        for record in records:
            if isinstance(record, Product):
                self._products.append(record)
            else:
                self._products.extend(normalize_products([record]))

        logger.info(f"Loaded in-memory catalog with {len(self._products)} products")

    @classmethod
    def from_csv(cls, csv_path: Union[str, Path]) -> "InMemoryCatalog":
        """Load a catalog from a CSV file.

        Args:
            csv_path: Path to a CSV with at least an ``id`` column.

        Raises:
            CatalogError: If the file cannot be read.
        """
        try:
            df = pd.read_csv(csv_path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise CatalogError(f"Failed to read catalog CSV '{csv_path}': {e}") from e

        if "id" not in df.columns:
            raise CatalogError(f"Catalog CSV '{csv_path}' has no 'id' column")

        # NaN -> None so optional fields validate as missing
        df = df.astype(object).where(df.notna(), None)
        return cls(df.to_dict(orient="records"))

    @property
    def products(self) -> List[Product]:
        return list(self._products)

    async def list_products(self, exclude_id: Optional[ProductId] = None) -> List[Product]:
        if exclude_id is None:
            return list(self._products)
        return [p for p in self._products if str(p.id) != str(exclude_id)]

    async def list_recent_products(self, limit: int) -> List[Product]:
        # Products without a timestamp sort last; sorted() keeps catalog order on ties
        dated = [p for p in self._products if p.created_at is not None]
        undated = [p for p in self._products if p.created_at is None]
        dated = sorted(dated, key=lambda p: p.created_at, reverse=True)
        return (dated + undated)[:limit]

    async def list_trending_products(self, limit: int) -> List[Product]:
        ranked = sorted(self._products, key=lambda p: p.ordered_quantity, reverse=True)
        return ranked[:limit]

    async def get_product(self, product_id: ProductId) -> Optional[Product]:
        for product in self._products:
            if str(product.id) == str(product_id):
                return product
        return None


class SupabaseCatalog(CatalogClient):
    """Catalog backed by a Supabase ``products`` table.

    The supabase client is synchronous, so queries run in the threadpool.
    """

    def __init__(self, client: Any, table: str = DEFAULT_PRODUCTS_TABLE):
        self.client = client
        self.table = table

    async def _execute(self, operation: str, build_query) -> List[Product]:
        def run():
            return build_query(self.client.table(self.table).select("*")).execute()

        try:
            response = await run_in_threadpool(run)
        except Exception as e:
            logger.error(
                "Catalog query failed",
                extra={"operation": operation, "table": self.table, "error": str(e)},
            )
            raise CatalogError(f"Catalog query '{operation}' failed: {e}") from e

        return normalize_products(response.data or [])

    async def list_products(self, exclude_id: Optional[ProductId] = None) -> List[Product]:
        if exclude_id is None:
            return await self._execute("list_products", lambda q: q)
        return await self._execute("list_products", lambda q: q.neq("id", exclude_id))

    async def list_recent_products(self, limit: int) -> List[Product]:
        return await self._execute(
            "list_recent_products",
            lambda q: q.order("created_at", desc=True).limit(limit),
        )

    async def list_trending_products(self, limit: int) -> List[Product]:
        return await self._execute(
            "list_trending_products",
            lambda q: q.order("ordered_quantity", desc=True).limit(limit),
        )

    async def get_product(self, product_id: ProductId) -> Optional[Product]:
        products = await self._execute("get_product", lambda q: q.eq("id", product_id).limit(1))
        return products[0] if products else None


def create_supabase_catalog(
    url: str, key: str, table: str = DEFAULT_PRODUCTS_TABLE
) -> SupabaseCatalog:
    """Create a Supabase-backed catalog from project credentials.

    Raises:
        CatalogError: If the Supabase client cannot be created.
    """
    from supabase import create_client

    try:
        client = create_client(url, key)
    except Exception as e:
        raise CatalogError(f"Failed to create Supabase client: {e}") from e

    return SupabaseCatalog(client, table=table)
