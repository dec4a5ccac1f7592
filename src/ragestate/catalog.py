"""
Product catalog cache.

Wraps a read-only catalog backend with a short in-memory cache. An
unreachable shop yields empty results instead of errors, so pages built
from the catalog degrade to "no products" rather than failing.
"""

import logging
import re
import time
from collections.abc import Callable
from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from ragestate.config import CatalogConfig
from ragestate.exceptions import CatalogUnavailableError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\-]+", re.ASCII)
_DASH_RUN = re.compile(r"--+")


def format_slug(title: str) -> str:
    """
    URL slug for a product title.

    Example:
        >>> format_slug("Rage  Tee (Black)")
        'rage-tee-black'
    """
    slug = _WHITESPACE.sub("-", title.lower())
    slug = _NON_WORD.sub("", slug)
    return _DASH_RUN.sub("-", slug)


class Product(BaseModel):
    id: str
    handle: str
    title: str
    description: str = ""
    price: Decimal = Decimal("0")
    image_urls: list[str] = Field(default_factory=list)
    available: bool = True

    @property
    def slug(self) -> str:
        return format_slug(self.title)


class CatalogClient(Protocol):
    """
    Catalog backend.

    ``fetch_by_handle`` returns None or raises for an unknown handle;
    either way the catalog falls back to a title match.
    """

    async def fetch_all(self) -> list[Product]: ...

    async def fetch_by_handle(self, handle: str) -> Product | None: ...


class InMemoryCatalogClient:
    def __init__(self, products: list[Product] | None = None) -> None:
        self.products = list(products or [])
        self.unavailable = False
        self.fetch_all_calls = 0

    async def fetch_all(self) -> list[Product]:
        self.fetch_all_calls += 1
        if self.unavailable:
            raise CatalogUnavailableError("Shop is unavailable")
        return [p.model_copy() for p in self.products]

    async def fetch_by_handle(self, handle: str) -> Product | None:
        for product in self.products:
            if product.handle == handle:
                return product.model_copy()
        return None


class ProductCatalog:
    """
    Example:
        >>> catalog = ProductCatalog(client)
        >>> product = await catalog.fetch_product_by_slug("rage-tee")
    """

    def __init__(
        self,
        client: CatalogClient,
        config: CatalogConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._config = config or CatalogConfig()
        self._clock = clock
        self._all: tuple[float, list[Product]] | None = None
        self._by_handle: dict[str, tuple[float, Product]] = {}

    def _fresh(self, fetched_at: float) -> bool:
        return self._clock() - fetched_at < self._config.cache_ttl_seconds

    def invalidate(self) -> None:
        self._all = None
        self._by_handle.clear()

    async def fetch_products(self) -> list[Product]:
        if self._all is not None and self._fresh(self._all[0]):
            return list(self._all[1])
        try:
            products = await self._client.fetch_all()
        except Exception as e:
            logger.error("Error fetching products: %s", e)
            return []
        self._all = (self._clock(), products)
        return list(products)

    async def fetch_product_by_slug(self, slug: str) -> Product | None:
        cached = self._by_handle.get(slug)
        if cached is not None and self._fresh(cached[0]):
            return cached[1]

        try:
            product = await self._client.fetch_by_handle(slug)
        except Exception as e:
            logger.debug("Handle lookup for %s failed: %s", slug, e)
            product = None

        if product is None:
            products = await self.fetch_products()
            product = next((p for p in products if format_slug(p.title) == slug), None)
        if product is not None:
            self._by_handle[slug] = (self._clock(), product)
        return product

    async def fetch_all_product_slugs(self) -> list[str]:
        return [format_slug(product.title) for product in await self.fetch_products()]


__all__ = [
    "format_slug",
    "Product",
    "CatalogClient",
    "InMemoryCatalogClient",
    "ProductCatalog",
]
