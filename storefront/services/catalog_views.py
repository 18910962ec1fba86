import logging
from typing import Optional

from storefront.schemas.product import ProductResponse
from storefront.services.notifier import ALL_PRODUCTS_KEY, VIEW_CACHE_PREFIX, product_key
from storefront.services.product_service import ProductService
from storefront.utils.cache import CacheService

logger = logging.getLogger(__name__)


class CatalogViews:
    """
    Cached read paths for the public storefront.

    The home page list and the product detail page are cached under the
    same keys the product store invalidates, so a write is visible on the
    next read. Entries also expire after the cache TTL.
    """

    def __init__(self, service: ProductService, cache: CacheService):
        self.service = service
        self.cache = cache

    def product_list(self) -> list[ProductResponse]:
        """Every product, served from the cache when the view is fresh."""
        cached = self.cache.get(VIEW_CACHE_PREFIX, ALL_PRODUCTS_KEY)
        if cached is not None:
            return [ProductResponse.model_validate(item) for item in cached]

        products = self.service.list_all()
        self.cache.set(
            VIEW_CACHE_PREFIX,
            ALL_PRODUCTS_KEY,
            [p.model_dump(mode="json", by_alias=True) for p in products],
        )
        logger.debug(f"Rebuilt view '{ALL_PRODUCTS_KEY}' with {len(products)} products")
        return products

    def product_detail(self, slug: str) -> Optional[ProductResponse]:
        """A single product; misses are not cached."""
        key = product_key(slug)
        cached = self.cache.get(VIEW_CACHE_PREFIX, key)
        if cached is not None:
            return ProductResponse.model_validate(cached)

        product = self.service.get_by_slug(slug)
        if product:
            self.cache.set(VIEW_CACHE_PREFIX, key, product.model_dump(mode="json", by_alias=True))
        return product

    @staticmethod
    def search(
        products: list[ProductResponse],
        term: Optional[str] = None,
        category: Optional[str] = None,
    ) -> list[ProductResponse]:
        """
        Home page filter.

        Category is matched exactly first ("all" or empty disables it), then
        the term is matched case-insensitively against name or category.
        """
        if category and category != "all":
            products = [p for p in products if p.category == category]

        if term:
            needle = term.lower()
            products = [
                p for p in products
                if needle in p.name.lower() or needle in p.category.lower()
            ]

        return products

    @staticmethod
    def categories(products: list[ProductResponse]) -> list[str]:
        """Distinct categories in first-seen order."""
        return list(dict.fromkeys(p.category for p in products))
