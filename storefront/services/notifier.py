"""View invalidation.

Writes to the product store mark cached views stale through a notifier
instead of touching the cache directly, so the store does not care what
sits in front of its read paths.
"""
import logging
from abc import ABC, abstractmethod

from storefront.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)

ALL_PRODUCTS_KEY = "all products"
VIEW_CACHE_PREFIX = "view"


def product_key(slug: str) -> str:
    """Invalidation key for a single product's detail view."""
    return f"product:{slug}"


class ViewInvalidationNotifier(ABC):
    """Marks the cached view stored under a key as stale."""

    @abstractmethod
    def invalidate(self, key: str) -> None:
        """Fire-and-forget. Must not raise and must be idempotent."""


class CacheInvalidationNotifier(ViewInvalidationNotifier):
    """Drops the cached rendering of a view from Redis."""

    def __init__(self, cache: CacheService = None):
        self.cache = cache or cache_service

    def invalidate(self, key: str) -> None:
        if not self.cache.delete(VIEW_CACHE_PREFIX, key):
            logger.warning(f"View '{key}' could not be invalidated; it will expire with its TTL")
        else:
            logger.debug(f"Invalidated view '{key}'")
