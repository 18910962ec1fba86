import logging
import secrets
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from storefront.config import get_settings
from storefront.database import get_db
from storefront.services.catalog_views import CatalogViews
from storefront.services.notifier import CacheInvalidationNotifier, ViewInvalidationNotifier
from storefront.services.product_service import (
    ProductService,
    InvalidProductError,
    SlugConflictError,
    StoreUnavailableError,
)
from storefront.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)


def get_cache() -> CacheService:
    """Dependency returning the shared cache service."""
    return cache_service


def get_notifier(cache: CacheService = Depends(get_cache)) -> ViewInvalidationNotifier:
    """Dependency returning the view invalidation notifier."""
    return CacheInvalidationNotifier(cache)


def get_product_service(
    db: Session = Depends(get_db),
    notifier: ViewInvalidationNotifier = Depends(get_notifier),
) -> ProductService:
    return ProductService(db, notifier)


def get_catalog_views(
    service: ProductService = Depends(get_product_service),
    cache: CacheService = Depends(get_cache),
) -> CatalogViews:
    return CatalogViews(service, cache)


def store_failure(e: Exception, action: str) -> HTTPException:
    """Translate a store failure into a response that hides database details."""
    if isinstance(e, InvalidProductError):
        logger.warning(f"Rejected {action}: {e}")
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing or invalid fields")
    if isinstance(e, SlugConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists")
    if isinstance(e, StoreUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Error {action}: service unavailable",
        )
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Error {action}")


def require_admin_key(authorization: Optional[str] = Header(None)) -> None:
    """
    Check the shared admin bearer credential.

    The key travels with every request as `Authorization: Bearer <key>`;
    nothing is remembered between calls. An unset server key rejects
    everything.
    """
    expected = get_settings().ADMIN_API_KEY
    scheme, _, supplied = (authorization or "").partition(" ")

    if (
        not expected
        or scheme.lower() != "bearer"
        or not secrets.compare_digest(supplied.strip().encode(), expected.encode())
    ):
        logger.warning("Unauthorized admin request rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
