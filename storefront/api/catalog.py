import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from storefront.api.deps import get_catalog_views, store_failure
from storefront.services.catalog_views import CatalogViews
from storefront.services.product_service import StoreUnavailableError, StoreError
from storefront.schemas.product import CatalogResponse, ProductResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["Catalog"])


@router.get(
    "/",
    response_model=CatalogResponse,
    summary="Browse the catalog",
    description="Public product listing served from the cached home page view, with search and category filters."
)
def browse_catalog(
    search: Optional[str] = Query(None, description="Match against product name or category"),
    category: Optional[str] = Query(None, description="Exact category, or 'all'"),
    views: CatalogViews = Depends(get_catalog_views)
):
    """
    Browse products.

    The unfiltered list is cached until the next product write or TTL expiry;
    filters are applied to the cached list.
    """
    try:
        products = views.product_list()
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "fetching catalog")

    items = views.search(products, search, category)
    return CatalogResponse(
        items=items,
        categories=views.categories(products),
        total=len(items)
    )


@router.get(
    "/{slug}",
    response_model=ProductResponse,
    summary="Product detail page data",
    description="Public product detail served from the cached detail view."
)
def product_detail(slug: str, views: CatalogViews = Depends(get_catalog_views)):
    """Get the cached detail view of a product."""
    try:
        product = views.product_detail(slug)
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "fetching product")

    if not product:
        logger.warning(f"Catalog detail not found for slug: '{slug}'")
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Product not found"
        )

    return product
