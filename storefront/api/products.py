import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from storefront.api.deps import get_product_service, require_admin_key, store_failure
from storefront.config import get_settings
from storefront.services.product_service import (
    ProductService,
    InvalidProductError,
    SlugConflictError,
    StoreUnavailableError,
    StoreError,
)
from storefront.schemas.product import (
    ProductResponse,
    DeletedProductResponse,
    InventoryStats,
)
from storefront.tasks.page_tasks import revalidate_pages, product_page_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["Products"])


def _not_found(slug: str) -> HTTPException:
    logger.warning(f"Product not found for slug: '{slug}'")
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")


def schedule_page_revalidation(*slugs: str) -> None:
    """
    Ask the renderer to rebuild the home page and the given detail pages.

    Enqueueing is best effort; the write has already been committed.
    """
    paths = ["/"] + [product_page_path(s) for s in dict.fromkeys(slugs)]
    try:
        revalidate_pages.delay(paths)
    except Exception as e:
        logger.warning(f"Could not schedule revalidation of {paths}: {e}")


@router.get(
    "/",
    response_model=list[ProductResponse],
    dependencies=[Depends(require_admin_key)],
    summary="List all products",
    description="Get every product. Requires the admin bearer key."
)
def list_products(service: ProductService = Depends(get_product_service)):
    """Get every product in insertion order."""
    try:
        return service.list_all()
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "fetching products")


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin_key)],
    summary="Create a new product",
    description="Create a new product. Fails with 409 if the slug is taken."
)
def create_product(
    payload: Any = Body(...),
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    - **name**, **slug**, **category**, **imageUrl**: non-empty (required)
    - **price**: non-negative (required)
    - **inventory**: non-negative, zero allowed (required)
    - **description**: optional, defaults to empty
    """
    try:
        product = service.create(payload)
    except (InvalidProductError, SlugConflictError, StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "creating product")

    schedule_page_revalidation(product.slug)
    return product


@router.get(
    "/stats",
    response_model=InventoryStats,
    dependencies=[Depends(require_admin_key)],
    summary="Inventory dashboard figures",
    description="Totals across the catalog and the products running low on stock."
)
def inventory_stats(
    low_stock_threshold: Optional[int] = Query(
        None, ge=0, alias="lowStockThreshold", description="Low stock cut-off (inclusive)"
    ),
    service: ProductService = Depends(get_product_service)
):
    """Get inventory totals and low-stock products."""
    if low_stock_threshold is None:
        low_stock_threshold = get_settings().LOW_STOCK_THRESHOLD
    try:
        return service.inventory_summary(low_stock_threshold)
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "fetching inventory stats")


@router.get(
    "/{slug}",
    response_model=ProductResponse,
    summary="Get product by slug",
    description="Get detailed information about a specific product."
)
def get_product(slug: str, service: ProductService = Depends(get_product_service)):
    """Get a product by slug. Public."""
    logger.info(f"Received request for slug: '{slug}'")
    try:
        product = service.get_by_slug(slug)
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "fetching product")

    if not product:
        raise _not_found(slug)

    return product


@router.put(
    "/{slug}",
    response_model=ProductResponse,
    dependencies=[Depends(require_admin_key)],
    summary="Update a product",
    description="Update product details, including renaming the slug. Only provided fields will be updated."
)
def update_product(
    slug: str,
    payload: Any = Body(...),
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Views and pages for the old and the new slug are refreshed.
    """
    try:
        product = service.update_by_slug(slug, payload)
    except (InvalidProductError, SlugConflictError, StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "updating product")

    if not product:
        raise _not_found(slug)

    if product.slug != slug:
        logger.info(f"Slug changed from '{slug}' to '{product.slug}'")
    schedule_page_revalidation(slug, product.slug)
    return product


@router.delete(
    "/{slug}",
    response_model=DeletedProductResponse,
    dependencies=[Depends(require_admin_key)],
    summary="Delete a product",
    description="Delete a product by slug. Deletion is permanent."
)
def delete_product(slug: str, service: ProductService = Depends(get_product_service)):
    """Delete a product and return what was removed."""
    try:
        product = service.delete_by_slug(slug)
    except (StoreUnavailableError, StoreError) as e:
        raise store_failure(e, "deleting product")

    if not product:
        raise _not_found(slug)

    schedule_page_revalidation(slug)
    return DeletedProductResponse(message="Product deleted successfully", product=product)
