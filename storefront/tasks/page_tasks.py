import logging

from storefront.tasks.celery_app import celery_app
from storefront.utils.cache import cache_service

logger = logging.getLogger(__name__)

PAGE_CACHE_PREFIX = "page"


def product_page_path(slug: str) -> str:
    """Route of the statically cached product detail page."""
    return f"/products/{slug}"


@celery_app.task(bind=True, name="revalidate_pages")
def revalidate_pages(self, paths: list[str]) -> dict:
    """
    Background task to drop statically cached pages.

    The renderer stores each page under `page:<path>`; once removed it is
    rebuilt on the next request. Deleting an absent page is a no-op, so the
    task is safe to retry.

    Args:
        paths: Page routes to revalidate, e.g. ["/", "/products/mug"]

    Returns:
        Dictionary with the revalidated and failed paths
    """
    revalidated = []
    failed = []
    for path in paths:
        if cache_service.delete(PAGE_CACHE_PREFIX, path):
            revalidated.append(path)
        else:
            failed.append(path)

    if failed:
        logger.warning(f"Could not revalidate pages {failed}, retrying")
        raise self.retry(countdown=10, max_retries=3)

    logger.info(f"Revalidated pages {revalidated}")
    return {"status": "success", "revalidated": revalidated}
