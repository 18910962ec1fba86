from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from storefront.config import get_settings
from storefront.database import engine, Base
from storefront.api import products, catalog, health

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    # Startup
    logger.info("Starting up storefront...")

    # Create database tables
    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    if not settings.ADMIN_API_KEY:
        logger.warning("ADMIN_API_KEY is not set; every admin request will be rejected")

    yield

    # Shutdown
    logger.info("Shutting down storefront...")


# Create FastAPI application
app = FastAPI(
    title="Storefront Catalog",
    description="""
    Backend for a small storefront built around a single product catalog:

    - **Product Management**: Create, list, update (including slug rename) and delete products
    - **Catalog**: Public cached listing with search and category filters, and cached product detail
    - **Inventory Dashboard**: Stock totals, stock value and low-stock products
    - **Page Revalidation**: Background Celery task refreshes cached pages after each write

    ## Features

    ### Slug Uniqueness
    Slugs are unique at the database level. When two creates race for the
    same slug, exactly one succeeds and the other receives 409.

    ### View Invalidation
    Every successful write invalidates the cached `all products` view and the
    `product:<slug>` view of each affected slug, old and new on rename.

    ### Authentication
    Admin routes require `Authorization: Bearer <ADMIN_API_KEY>` on every call.
    """,
    version="1.0.0",
    license_info={
        "name": "MIT",
        "url": "https://opensource.org/licenses/MIT"
    },
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(health.router, prefix="/api/v1")
app.include_router(products.router, prefix="/api/v1")
app.include_router(catalog.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
def root():
    """Root endpoint with API information."""
    return {
        "name": "Storefront Catalog",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/api/v1/health"
    }
