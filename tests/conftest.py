import os

# Settings are read once at import time; point them at test values first.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["ADMIN_API_KEY"] = "test-admin-key"

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.main import app
from storefront.database import Base, get_db
from storefront.api.deps import get_cache
from storefront.services.product_service import ProductService
from storefront.utils.cache import CacheService
from tests.fakes import FakeRedis, RecordingNotifier


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ADMIN_KEY = "test-admin-key"


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def cache(fake_redis):
    """Cache service backed by an in-memory Redis double."""
    return CacheService(client=fake_redis, ttl=60)


@pytest.fixture
def page_revalidation():
    """Celery enqueue of the page revalidation task, mocked."""
    with patch("storefront.api.products.revalidate_pages.delay") as delay:
        yield delay


@pytest.fixture(scope="function")
def client(cache, page_revalidation):
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)
    app.dependency_overrides[get_cache] = lambda: cache

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_cache, None)
    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {ADMIN_KEY}"}


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(db_session, notifier):
    return ProductService(db_session, notifier)


@pytest.fixture
def mug_data():
    return {
        "name": "Mug",
        "slug": "mug",
        "price": 12.5,
        "category": "Kitchen",
        "inventory": 5,
        "imageUrl": "http://x/i.png",
    }
