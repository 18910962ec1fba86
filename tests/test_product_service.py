"""Tests for the product store: uniqueness, partial updates, snapshots, invalidation."""
import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import DataError, OperationalError
from sqlalchemy.orm import sessionmaker

from storefront.database import Base
from storefront.schemas.product import MAX_INVENTORY, ProductCreate, ProductResponse
from storefront.services.notifier import ALL_PRODUCTS_KEY
from storefront.services.product_service import (
    ProductService,
    InvalidProductError,
    SlugConflictError,
    StoreUnavailableError,
)
from tests.fakes import BrokenNotifier, RecordingNotifier


def test_end_to_end_scenario(service, mug_data):
    """Create, list, update inventory to zero, delete, list again."""
    created = service.create(mug_data)

    assert created.id
    assert created.last_updated.tzinfo is not None
    assert service.list_all() == [created]

    updated = service.update_by_slug("mug", {"inventory": 0})

    assert updated.inventory == 0
    assert updated.last_updated >= created.last_updated
    assert updated.model_dump(exclude={"inventory", "last_updated"}) == \
        created.model_dump(exclude={"inventory", "last_updated"})

    deleted = service.delete_by_slug("mug")

    assert deleted == updated
    assert service.list_all() == []


def test_create_stamps_last_updated(service, mug_data):
    stamp = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    with patch("storefront.services.product_service.utcnow", return_value=stamp):
        created = service.create(mug_data)

    assert created.last_updated == stamp


def test_create_accepts_schema_instance(service, mug_data):
    created = service.create(ProductCreate(**mug_data))

    assert created.slug == "mug"
    assert created.image_url == "http://x/i.png"


def test_create_missing_inventory_is_invalid(service, mug_data):
    del mug_data["inventory"]

    with pytest.raises(InvalidProductError) as exc_info:
        service.create(mug_data)

    assert "inventory" in str(exc_info.value)
    assert service.list_all() == []


def test_create_null_image_url_is_invalid(service, mug_data):
    mug_data["imageUrl"] = None

    with pytest.raises(InvalidProductError):
        service.create(mug_data)


def test_create_zero_price_is_valid(service, mug_data):
    mug_data["price"] = 0

    assert service.create(mug_data).price == 0


def test_create_rejects_non_mapping(service):
    with pytest.raises(InvalidProductError):
        service.create(["not", "a", "product"])


def test_create_duplicate_slug_conflicts(service, mug_data):
    service.create(mug_data)

    with pytest.raises(SlugConflictError) as exc_info:
        service.create({**mug_data, "name": "Other Mug"})

    assert exc_info.value.slug == "mug"
    assert [p.name for p in service.list_all()] == ["Mug"]


def test_concurrent_creates_with_same_slug_exactly_one_wins(tmp_path, mug_data):
    """Two racing creates for one slug: one product, one conflict."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    barrier = threading.Barrier(2)

    def attempt(name):
        db = Session()
        try:
            store = ProductService(db, RecordingNotifier())
            barrier.wait()
            return store.create({**mug_data, "name": name})
        except SlugConflictError as e:
            return e
        finally:
            db.close()

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, ["Mug A", "Mug B"]))

    winners = [r for r in results if isinstance(r, ProductResponse)]
    losers = [r for r in results if isinstance(r, SlugConflictError)]
    assert len(winners) == 1
    assert len(losers) == 1

    db = Session()
    try:
        stored = ProductService(db, RecordingNotifier()).list_all()
    finally:
        db.close()
    assert stored == winners
    engine.dispose()


def test_partial_update_changes_only_price(service, mug_data):
    before = service.create(mug_data)
    later = before.last_updated + timedelta(minutes=5)

    with patch("storefront.services.product_service.utcnow", return_value=later):
        after = service.update_by_slug("mug", {"price": 9.99})

    assert after.price == 9.99
    assert after.last_updated == later
    assert after.model_dump(exclude={"price", "last_updated"}) == \
        before.model_dump(exclude={"price", "last_updated"})


def test_update_ignores_null_fields(service, mug_data):
    service.create(mug_data)

    updated = service.update_by_slug("mug", {"name": None, "description": "Tall"})

    assert updated.name == "Mug"
    assert updated.description == "Tall"


def test_update_ignores_caller_id(service, mug_data):
    created = service.create(mug_data)

    updated = service.update_by_slug("mug", {"id": "other", "inventory": 1})

    assert updated.id == created.id


def test_rename_moves_lookup_key(service, mug_data):
    created = service.create(mug_data)

    renamed = service.update_by_slug("mug", {"slug": "new-mug"})

    assert renamed.id == created.id
    assert service.get_by_slug("mug") is None
    assert service.get_by_slug("new-mug") == renamed


def test_rename_to_taken_slug_conflicts(service, mug_data):
    service.create(mug_data)
    service.create({**mug_data, "slug": "cup", "name": "Cup"})

    with pytest.raises(SlugConflictError):
        service.update_by_slug("cup", {"slug": "mug", "price": 1.0})

    cup = service.get_by_slug("cup")
    assert cup.name == "Cup"
    assert cup.price == 12.5


def test_rename_to_own_slug_is_not_a_rename(service, notifier, mug_data):
    service.create(mug_data)
    notifier.keys.clear()

    service.update_by_slug("mug", {"slug": "mug", "inventory": 2})

    assert notifier.keys == [ALL_PRODUCTS_KEY, "product:mug"]


def test_update_missing_product(service):
    assert service.update_by_slug("nope", {"price": 1.0}) is None


def test_update_invalid_field(service, mug_data):
    service.create(mug_data)

    with pytest.raises(InvalidProductError):
        service.update_by_slug("mug", {"price": -1})

    assert service.get_by_slug("mug").price == 12.5


def test_delete_is_final(service, mug_data):
    service.create(mug_data)

    assert service.delete_by_slug("mug").slug == "mug"
    assert service.get_by_slug("mug") is None
    assert service.delete_by_slug("mug") is None


def test_ids_are_not_reused_after_delete(service, mug_data):
    first = service.create(mug_data)
    service.delete_by_slug("mug")

    second = service.create(mug_data)

    assert second.id != first.id


def test_snapshots_are_detached(service, mug_data):
    """Mutating returned values never reaches the store."""
    service.create(mug_data)

    snapshot = service.get_by_slug("mug")
    snapshot.price = 0.0
    snapshot.name = "Changed"
    listing = service.list_all()
    listing[0].inventory = 999
    listing.clear()

    fresh = service.get_by_slug("mug")
    assert fresh.price == 12.5
    assert fresh.name == "Mug"
    assert fresh.inventory == 5
    assert len(service.list_all()) == 1


def test_snapshot_round_trips_through_json(service, mug_data):
    created = service.create(mug_data)

    payload = created.model_dump_json(by_alias=True)

    assert '"lastUpdated"' in payload
    assert '"imageUrl"' in payload
    assert ProductResponse.model_validate_json(payload) == created


def test_writes_emit_invalidation_keys(service, notifier, mug_data):
    service.create(mug_data)
    assert notifier.keys == [ALL_PRODUCTS_KEY, "product:mug"]

    notifier.keys.clear()
    service.update_by_slug("mug", {"slug": "big-mug"})
    assert notifier.keys == [ALL_PRODUCTS_KEY, "product:mug", "product:big-mug"]

    notifier.keys.clear()
    service.delete_by_slug("big-mug")
    assert notifier.keys == [ALL_PRODUCTS_KEY, "product:big-mug"]


def test_failed_writes_do_not_invalidate(service, notifier, mug_data):
    service.create(mug_data)
    notifier.keys.clear()

    with pytest.raises(SlugConflictError):
        service.create(mug_data)
    service.update_by_slug("missing", {"price": 1.0})
    service.delete_by_slug("missing")

    assert notifier.keys == []


def test_broken_notifier_does_not_fail_writes(db_session, mug_data):
    store = ProductService(db_session, BrokenNotifier())

    created = store.create(mug_data)
    store.update_by_slug("mug", {"inventory": 1})

    assert store.get_by_slug("mug").inventory == 1
    assert store.delete_by_slug("mug").id == created.id


def test_unreachable_database_is_unavailable(service):
    error = OperationalError("SELECT 1", {}, Exception("connection refused"))
    with patch.object(service.db, "query", side_effect=error):
        with pytest.raises(StoreUnavailableError):
            service.get_by_slug("mug")


def test_inventory_summary(service, mug_data):
    service.create(mug_data)
    service.create({**mug_data, "slug": "bowl", "name": "Bowl", "price": 8.0, "inventory": 20})
    service.create({**mug_data, "slug": "plate", "name": "Plate", "price": 4.0, "inventory": 1})

    stats = service.inventory_summary(10)

    assert stats.total_products == 3
    assert stats.total_inventory == 26
    assert stats.total_value == 226.5
    assert [p.slug for p in stats.low_stock] == ["plate", "mug"]


def test_create_inventory_out_of_range_is_invalid(service, mug_data):
    with pytest.raises(InvalidProductError) as exc_info:
        service.create({**mug_data, "inventory": 10**20})

    assert "inventory" in str(exc_info.value)
    assert service.list_all() == []


def test_inventory_at_column_limit_is_valid(service, mug_data):
    assert service.create({**mug_data, "inventory": MAX_INVENTORY}).inventory == MAX_INVENTORY


def test_update_inventory_out_of_range_is_invalid(service, mug_data):
    service.create(mug_data)

    with pytest.raises(InvalidProductError):
        service.update_by_slug("mug", {"inventory": MAX_INVENTORY + 1})

    assert service.get_by_slug("mug").inventory == 5


def test_database_range_error_is_invalid_input(service, notifier, mug_data):
    error = DataError("INSERT INTO products", {}, Exception("integer out of range"))
    with patch.object(service.db, "commit", side_effect=error):
        with pytest.raises(InvalidProductError):
            service.create(mug_data)

    assert notifier.keys == []


def test_create_null_description_is_empty(service, mug_data):
    created = service.create({**mug_data, "description": None})

    assert created.description == ""
    assert service.get_by_slug("mug").description == ""


def test_refresh_failure_after_write_is_unavailable(service, mug_data):
    error = OperationalError("SELECT products", {}, Exception("server closed the connection"))
    with patch.object(service.db, "refresh", side_effect=error):
        with pytest.raises(StoreUnavailableError):
            service.create(mug_data)
