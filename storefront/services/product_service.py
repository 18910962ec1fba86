from collections.abc import Mapping
from typing import Any, Optional, Union
import logging

from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.exc import DataError, IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from storefront.models.product import Product, utcnow
from storefront.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    InventoryStats,
)
from storefront.services.notifier import (
    ALL_PRODUCTS_KEY,
    ViewInvalidationNotifier,
    product_key,
)

logger = logging.getLogger(__name__)


class ProductStoreError(Exception):
    """Base class for every failure reported by the product store."""
    pass


class InvalidProductError(ProductStoreError):
    """Exception raised when required fields are missing or malformed."""

    def __init__(self, errors: list):
        self.errors = errors
        fields = sorted({".".join(str(p) for p in err.get("loc", ())) for err in errors})
        super().__init__(f"Invalid product data: {', '.join(fields) or 'payload'}")


class SlugConflictError(ProductStoreError):
    """Exception raised when another product already holds the slug."""

    def __init__(self, slug: str):
        self.slug = slug
        super().__init__(f"Slug '{slug}' already exists")


class StoreUnavailableError(ProductStoreError):
    """Exception raised when the database cannot be reached in time."""
    pass


class StoreError(ProductStoreError):
    """Exception raised for any other unexpected database failure."""
    pass


ProductCreateInput = Union[ProductCreate, Mapping[str, Any]]
ProductUpdateInput = Union[ProductUpdate, Mapping[str, Any]]


class ProductService:
    """
    Service class for Product persistence, the single writer of the catalog.

    This service handles:
    - Creating, reading, updating and deleting products by slug
    - Slug uniqueness (enforced by the unique index at commit time)
    - Stamping `last_updated` on every write
    - View invalidation after each successful write

    Every product handed back is a `ProductResponse` snapshot detached from
    the session; changing it never changes stored state. Not-found is
    reported as None, every other failure as a `ProductStoreError`.
    """

    def __init__(self, db: Session, notifier: ViewInvalidationNotifier):
        self.db = db
        self.notifier = notifier

    def list_all(self) -> list[ProductResponse]:
        """Get every product in insertion order."""
        products = self._read(lambda: self.db.query(Product).order_by(Product.pk).all())
        return [self._snapshot(p) for p in products]

    def get_by_slug(self, slug: str) -> Optional[ProductResponse]:
        """
        Get a product by its slug.

        Returns:
            Product snapshot or None if not found
        """
        product = self._read(lambda: self._find(slug))
        return self._snapshot(product) if product else None

    def create(self, product_data: ProductCreateInput) -> ProductResponse:
        """
        Create a new product.

        Args:
            product_data: Validated `ProductCreate` or a raw mapping

        Returns:
            Created product snapshot

        Raises:
            InvalidProductError: If required fields are missing or malformed
            SlugConflictError: If the slug is already taken
        """
        data = self._validate(ProductCreate, product_data)
        product = Product(
            name=data.name,
            slug=data.slug,
            description=data.description,
            price=data.price,
            category=data.category,
            inventory=data.inventory,
            image_url=data.image_url,
            last_updated=utcnow(),
        )
        self.db.add(product)
        self._commit(data.slug)
        self._read(lambda: self.db.refresh(product))
        snapshot = self._snapshot(product)

        logger.info(f"Product '{snapshot.slug}' created with id {snapshot.id}")
        self._invalidate(ALL_PRODUCTS_KEY, product_key(snapshot.slug))
        return snapshot

    def update_by_slug(self, slug: str, product_data: ProductUpdateInput) -> Optional[ProductResponse]:
        """
        Update an existing product.

        Only supplied, non-null fields are applied. The slug itself may be
        changed; the row is locked first so writes to one slug serialize.

        Args:
            slug: Current slug of the product
            product_data: Partial update data

        Returns:
            Updated product snapshot or None if not found

        Raises:
            InvalidProductError: If a supplied field is malformed
            SlugConflictError: If the new slug belongs to another product
        """
        data = self._validate(ProductUpdate, product_data)
        product = self._read(lambda: self._find(slug, lock=True))

        if not product:
            self.db.rollback()
            return None

        # Update only provided fields
        update_data = data.model_dump(exclude_unset=True)
        for field, value in update_data.items():
            if value is not None:
                setattr(product, field, value)
        product.last_updated = utcnow()

        new_slug = product.slug
        self._commit(new_slug)
        self._read(lambda: self.db.refresh(product))
        snapshot = self._snapshot(product)

        logger.info(f"Product '{slug}' updated" + (f" and renamed to '{new_slug}'" if new_slug != slug else ""))
        keys = [ALL_PRODUCTS_KEY, product_key(slug)]
        if new_slug != slug:
            keys.append(product_key(new_slug))
        self._invalidate(*keys)
        return snapshot

    def delete_by_slug(self, slug: str) -> Optional[ProductResponse]:
        """
        Delete a product.

        Returns:
            Snapshot of the removed product or None if not found
        """
        product = self._read(lambda: self._find(slug, lock=True))

        if not product:
            self.db.rollback()
            return None

        snapshot = self._snapshot(product)
        self.db.delete(product)
        self._commit(slug)

        logger.info(f"Product '{slug}' deleted")
        self._invalidate(ALL_PRODUCTS_KEY, product_key(slug))
        return snapshot

    def inventory_summary(self, low_stock_threshold: int) -> InventoryStats:
        """
        Aggregate figures for the inventory dashboard.

        Args:
            low_stock_threshold: Products with at most this many units are low on stock

        Returns:
            Totals plus low-stock products, fewest units first
        """
        products = self.list_all()
        low_stock = sorted(
            (p for p in products if p.inventory <= low_stock_threshold),
            key=lambda p: p.inventory,
        )
        return InventoryStats(
            total_products=len(products),
            total_inventory=sum(p.inventory for p in products),
            total_value=round(sum(p.price * p.inventory for p in products), 2),
            low_stock_threshold=low_stock_threshold,
            low_stock=low_stock,
        )

    def _find(self, slug: str, lock: bool = False) -> Optional[Product]:
        query = self.db.query(Product).filter(Product.slug == slug)
        if lock:
            # Pessimistic locking: same-slug writes apply one after another
            query = query.with_for_update()
        return query.first()

    def _read(self, query):
        try:
            return query()
        except (OperationalError, PoolTimeoutError) as e:
            self.db.rollback()
            logger.error(f"Database unavailable during read: {e}")
            raise StoreUnavailableError("Product store is unavailable") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Unexpected database error during read")
            raise StoreError("Unexpected product store failure") from e

    def _commit(self, slug: str) -> None:
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            # The unique index on slug is the only constraint a validated payload can hit
            logger.warning(f"Slug conflict on '{slug}': {e.orig}")
            raise SlugConflictError(slug) from e
        except DataError as e:
            self.db.rollback()
            logger.warning(f"Value out of range for column while writing '{slug}': {e.orig}")
            raise InvalidProductError([{"loc": ("body",), "msg": "Value out of range"}]) from e
        except (OperationalError, PoolTimeoutError) as e:
            self.db.rollback()
            logger.error(f"Database unavailable during write of '{slug}': {e}")
            raise StoreUnavailableError("Product store is unavailable") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(f"Unexpected database error during write of '{slug}'")
            raise StoreError("Unexpected product store failure") from e

    def _invalidate(self, *keys: str) -> None:
        """Notify after commit; a failing notifier never fails the write."""
        for key in keys:
            try:
                self.notifier.invalidate(key)
            except Exception as e:
                logger.warning(f"Invalidation of '{key}' failed: {e}")

    @staticmethod
    def _validate(schema, product_data):
        if isinstance(product_data, schema):
            return product_data
        if not isinstance(product_data, Mapping):
            raise InvalidProductError([{"loc": ("body",), "msg": "Expected an object"}])
        try:
            return schema.model_validate(product_data)
        except ValidationError as e:
            raise InvalidProductError(e.errors()) from e

    @staticmethod
    def _snapshot(product: Product) -> ProductResponse:
        return ProductResponse(
            id=product.id,
            name=product.name,
            slug=product.slug,
            description=product.description or "",
            price=product.price,
            category=product.category,
            inventory=product.inventory,
            image_url=product.image_url,
            last_updated=product.last_updated,
        )
