import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, CheckConstraint

from storefront.database import Base


def _new_product_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    """
    Product model, the only entity in the catalog.

    Attributes:
        pk: Internal row key, keeps insertion order; never leaves the store
        id: Public identifier (UUID4 hex), assigned once and never reused
        name: Product name
        slug: Unique lookup key used in URLs
        description: Free text, empty by default
        price: Unit price (must be non-negative)
        category: Catalog category
        inventory: Units in stock (must be non-negative)
        image_url: Product image location
        last_updated: Time of the most recent successful write
    """
    __tablename__ = "products"

    pk = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(32), unique=True, nullable=False, default=_new_product_id)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True, index=True)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    category = Column(String(255), nullable=False, index=True)
    inventory = Column(Integer, nullable=False, default=0)
    image_url = Column(String(2048), nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Database-level constraints to ensure data integrity
    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('inventory >= 0', name='check_inventory_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, slug='{self.slug}', inventory={self.inventory})>"
