"""Reset the catalog to the sample products.

Run with `python -m storefront.scripts.seed`.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError

from storefront.database import Base, SessionLocal, engine
from storefront.models.product import Product, utcnow
from storefront.services.notifier import (
    ALL_PRODUCTS_KEY,
    CacheInvalidationNotifier,
    ViewInvalidationNotifier,
    product_key,
)

logger = logging.getLogger(__name__)

SAMPLE_PRODUCTS = [
    {
        "name": "Ceramic Mug",
        "slug": "ceramic-mug",
        "description": "Stoneware mug, 350 ml, dishwasher safe.",
        "price": 12.5,
        "category": "Kitchen",
        "inventory": 42,
        "image_url": "https://images.example.com/products/ceramic-mug.jpg",
    },
    {
        "name": "Chef's Knife",
        "slug": "chefs-knife",
        "description": "20 cm carbon steel blade with walnut handle.",
        "price": 89.0,
        "category": "Kitchen",
        "inventory": 7,
        "image_url": "https://images.example.com/products/chefs-knife.jpg",
    },
    {
        "name": "Wireless Headphones",
        "slug": "wireless-headphones",
        "description": "Over-ear, noise cancelling, 30 hour battery.",
        "price": 149.99,
        "category": "Electronics",
        "inventory": 15,
        "image_url": "https://images.example.com/products/wireless-headphones.jpg",
    },
    {
        "name": "USB-C Charger",
        "slug": "usb-c-charger",
        "description": "65 W GaN charger with two ports.",
        "price": 39.0,
        "category": "Electronics",
        "inventory": 0,
        "image_url": "https://images.example.com/products/usb-c-charger.jpg",
    },
    {
        "name": "Linen Throw",
        "slug": "linen-throw",
        "description": "Washed linen blanket, 130 x 170 cm.",
        "price": 64.0,
        "category": "Home",
        "inventory": 23,
        "image_url": "https://images.example.com/products/linen-throw.jpg",
    },
    {
        "name": "Desk Lamp",
        "slug": "desk-lamp",
        "description": "Adjustable LED lamp with warm and cool modes.",
        "price": 45.0,
        "category": "Home",
        "inventory": 4,
        "image_url": "https://images.example.com/products/desk-lamp.jpg",
    },
]


def seed_database(session_factory=SessionLocal, notifier: ViewInvalidationNotifier = None) -> int:
    """
    Replace every product with the sample data.

    Returns:
        Number of products inserted
    """
    notifier = notifier or CacheInvalidationNotifier()
    db = session_factory()
    try:
        previous = [slug for (slug,) in db.query(Product.slug).all()]

        logger.info("Clearing existing products...")
        db.query(Product).delete()

        logger.info("Inserting sample products...")
        now = utcnow()
        db.add_all(Product(**data, last_updated=now) for data in SAMPLE_PRODUCTS)
        db.commit()
        logger.info(f"Successfully inserted {len(SAMPLE_PRODUCTS)} sample products")
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Error seeding database")
        raise
    finally:
        db.close()

    for key in dict.fromkeys(
        [ALL_PRODUCTS_KEY]
        + [product_key(slug) for slug in previous]
        + [product_key(data["slug"]) for data in SAMPLE_PRODUCTS]
    ):
        notifier.invalidate(key)

    return len(SAMPLE_PRODUCTS)


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    Base.metadata.create_all(bind=engine)
    seed_database()
