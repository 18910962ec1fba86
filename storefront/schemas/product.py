from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# Upper bound of the 32-bit INTEGER column behind `inventory`
MAX_INVENTORY = 2**31 - 1


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case input and emits camelCase on the wire."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class ProductBase(CamelModel):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    slug: str = Field(..., min_length=1, max_length=255, description="Unique URL key")
    description: Optional[str] = Field("", description="Free-text description, null means empty")
    price: float = Field(..., ge=0, description="Unit price (must be non-negative)")
    category: str = Field(..., min_length=1, max_length=255, description="Catalog category")
    inventory: int = Field(..., ge=0, le=MAX_INVENTORY, description="Units in stock (zero is valid)")

    @field_validator("description")
    @classmethod
    def _empty_description(cls, value: Optional[str]) -> str:
        return "" if value is None else value


class ProductCreate(ProductBase):
    """Schema for creating a new product. The image is mandatory on create."""
    image_url: str = Field(..., min_length=1, max_length=2048, description="Product image URL")


class ProductUpdate(CamelModel):
    """Schema for updating an existing product. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    slug: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1, max_length=255)
    inventory: Optional[int] = Field(None, ge=0, le=MAX_INVENTORY)
    image_url: Optional[str] = Field(None, min_length=1, max_length=2048)


class ProductResponse(CamelModel):
    """
    Detached snapshot of a stored product.

    Only public fields are carried; the internal row key never appears.
    `lastUpdated` is always UTC so it survives a JSON round trip intact.
    """
    id: str
    name: str
    slug: str
    description: str = ""
    price: float
    category: str
    inventory: int
    image_url: Optional[str] = None
    last_updated: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("last_updated")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; they were written as UTC.
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class DeletedProductResponse(BaseModel):
    """Schema returned after a successful delete."""
    message: str
    product: ProductResponse


class InventoryStats(CamelModel):
    """Aggregate figures for the inventory dashboard."""
    total_products: int
    total_inventory: int
    total_value: float
    low_stock_threshold: int
    low_stock: list[ProductResponse]


class CatalogResponse(CamelModel):
    """Home page listing: filtered products plus every known category."""
    items: list[ProductResponse]
    categories: list[str]
    total: int
