"""Pantry item schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field

from cubord.schemas.product import ProductResponse


class PantryItemCreate(BaseModel):
    """Put a quantity of a product into a location.

    An existing item for the same product, location and expiration date is
    topped up instead of creating a second row.
    """

    product_id: UUID | None = None
    location_id: UUID | None = None
    expiration_date: date | None = None
    quantity: int | None = None
    unit_of_measure: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)


class PantryItemUpdate(BaseModel):
    """Update a pantry item; omitted fields are left unchanged."""

    location_id: UUID | None = None
    expiration_date: date | None = None
    quantity: int | None = None
    unit_of_measure: str | None = Field(None, max_length=50)
    notes: str | None = Field(None, max_length=500)


class PantryItemResponse(BaseModel):
    """Pantry item with its product and where it is kept."""

    id: UUID
    product: ProductResponse
    location_id: UUID
    location_name: str
    household_id: UUID
    expiration_date: date | None
    quantity: int | None
    unit_of_measure: str | None
    notes: str | None
    created_at: datetime
    updated_at: datetime


class PantryItemPage(BaseModel):
    """One page of a household's pantry items."""

    items: list[PantryItemResponse]
    total: int
    page: int
    size: int


class PantryStatistics(BaseModel):
    """Stock counts for one household."""

    total_items: int
    unique_products: int
    expiring_within_week: int
    low_stock: int


class PantryItemBatchCreate(BaseModel):
    """Stock several items at once."""

    items: list[PantryItemCreate]


class PantryItemBatchDelete(BaseModel):
    item_ids: list[UUID]


class PantryItemBatchDeleteResponse(BaseModel):
    deleted: int
