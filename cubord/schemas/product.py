"""Product schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cubord.models.enums import ProductDataSource


class ProductCreate(BaseModel):
    """Create a catalog product; the UPC lookup may overwrite descriptive fields."""

    upc: str | None = Field(None, max_length=32)
    name: str | None = Field(None, max_length=255)
    brand: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=255)
    default_expiration_days: int | None = None


class ProductUpdate(BaseModel):
    """Update a product; omitted fields are left unchanged."""

    name: str | None = Field(None, max_length=255)
    brand: str | None = Field(None, max_length=255)
    category: str | None = Field(None, max_length=255)
    default_expiration_days: int | None = None


class ProductResponse(BaseModel):
    """Persisted product response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    upc: str
    name: str
    brand: str | None
    category: str | None
    default_expiration_days: int | None
    data_source: ProductDataSource
    requires_api_retry: bool
    retry_attempts: int
    last_retry_attempt: datetime | None
    created_at: datetime
    updated_at: datetime


class ProductPage(BaseModel):
    """One page of the product catalog."""

    items: list[ProductResponse]
    total: int
    page: int
    size: int


class ProductStatistics(BaseModel):
    """Catalog counts by data source and retry state."""

    total: int
    manual: int
    api: int
    requires_retry: int


class UpcLookupResponse(BaseModel):
    """Normalized result of an external UPC lookup."""

    model_config = ConfigDict(from_attributes=True)

    upc: str
    name: str
    brand: str | None
    category: str | None
    data_source: ProductDataSource
    requires_api_retry: bool
    retry_attempts: int
    last_retry_attempt: datetime | None
    nutrition_grade: str | None = None
    ingredients_text: str | None = None
    allergens: str | None = None
    labels: str | None = None


class UpcAvailabilityResponse(BaseModel):
    """Whether a UPC is still free in the catalog."""

    upc: str
    available: bool
    valid_format: bool


class LookupHealthResponse(BaseModel):
    """Reachability of the external product database."""

    available: bool


class BulkImportRequest(BaseModel):
    """Import several products at once."""

    products: list[ProductCreate]


class BulkDeleteRequest(BaseModel):
    """Delete several products at once."""

    product_ids: list[UUID]


class BulkDeleteResponse(BaseModel):
    deleted: int


class BatchRetryResponse(BaseModel):
    """Outcome of a batch enrichment retry."""

    enriched: int
