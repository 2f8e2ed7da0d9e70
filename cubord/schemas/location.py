"""Location schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class LocationCreate(BaseModel):
    """Create a location inside a household."""

    household_id: UUID | None = None
    name: str | None = Field(None, max_length=255)
    description: str | None = None


class LocationUpdate(BaseModel):
    """Update a location; omitted fields are left unchanged."""

    name: str | None = Field(None, max_length=255)
    description: str | None = None


class LocationResponse(BaseModel):
    """Location response."""

    id: UUID
    household_id: UUID
    household_name: str
    name: str
    description: str | None
    created_at: datetime
    updated_at: datetime


class NameAvailabilityResponse(BaseModel):
    """Whether a location name is still free in a household."""

    name: str
    available: bool
