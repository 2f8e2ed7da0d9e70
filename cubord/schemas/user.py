"""User schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserUpdate(BaseModel):
    """Full profile update; omitted fields are left unchanged."""

    display_name: str | None = Field(None, max_length=255)
    email: str | None = Field(None, max_length=255)
    username: str | None = None


class UserResponse(BaseModel):
    """User information response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    username: str
    email: str
    display_name: str | None
    role: str
    created_at: datetime
    updated_at: datetime
