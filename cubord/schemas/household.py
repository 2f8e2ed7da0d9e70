"""Household and membership schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cubord.models.enums import HouseholdRole


class HouseholdCreate(BaseModel):
    """Create a household; the creator becomes its owner."""

    name: str | None = Field(None, max_length=255)


class HouseholdUpdate(BaseModel):
    name: str | None = Field(None, max_length=255)


class HouseholdResponse(BaseModel):
    """Household response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    created_at: datetime
    updated_at: datetime


class OwnershipTransfer(BaseModel):
    """Hand the owner role to another member."""

    new_owner_id: UUID | None = None


class HouseholdMemberCreate(BaseModel):
    """Add an existing user to a household."""

    user_id: UUID | None = None
    role: HouseholdRole | None = None


class HouseholdMemberRoleUpdate(BaseModel):
    role: HouseholdRole | None = None


class HouseholdMemberResponse(BaseModel):
    """Membership response with the member's username and household name."""

    id: UUID
    user_id: UUID
    username: str
    household_id: UUID
    household_name: str
    role: HouseholdRole
    created_at: datetime
