"""Household and membership API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from cubord.api.dependencies import get_current_user, get_household_member_service, get_household_service
from cubord.models.user import User
from cubord.schemas.household import (
    HouseholdCreate,
    HouseholdMemberCreate,
    HouseholdMemberResponse,
    HouseholdMemberRoleUpdate,
    HouseholdResponse,
    HouseholdUpdate,
    OwnershipTransfer,
)
from cubord.services.household_member_service import HouseholdMemberService
from cubord.services.household_service import HouseholdService

router = APIRouter(prefix="/api/v1/households", tags=["households"])


@router.post("", response_model=HouseholdResponse, status_code=status.HTTP_201_CREATED)
def create_household(
    household_data: HouseholdCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    """Create a household owned by the current user."""
    return service.create_household(current_user, household_data)


@router.get("", response_model=list[HouseholdResponse])
def list_households(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    """List the current user's households."""
    return service.get_user_households(current_user)


@router.get("/search", response_model=list[HouseholdResponse])
def search_households(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
    q: Annotated[str, Query(description="Text matched against household names")],
):
    return service.search_households(current_user, q)


@router.get("/{household_id}", response_model=HouseholdResponse)
def get_household(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    return service.get_household(current_user, household_id)


@router.put("/{household_id}", response_model=HouseholdResponse)
def update_household(
    household_id: UUID,
    household_data: HouseholdUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    return service.update_household(current_user, household_id, household_data)


@router.patch("/{household_id}", response_model=HouseholdResponse)
def patch_household(
    household_id: UUID,
    patch_data: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    return service.patch_household(current_user, household_id, patch_data)


@router.delete("/{household_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_household(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    """Delete a household; owner only."""
    service.delete_household(current_user, household_id)


@router.post("/{household_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
def leave_household(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    service.leave_household(current_user, household_id)


@router.post("/{household_id}/transfer-ownership", status_code=status.HTTP_204_NO_CONTENT)
def transfer_ownership(
    household_id: UUID,
    transfer: OwnershipTransfer,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdService, Depends(get_household_service)],
):
    """Hand ownership to another member; the current owner becomes an admin."""
    service.transfer_ownership(current_user, household_id, transfer.new_owner_id)


# Members


@router.post(
    "/{household_id}/members",
    response_model=HouseholdMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_member(
    household_id: UUID,
    member_data: HouseholdMemberCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdMemberService, Depends(get_household_member_service)],
):
    """Add an existing user to the household; owners and admins only."""
    return service.add_member(current_user, household_id, member_data)


@router.get("/{household_id}/members", response_model=list[HouseholdMemberResponse])
def list_members(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdMemberService, Depends(get_household_member_service)],
):
    return service.get_members(current_user, household_id)


@router.get("/{household_id}/members/{member_id}", response_model=HouseholdMemberResponse)
def get_member(
    household_id: UUID,
    member_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdMemberService, Depends(get_household_member_service)],
):
    return service.get_member(current_user, household_id, member_id)


@router.delete("/{household_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_member(
    household_id: UUID,
    member_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdMemberService, Depends(get_household_member_service)],
):
    service.remove_member(current_user, household_id, member_id)


@router.put("/{household_id}/members/{member_id}/role", response_model=HouseholdMemberResponse)
def update_member_role(
    household_id: UUID,
    member_id: UUID,
    role_data: HouseholdMemberRoleUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[HouseholdMemberService, Depends(get_household_member_service)],
):
    return service.update_member_role(current_user, household_id, member_id, role_data.role)
