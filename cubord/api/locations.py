"""Location API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from cubord.api.dependencies import get_current_user, get_location_service
from cubord.models.user import User
from cubord.schemas.location import LocationCreate, LocationResponse, LocationUpdate, NameAvailabilityResponse
from cubord.services.location_service import LocationService

router = APIRouter(prefix="/api/v1/locations", tags=["locations"])


@router.post("", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def create_location(
    location_data: LocationCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    """Create a location in one of the user's households."""
    return service.create_location(current_user, location_data)


@router.get("/household/{household_id}", response_model=list[LocationResponse])
def list_household_locations(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    """List the locations of a household, sorted by name."""
    return service.get_locations_by_household(current_user, household_id)


@router.get("/household/{household_id}/search", response_model=list[LocationResponse])
def search_household_locations(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
    q: Annotated[str, Query(description="Text matched against name and description")],
):
    return service.search_locations(current_user, household_id, q)


@router.get("/household/{household_id}/name-available", response_model=NameAvailabilityResponse)
def check_location_name(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
    name: Annotated[str, Query()],
):
    available = service.is_location_name_available(current_user, household_id, name)
    return NameAvailabilityResponse(name=name, available=available)


@router.get("/{location_id}", response_model=LocationResponse)
def get_location(
    location_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    return service.get_location(current_user, location_id)


@router.put("/{location_id}", response_model=LocationResponse)
def update_location(
    location_id: UUID,
    location_data: LocationUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    return service.update_location(current_user, location_id, location_data)


@router.patch("/{location_id}", response_model=LocationResponse)
def patch_location(
    location_id: UUID,
    patch_data: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    """Patch a location's name and/or description."""
    return service.patch_location(current_user, location_id, patch_data)


@router.delete("/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_location(
    location_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[LocationService, Depends(get_location_service)],
):
    service.delete_location(current_user, location_id)
