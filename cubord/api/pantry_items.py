"""Pantry item API endpoints."""

from datetime import date
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from cubord.api.dependencies import get_current_user, get_pantry_item_service
from cubord.models.user import User
from cubord.schemas.pantry_item import (
    PantryItemBatchCreate,
    PantryItemBatchDelete,
    PantryItemBatchDeleteResponse,
    PantryItemCreate,
    PantryItemPage,
    PantryItemResponse,
    PantryItemUpdate,
    PantryStatistics,
)
from cubord.services.pantry_item_service import PantryItemService

router = APIRouter(prefix="/api/v1/pantry-items", tags=["pantry-items"])


@router.post("", response_model=PantryItemResponse, status_code=status.HTTP_201_CREATED)
def create_pantry_item(
    item_data: PantryItemCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    """Stock a product in a location, topping up an item with the same expiration date."""
    return service.create_pantry_item(current_user, item_data)


@router.post("/batch", response_model=list[PantryItemResponse], status_code=status.HTTP_201_CREATED)
def create_pantry_items(
    request: PantryItemBatchCreate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    """Stock several items; nothing is saved if one is rejected."""
    return service.create_pantry_items(current_user, request.items)


@router.post("/batch-delete", response_model=PantryItemBatchDeleteResponse)
def delete_pantry_items(
    request: PantryItemBatchDelete,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    return PantryItemBatchDeleteResponse(deleted=service.delete_pantry_items(current_user, request.item_ids))


@router.get("/location/{location_id}", response_model=list[PantryItemResponse])
def list_location_items(
    location_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    """List a location's stock, soonest expiry first."""
    return service.get_pantry_items_by_location(current_user, location_id)


@router.get("/household/{household_id}", response_model=PantryItemPage)
def list_household_items(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
    page: Annotated[int, Query(ge=0)] = 0,
    size: Annotated[int, Query(ge=1, le=100)] = 20,
):
    return service.get_pantry_items_by_household(current_user, household_id, page, size)


@router.get("/household/{household_id}/low-stock", response_model=list[PantryItemResponse])
def list_low_stock_items(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
    threshold: Annotated[int | None, Query(ge=0)] = None,
):
    return service.get_low_stock_items(current_user, household_id, threshold)


@router.get("/household/{household_id}/expiring", response_model=list[PantryItemResponse])
def list_expiring_items(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
    start_date: Annotated[date | None, Query()] = None,
    end_date: Annotated[date | None, Query()] = None,
):
    """List items expiring in a date range, by default the coming week."""
    return service.get_expiring_items(current_user, household_id, start_date, end_date)


@router.get("/household/{household_id}/search", response_model=list[PantryItemResponse])
def search_household_items(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
    q: Annotated[str, Query(description="Text matched against product name, brand and notes")],
):
    return service.search_pantry_items(current_user, household_id, q)


@router.get("/household/{household_id}/statistics", response_model=PantryStatistics)
def get_pantry_statistics(
    household_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    return service.get_pantry_statistics(current_user, household_id)


@router.get("/{item_id}", response_model=PantryItemResponse)
def get_pantry_item(
    item_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    return service.get_pantry_item(current_user, item_id)


@router.put("/{item_id}", response_model=PantryItemResponse)
def update_pantry_item(
    item_id: UUID,
    item_data: PantryItemUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    return service.update_pantry_item(current_user, item_id, item_data)


@router.patch("/{item_id}", response_model=PantryItemResponse)
def patch_pantry_item(
    item_id: UUID,
    patch_data: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    """Patch quantity, unit, expiration date, notes or location."""
    return service.patch_pantry_item(current_user, item_id, patch_data)


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_pantry_item(
    item_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[PantryItemService, Depends(get_pantry_item_service)],
):
    service.delete_pantry_item(current_user, item_id)
