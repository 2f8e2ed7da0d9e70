"""User profile API endpoints."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status

from cubord.api.dependencies import get_current_user, get_user_service
from cubord.models.user import User
from cubord.schemas.user import UserResponse, UserUpdate
from cubord.services.user_service import UserService

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    """Get the current user's profile, creating it on the first request."""
    return service.get_current_user_details(current_user)


@router.get("/username/{username}", response_model=UserResponse)
def get_user_by_username(
    username: str,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    return service.get_user_by_username(current_user, username)


@router.get("/{user_id}", response_model=UserResponse)
def get_user(
    user_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    return service.get_user(current_user, user_id)


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: UUID,
    user_data: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    return service.update_user(current_user, user_id, user_data)


@router.patch("/{user_id}", response_model=UserResponse)
def patch_user(
    user_id: UUID,
    patch_data: Annotated[dict[str, Any], Body()],
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    return service.patch_user(current_user, user_id, patch_data)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: UUID,
    current_user: Annotated[User, Depends(get_current_user)],
    service: Annotated[UserService, Depends(get_user_service)],
):
    """Delete the current user's own profile."""
    service.delete_user(current_user, user_id)
