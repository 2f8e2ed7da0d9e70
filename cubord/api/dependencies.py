"""FastAPI dependencies for authentication, database and services."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from cubord.database import get_db
from cubord.exceptions import AuthenticationRequiredError
from cubord.models.user import User
from cubord.services.auth import TokenClaims, decode_access_token
from cubord.services.household_member_service import HouseholdMemberService
from cubord.services.household_service import HouseholdService
from cubord.services.identity import IdentityResolver
from cubord.services.location_service import LocationService
from cubord.services.pantry_item_service import PantryItemService
from cubord.services.product_service import ProductService
from cubord.services.upc_api import UpcApiService
from cubord.services.user_service import UserService

security = HTTPBearer(auto_error=False)


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Resolve the bearer token to a user, creating the user on first sight."""
    if credentials is None:
        raise AuthenticationRequiredError("Authentication required")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise AuthenticationRequiredError("Invalid authentication credentials")

    return IdentityResolver(db).resolve(TokenClaims.from_payload(payload))


def get_upc_api_service() -> UpcApiService:
    """Get UPC lookup service instance."""
    return UpcApiService()


def get_location_service(
    db: Annotated[Session, Depends(get_db)],
) -> LocationService:
    """Get location service with dependencies."""
    return LocationService(db)


def get_product_service(
    db: Annotated[Session, Depends(get_db)],
    upc_api: Annotated[UpcApiService, Depends(get_upc_api_service)],
) -> ProductService:
    """Get product service with dependencies."""
    return ProductService(db, upc_api)


def get_user_service(
    db: Annotated[Session, Depends(get_db)],
) -> UserService:
    """Get user service with dependencies."""
    return UserService(db)


def get_household_service(
    db: Annotated[Session, Depends(get_db)],
) -> HouseholdService:
    """Get household service with dependencies."""
    return HouseholdService(db)


def get_household_member_service(
    db: Annotated[Session, Depends(get_db)],
) -> HouseholdMemberService:
    return HouseholdMemberService(db)


def get_pantry_item_service(
    db: Annotated[Session, Depends(get_db)],
) -> PantryItemService:
    """Get pantry item service with dependencies."""
    return PantryItemService(db)
