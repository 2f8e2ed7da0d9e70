"""Pydantic schemas for API requests and responses."""

from cubord.schemas.location import LocationCreate, LocationResponse, LocationUpdate
from cubord.schemas.product import ProductCreate, ProductResponse, ProductUpdate, UpcLookupResponse
from cubord.schemas.user import UserResponse, UserUpdate

__all__ = [
    "UserResponse",
    "UserUpdate",
    "LocationCreate",
    "LocationUpdate",
    "LocationResponse",
    "ProductCreate",
    "ProductUpdate",
    "ProductResponse",
    "UpcLookupResponse",
]
