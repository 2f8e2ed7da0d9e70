"""Enums for model fields."""

from enum import Enum


class UserRole(str, Enum):
    """Global role of a user across the whole catalog."""

    USER = "USER"
    ADMIN = "ADMIN"


class HouseholdRole(str, Enum):
    """Role of a member inside one household."""

    OWNER = "OWNER"
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class ProductDataSource(str, Enum):
    """Where the descriptive fields of a product came from."""

    MANUAL = "MANUAL"
    EXTERNAL_API = "EXTERNAL_API"
