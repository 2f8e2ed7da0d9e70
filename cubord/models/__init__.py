"""SQLAlchemy models."""

from cubord.models.household import Household, HouseholdMember
from cubord.models.location import Location
from cubord.models.pantry_item import PantryItem
from cubord.models.product import Product
from cubord.models.user import User

__all__ = [
    "User",
    "Household",
    "HouseholdMember",
    "Location",
    "PantryItem",
    "Product",
]
