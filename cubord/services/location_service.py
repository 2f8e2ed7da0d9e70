"""Location service for household storage places."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.database import LIKE_ESCAPE, contains_pattern
from cubord.exceptions import ConflictError, CubordError, DataIntegrityError, NotFoundError, ValidationError
from cubord.models.household import Household
from cubord.models.location import Location
from cubord.models.user import User
from cubord.schemas.location import LocationCreate, LocationResponse, LocationUpdate
from cubord.services.access_guard import AccessGuard

logger = logging.getLogger(__name__)


class LocationService:
    """Service for location CRUD and search inside a household."""

    def __init__(self, db: Session, guard: AccessGuard | None = None):
        self.db = db
        self.guard = guard or AccessGuard(db)

    def create_location(self, user: User, request: LocationCreate | None) -> LocationResponse:
        """Create a location in a household the user belongs to."""
        if request is None:
            raise ValidationError("Location request cannot be null")
        if request.household_id is None:
            raise ValidationError("Household ID cannot be null")
        name = _require_name(request.name)

        logger.debug(f"User {user.id} creating location '{name}' in household {request.household_id}")

        household = self._get_household(request.household_id)
        self.guard.authorize(user, household.id)
        self._ensure_name_free(household.id, name)

        location = Location(household_id=household.id, name=name, description=request.description)
        self.db.add(location)
        self._commit(location, f"Failed to save location '{name}'")
        logger.info(f"User {user.id} created location {location.id} in household {household.id}")
        return self._to_response(location)

    def get_location(self, user: User, location_id: UUID | None) -> LocationResponse:
        """Get a location the user can see."""
        location = self._get_location(location_id)
        self.guard.authorize(user, location.household_id)
        return self._to_response(location)

    def get_locations_by_household(self, user: User, household_id: UUID | None) -> list[LocationResponse]:
        """List all locations of a household, sorted by name."""
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        locations = (
            self.db.query(Location)
            .filter(Location.household_id == household.id)
            .order_by(Location.name)
            .all()
        )
        return [self._to_response(location) for location in locations]

    def search_locations(self, user: User, household_id: UUID | None, search_term: str | None) -> list[LocationResponse]:
        """Search a household's locations by name or description, ignoring case."""
        if search_term is None or not search_term.strip():
            raise ValidationError("Search term cannot be null or empty")

        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        pattern = contains_pattern(search_term.strip())
        locations = (
            self.db.query(Location)
            .filter(
                Location.household_id == household.id,
                or_(
                    Location.name.ilike(pattern, escape=LIKE_ESCAPE),
                    Location.description.ilike(pattern, escape=LIKE_ESCAPE),
                ),
            )
            .order_by(Location.name)
            .all()
        )
        return [self._to_response(location) for location in locations]

    def is_location_name_available(self, user: User, household_id: UUID | None, name: str | None) -> bool:
        """Check whether a name is still unused in the household."""
        name = _require_name(name)
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)
        return not self._name_taken(household.id, name)

    def update_location(
        self, user: User, location_id: UUID | None, request: LocationUpdate | None
    ) -> LocationResponse:
        """Replace the name and/or description of a location."""
        if request is None:
            raise ValidationError("Update request cannot be null")
        if request.name is not None:
            _require_name(request.name)

        location = self._get_location(location_id)
        self.guard.authorize(user, location.household_id)

        if request.name is not None:
            self._rename(location, request.name)
        if request.description is not None:
            location.description = request.description

        self._commit(location, f"Failed to update location {location.id}")
        logger.info(f"User {user.id} updated location {location.id}")
        return self._to_response(location)

    def patch_location(
        self, user: User, location_id: UUID | None, patch_data: dict[str, Any] | None
    ) -> LocationResponse:
        """Apply a sparse update; only name and description are recognised."""
        if patch_data is None:
            raise ValidationError("Patch data cannot be null")
        if not patch_data:
            raise ValidationError("Patch data cannot be empty")

        location = self._get_location(location_id)
        self.guard.authorize(user, location.household_id)

        logger.debug(f"Patching location {location.id} with fields {list(patch_data)}")
        try:
            for field, value in patch_data.items():
                if field == "name":
                    if not isinstance(value, str):
                        raise ValidationError("Name must be a string")
                    self._rename(location, _require_name(value))
                elif field == "description":
                    if value is not None and not isinstance(value, str):
                        raise ValidationError("Description must be a string")
                    location.description = value
                else:
                    logger.debug(f"Ignoring unknown location field: {field}")
        except CubordError:
            self.db.rollback()
            raise

        self._commit(location, f"Failed to patch location {location.id}")
        logger.info(f"User {user.id} patched location {location.id}")
        return self._to_response(location)

    def delete_location(self, user: User, location_id: UUID | None) -> None:
        """Delete a location; dependent rows are removed by the database."""
        location = self._get_location(location_id)
        self.guard.authorize(user, location.household_id)

        try:
            self.db.delete(location)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete location {location_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to delete location: {e}") from e
        logger.info(f"User {user.id} deleted location {location_id}")

    def _get_household(self, household_id: UUID | None) -> Household:
        if household_id is None:
            raise ValidationError("Household ID cannot be null")
        household = self.db.query(Household).filter(Household.id == household_id).first()
        if household is None:
            raise NotFoundError("Household", household_id)
        return household

    def _get_location(self, location_id: UUID | None) -> Location:
        if location_id is None:
            raise ValidationError("Location ID cannot be null")
        location = self.db.query(Location).filter(Location.id == location_id).first()
        if location is None:
            raise NotFoundError("Location", location_id)
        return location

    def _name_taken(self, household_id: UUID, name: str) -> bool:
        return (
            self.db.query(Location.id)
            .filter(Location.household_id == household_id, Location.name == name)
            .first()
            is not None
        )

    def _ensure_name_free(self, household_id: UUID, name: str) -> None:
        if self._name_taken(household_id, name):
            raise ConflictError(f"Location with name '{name}' already exists in this household")

    def _rename(self, location: Location, name: str) -> None:
        # Keeping the current name is never a conflict
        if name != location.name:
            self._ensure_name_free(location.household_id, name)
        location.name = name

    def _commit(self, location: Location, failure: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        self.db.refresh(location)

    def _to_response(self, location: Location) -> LocationResponse:
        return LocationResponse(
            id=location.id,
            household_id=location.household_id,
            household_name=location.household.name,
            name=location.name,
            description=location.description,
            created_at=location.created_at,
            updated_at=location.updated_at,
        )


def _require_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValidationError("Location name cannot be null or empty")
    return name
