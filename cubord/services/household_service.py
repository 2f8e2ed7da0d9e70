"""Household service: creation, renaming, ownership and leaving."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.database import LIKE_ESCAPE, contains_pattern
from cubord.exceptions import (
    ConflictError,
    CubordError,
    DataIntegrityError,
    NotFoundError,
    ResourceStateError,
    ValidationError,
)
from cubord.models.enums import HouseholdRole
from cubord.models.household import Household, HouseholdMember
from cubord.models.user import User
from cubord.schemas.household import HouseholdCreate, HouseholdResponse, HouseholdUpdate
from cubord.services.access_guard import MANAGER_ROLES, AccessGuard

logger = logging.getLogger(__name__)

OWNER_ONLY = (HouseholdRole.OWNER,)


class HouseholdService:
    """Service for households as a whole.

    Any member may read a household. Owners and admins may rename it; only
    the owner may delete it or hand ownership to another member. Every
    household has exactly one owner, who cannot leave without transferring
    ownership first.
    """

    def __init__(self, db: Session, guard: AccessGuard | None = None):
        self.db = db
        self.guard = guard or AccessGuard(db)

    def create_household(self, user: User, request: HouseholdCreate | None) -> HouseholdResponse:
        """Create a household with the user as its owner."""
        if request is None:
            raise ValidationError("Household request cannot be null")
        name = _require_name(request.name)

        logger.debug(f"User {user.id} creating household '{name}'")
        self._ensure_name_free(name)

        household = Household(name=name)
        self.db.add(household)
        self.db.flush()
        self.db.add(HouseholdMember(household_id=household.id, user_id=user.id, role=HouseholdRole.OWNER.value))
        self._commit(household, f"Failed to save household '{name}'")
        logger.info(f"User {user.id} created household {household.id}")
        return HouseholdResponse.model_validate(household)

    def get_household(self, user: User, household_id: UUID | None) -> HouseholdResponse:
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)
        return HouseholdResponse.model_validate(household)

    def get_user_households(self, user: User) -> list[HouseholdResponse]:
        """List the households the user belongs to, sorted by name."""
        households = (
            self.db.query(Household)
            .join(HouseholdMember, HouseholdMember.household_id == Household.id)
            .filter(HouseholdMember.user_id == user.id)
            .order_by(Household.name)
            .all()
        )
        logger.debug(f"User {user.id} belongs to {len(households)} households")
        return [HouseholdResponse.model_validate(household) for household in households]

    def search_households(self, user: User, search_term: str | None) -> list[HouseholdResponse]:
        """Search the user's own households by name, ignoring case."""
        if search_term is None or not search_term.strip():
            raise ValidationError("Search term cannot be null or empty")

        households = (
            self.db.query(Household)
            .join(HouseholdMember, HouseholdMember.household_id == Household.id)
            .filter(
                HouseholdMember.user_id == user.id,
                Household.name.ilike(contains_pattern(search_term.strip()), escape=LIKE_ESCAPE),
            )
            .order_by(Household.name)
            .all()
        )
        return [HouseholdResponse.model_validate(household) for household in households]

    def update_household(
        self, user: User, household_id: UUID | None, request: HouseholdUpdate | None
    ) -> HouseholdResponse:
        if request is None:
            raise ValidationError("Update request cannot be null")
        name = _require_name(request.name)

        household = self._get_household(household_id)
        self.guard.authorize_role(user, household.id, MANAGER_ROLES, "update this household")
        self._rename(household, name)

        self._commit(household, f"Failed to update household {household.id}")
        logger.info(f"User {user.id} renamed household {household.id} to '{name}'")
        return HouseholdResponse.model_validate(household)

    def patch_household(
        self, user: User, household_id: UUID | None, patch_data: dict[str, Any] | None
    ) -> HouseholdResponse:
        """Apply a sparse update; only the name is recognised."""
        if patch_data is None:
            raise ValidationError("Patch data cannot be null")
        if not patch_data:
            raise ValidationError("Patch data cannot be empty")

        household = self._get_household(household_id)
        self.guard.authorize_role(user, household.id, MANAGER_ROLES, "update this household")

        try:
            for field, value in patch_data.items():
                if field == "name":
                    if not isinstance(value, str):
                        raise ValidationError("Name must be a string")
                    self._rename(household, _require_name(value))
                else:
                    logger.debug(f"Ignoring unknown household field: {field}")
        except CubordError:
            self.db.rollback()
            raise

        self._commit(household, f"Failed to patch household {household.id}")
        logger.info(f"User {user.id} patched household {household.id}")
        return HouseholdResponse.model_validate(household)

    def delete_household(self, user: User, household_id: UUID | None) -> None:
        """Delete a household with its members, locations and pantry items."""
        household = self._get_household(household_id)
        self.guard.authorize_role(user, household.id, OWNER_ONLY, "delete this household")

        try:
            self.db.delete(household)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete household {household_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to delete household: {e}") from e
        logger.info(f"User {user.id} deleted household {household_id}")

    def leave_household(self, user: User, household_id: UUID | None) -> None:
        household = self._get_household(household_id)
        membership = self.guard.authorize(user, household.id)
        if membership.role == HouseholdRole.OWNER.value:
            raise ResourceStateError("Owner cannot leave a household. Transfer ownership first.")

        try:
            self.db.delete(membership)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"User {user.id} failed to leave household {household_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to leave household: {e}") from e
        logger.info(f"User {user.id} left household {household_id}")

    def transfer_ownership(self, user: User, household_id: UUID | None, new_owner_id: UUID | None) -> None:
        """Make another member the owner; the previous owner becomes an admin."""
        if new_owner_id is None:
            raise ValidationError("New owner ID cannot be null")

        household = self._get_household(household_id)
        current = self.guard.authorize_role(user, household.id, OWNER_ONLY, "transfer ownership")
        if new_owner_id == user.id:
            raise ValidationError("You already own this household")

        new_owner = (
            self.db.query(HouseholdMember)
            .filter(HouseholdMember.household_id == household.id, HouseholdMember.user_id == new_owner_id)
            .first()
        )
        if new_owner is None:
            raise NotFoundError("Household member", new_owner_id)

        current.role = HouseholdRole.ADMIN.value
        new_owner.role = HouseholdRole.OWNER.value
        self._commit(household, f"Failed to transfer ownership of household {household.id}")
        logger.info(f"User {user.id} transferred ownership of household {household.id} to user {new_owner_id}")

    def _get_household(self, household_id: UUID | None) -> Household:
        if household_id is None:
            raise ValidationError("Household ID cannot be null")
        household = self.db.query(Household).filter(Household.id == household_id).first()
        if household is None:
            raise NotFoundError("Household", household_id)
        return household

    def _ensure_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        query = self.db.query(Household.id).filter(Household.name == name)
        if exclude_id is not None:
            query = query.filter(Household.id != exclude_id)
        if query.first() is not None:
            raise ConflictError(f"Household with name '{name}' already exists")

    def _rename(self, household: Household, name: str) -> None:
        if name != household.name:
            self._ensure_name_free(name, exclude_id=household.id)
        household.name = name

    def _commit(self, household: Household, failure: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        self.db.refresh(household)


def _require_name(name: str | None) -> str:
    if name is None or not name.strip():
        raise ValidationError("Household name cannot be null or empty")
    return name
