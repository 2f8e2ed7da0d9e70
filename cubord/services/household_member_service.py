"""Household membership service."""

import logging
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.exceptions import (
    ConflictError,
    DataIntegrityError,
    InsufficientPermissionError,
    NotFoundError,
    ResourceStateError,
    ValidationError,
)
from cubord.models.enums import HouseholdRole
from cubord.models.household import Household, HouseholdMember
from cubord.models.user import User
from cubord.schemas.household import HouseholdMemberCreate, HouseholdMemberResponse
from cubord.services.access_guard import MANAGER_ROLES, AccessGuard

logger = logging.getLogger(__name__)


class HouseholdMemberService:
    """Service for adding, listing, removing and re-ranking household members.

    Members are addressed by the id of their membership row. Owners and
    admins manage members; an admin may only act on plain members. The OWNER
    role is never granted here, only through an ownership transfer.
    """

    def __init__(self, db: Session, guard: AccessGuard | None = None):
        self.db = db
        self.guard = guard or AccessGuard(db)

    def add_member(
        self, user: User, household_id: UUID | None, request: HouseholdMemberCreate | None
    ) -> HouseholdMemberResponse:
        """Add an existing user to the household with the requested role."""
        if request is None:
            raise ValidationError("Member request cannot be null")
        if request.user_id is None:
            raise ValidationError("User ID cannot be null")
        role = _assignable_role(request.role)

        household = self._get_household(household_id)
        self.guard.authorize_role(user, household.id, MANAGER_ROLES, "add members to this household")

        new_user = self.db.query(User).filter(User.id == request.user_id).first()
        if new_user is None:
            raise NotFoundError("User", request.user_id)
        if self._find_membership(household.id, new_user.id) is not None:
            raise ConflictError("User is already a member of this household")

        member = HouseholdMember(household_id=household.id, user_id=new_user.id, role=role.value)
        self.db.add(member)
        self._commit(member, f"Failed to add user {new_user.id} to household {household.id}")
        logger.info(f"User {user.id} added user {new_user.id} to household {household.id} as {role.value}")
        return _to_response(member)

    def get_members(self, user: User, household_id: UUID | None) -> list[HouseholdMemberResponse]:
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)

        members = (
            self.db.query(HouseholdMember)
            .filter(HouseholdMember.household_id == household.id)
            .order_by(HouseholdMember.created_at, HouseholdMember.id)
            .all()
        )
        return [_to_response(member) for member in members]

    def get_member(self, user: User, household_id: UUID | None, member_id: UUID | None) -> HouseholdMemberResponse:
        household = self._get_household(household_id)
        self.guard.authorize(user, household.id)
        return _to_response(self._get_member(household.id, member_id))

    def remove_member(self, user: User, household_id: UUID | None, member_id: UUID | None) -> None:
        household = self._get_household(household_id)
        current = self.guard.authorize_role(user, household.id, MANAGER_ROLES, "remove members from this household")
        member = self._get_member(household.id, member_id)

        if member.role == HouseholdRole.OWNER.value:
            raise ResourceStateError("Cannot remove the owner from the household")
        _check_outranks(current, member, "remove")

        try:
            self.db.delete(member)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to remove member {member_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to remove member: {e}") from e
        logger.info(f"User {user.id} removed member {member_id} from household {household.id}")

    def update_member_role(
        self,
        user: User,
        household_id: UUID | None,
        member_id: UUID | None,
        role: HouseholdRole | None,
    ) -> HouseholdMemberResponse:
        role = _assignable_role(role)

        household = self._get_household(household_id)
        current = self.guard.authorize_role(user, household.id, MANAGER_ROLES, "change member roles")
        member = self._get_member(household.id, member_id)

        if member.role == HouseholdRole.OWNER.value:
            raise ResourceStateError("The owner's role can only change through an ownership transfer")
        _check_outranks(current, member, "change the role of")

        member.role = role.value
        self._commit(member, f"Failed to update role of member {member.id}")
        logger.info(f"User {user.id} set role of member {member.id} in household {household.id} to {role.value}")
        return _to_response(member)

    def _get_household(self, household_id: UUID | None) -> Household:
        if household_id is None:
            raise ValidationError("Household ID cannot be null")
        household = self.db.query(Household).filter(Household.id == household_id).first()
        if household is None:
            raise NotFoundError("Household", household_id)
        return household

    def _get_member(self, household_id: UUID, member_id: UUID | None) -> HouseholdMember:
        if member_id is None:
            raise ValidationError("Member ID cannot be null")
        # Memberships of other households are reported as missing
        member = (
            self.db.query(HouseholdMember)
            .filter(HouseholdMember.id == member_id, HouseholdMember.household_id == household_id)
            .first()
        )
        if member is None:
            raise NotFoundError("Household member", member_id)
        return member

    def _find_membership(self, household_id: UUID, user_id: UUID) -> HouseholdMember | None:
        return (
            self.db.query(HouseholdMember)
            .filter(HouseholdMember.household_id == household_id, HouseholdMember.user_id == user_id)
            .first()
        )

    def _commit(self, member: HouseholdMember, failure: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        self.db.refresh(member)


def _assignable_role(role: HouseholdRole | None) -> HouseholdRole:
    if role is None:
        raise ValidationError("Role cannot be null")
    role = HouseholdRole(role)
    if role == HouseholdRole.OWNER:
        raise ValidationError("Cannot set role to OWNER. Transfer ownership instead.")
    return role


def _check_outranks(current: HouseholdMember, member: HouseholdMember, action: str) -> None:
    if current.role == HouseholdRole.ADMIN.value and member.role == HouseholdRole.ADMIN.value:
        raise InsufficientPermissionError(f"An admin cannot {action} another admin")


def _to_response(member: HouseholdMember) -> HouseholdMemberResponse:
    return HouseholdMemberResponse(
        id=member.id,
        user_id=member.user_id,
        username=member.user.username,
        household_id=member.household_id,
        household_name=member.household.name,
        role=member.role,
        created_at=member.created_at,
    )
