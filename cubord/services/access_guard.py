"""Single authorization decision point for household-scoped resources."""

import logging
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from cubord.exceptions import ForbiddenError, InsufficientPermissionError
from cubord.models.enums import HouseholdRole
from cubord.models.household import HouseholdMember
from cubord.models.user import User

logger = logging.getLogger(__name__)

# Household roles allowed to manage the household and its members
MANAGER_ROLES = (HouseholdRole.OWNER, HouseholdRole.ADMIN)


class Decision(str, Enum):
    """Outcome of an access check."""

    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    INSUFFICIENT_PERMISSION = "insufficient_permission"


@dataclass(frozen=True)
class AccessResult:
    """Tagged result of an access check, with the membership when one applies."""

    decision: Decision
    membership: HouseholdMember | None = None
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.ALLOWED

    def raise_for_decision(self) -> HouseholdMember | None:
        """Raise the matching error for a denial, otherwise return the membership."""
        if self.decision == Decision.FORBIDDEN:
            raise ForbiddenError(self.reason or "Access denied")
        if self.decision == Decision.INSUFFICIENT_PERMISSION:
            raise InsufficientPermissionError(self.reason or "Insufficient permission")
        return self.membership


class AccessGuard:
    """Decides whether a user may act on household-scoped or elevated resources.

    Only reads: every check looks up membership rows or the user's global
    role, nothing is cached or written.
    """

    def __init__(self, db: Session):
        self.db = db

    def check_membership(self, user: User, household_id: UUID) -> AccessResult:
        """Check that the user belongs to the household.

        A missing membership is always FORBIDDEN, never a not-found, so callers
        learn nothing about households they cannot see.
        """
        membership = (
            self.db.query(HouseholdMember)
            .filter(
                HouseholdMember.household_id == household_id,
                HouseholdMember.user_id == user.id,
            )
            .first()
        )
        if membership is None:
            logger.warning(f"User {user.id} denied access to household {household_id}")
            return AccessResult(Decision.FORBIDDEN, reason="You do not have access to this household")
        return AccessResult(Decision.ALLOWED, membership=membership)

    def check_household_role(
        self,
        user: User,
        household_id: UUID,
        roles: tuple[HouseholdRole, ...],
        action: str,
    ) -> AccessResult:
        """Check that the user belongs to the household with one of the given roles.

        Non-members are FORBIDDEN; members without the role get
        INSUFFICIENT_PERMISSION together with their membership.
        """
        result = self.check_membership(user, household_id)
        if not result.allowed:
            return result

        membership = result.membership
        if membership.role not in {role.value for role in roles}:
            logger.warning(f"User {user.id} ({membership.role}) attempted to {action} in household {household_id}")
            return AccessResult(
                Decision.INSUFFICIENT_PERMISSION,
                membership=membership,
                reason=f"You don't have permission to {action}",
            )
        return result

    def check_admin(self, user: User, action: str = "modify") -> AccessResult:
        """Check that the user holds the global ADMIN role."""
        if not user.is_admin:
            logger.warning(f"User {user.id} attempted to {action} products without admin privileges")
            return AccessResult(
                Decision.INSUFFICIENT_PERMISSION,
                reason=f"Only administrators can {action} products",
            )
        return AccessResult(Decision.ALLOWED)

    def check_self(self, user: User, target_user_id: UUID) -> AccessResult:
        """Check that the user is acting on their own profile."""
        if user.id != target_user_id:
            logger.warning(f"User {user.id} attempted to modify profile {target_user_id}")
            return AccessResult(Decision.FORBIDDEN, reason="You can only modify your own profile")
        return AccessResult(Decision.ALLOWED)

    def check_profile_visible(self, user: User, target_user_id: UUID) -> AccessResult:
        """Check that the target is the user or shares a household with them."""
        if user.id == target_user_id:
            return AccessResult(Decision.ALLOWED)

        own_households = select(HouseholdMember.household_id).where(HouseholdMember.user_id == user.id)
        shared = (
            self.db.query(HouseholdMember)
            .filter(
                HouseholdMember.user_id == target_user_id,
                HouseholdMember.household_id.in_(own_households),
            )
            .first()
        )
        if shared is None:
            logger.warning(f"User {user.id} denied access to profile {target_user_id}")
            return AccessResult(Decision.FORBIDDEN, reason="You do not have access to this user profile")
        return AccessResult(Decision.ALLOWED, membership=shared)

    def authorize(self, user: User, household_id: UUID) -> HouseholdMember:
        """Require household membership and return it."""
        return self.check_membership(user, household_id).raise_for_decision()

    def authorize_role(
        self,
        user: User,
        household_id: UUID,
        roles: tuple[HouseholdRole, ...],
        action: str,
    ) -> HouseholdMember:
        """Require one of the given household roles and return the membership."""
        return self.check_household_role(user, household_id, roles, action).raise_for_decision()

    def require_admin(self, user: User, action: str = "modify") -> None:
        self.check_admin(user, action).raise_for_decision()
