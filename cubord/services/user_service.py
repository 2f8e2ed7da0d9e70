"""User profile service."""

import logging
import re
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.exceptions import ConflictError, CubordError, DataIntegrityError, NotFoundError, ValidationError
from cubord.models.user import User
from cubord.schemas.user import UserResponse, UserUpdate
from cubord.services.access_guard import AccessGuard

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class UserService:
    """Service for reading and maintaining user profiles.

    Profiles are visible to the user and to members of any household they
    share. Only the owner of a profile may change or delete it.
    """

    def __init__(self, db: Session, guard: AccessGuard | None = None):
        self.db = db
        self.guard = guard or AccessGuard(db)

    def get_current_user_details(self, user: User) -> UserResponse:
        return UserResponse.model_validate(user)

    def get_user(self, user: User, user_id: UUID | None) -> UserResponse:
        if user_id is None:
            raise ValidationError("User ID cannot be null")
        target = self._get_user(user_id)
        self.guard.check_profile_visible(user, target.id).raise_for_decision()
        return UserResponse.model_validate(target)

    def get_user_by_username(self, user: User, username: str | None) -> UserResponse:
        if username is None or not username.strip():
            raise ValidationError("Username cannot be null or blank")
        target = self.db.query(User).filter(User.username == username).first()
        if target is None:
            raise NotFoundError("User")
        self.guard.check_profile_visible(user, target.id).raise_for_decision()
        return UserResponse.model_validate(target)

    def update_user(self, user: User, user_id: UUID | None, request: UserUpdate | None) -> UserResponse:
        """Update the profile fields present in the request."""
        if user_id is None:
            raise ValidationError("User ID cannot be null")
        if request is None:
            raise ValidationError("Update request cannot be null")
        self.guard.check_self(user, user_id).raise_for_decision()
        target = self._get_user(user_id)

        if request.username is not None:
            self._check_username_unchanged(target, request.username)
        email = self._validated_email(target, request.email) if request.email is not None else None
        display_name = None
        if request.display_name is not None:
            display_name = _validated_display_name(request.display_name)

        if email is not None:
            target.email = email
        if display_name is not None:
            target.display_name = display_name

        self._commit(target, f"Failed to update user {target.id}")
        logger.info(f"User {target.id} updated their profile")
        return UserResponse.model_validate(target)

    def patch_user(self, user: User, user_id: UUID | None, patch_data: dict[str, Any] | None) -> UserResponse:
        """Apply a sparse update to display_name, email or username."""
        if user_id is None:
            raise ValidationError("User ID cannot be null")
        if not patch_data:
            raise ValidationError("Patch data cannot be null or empty")
        self.guard.check_self(user, user_id).raise_for_decision()
        target = self._get_user(user_id)

        try:
            for field, value in patch_data.items():
                if field == "display_name":
                    if not isinstance(value, str):
                        raise ValidationError("Display name must be a string")
                    target.display_name = _validated_display_name(value)
                elif field == "email":
                    if not isinstance(value, str):
                        raise ValidationError("Email must be a string")
                    target.email = self._validated_email(target, value)
                elif field == "username":
                    if not isinstance(value, str):
                        raise ValidationError("Username must be a string")
                    self._check_username_unchanged(target, value)
                else:
                    logger.debug(f"Ignoring unknown user field: {field}")
        except CubordError:
            self.db.rollback()
            raise

        self._commit(target, f"Failed to patch user {target.id}")
        logger.info(f"User {target.id} patched their profile")
        return UserResponse.model_validate(target)

    def delete_user(self, user: User, user_id: UUID | None) -> None:
        """Delete a profile together with its household memberships."""
        if user_id is None:
            raise ValidationError("User ID cannot be null")
        self.guard.check_self(user, user_id).raise_for_decision()
        target = self._get_user(user_id)

        try:
            self.db.delete(target)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to delete user {user_id}", exc_info=True)
            raise DataIntegrityError(f"Failed to delete user: {e}") from e
        logger.info(f"Deleted user {user_id}")

    def _get_user(self, user_id: UUID) -> User:
        target = self.db.query(User).filter(User.id == user_id).first()
        if target is None:
            raise NotFoundError("User", user_id)
        return target

    def _check_username_unchanged(self, target: User, username: str) -> None:
        # Usernames are derived once from the identity provider's email
        if username != target.username:
            raise ValidationError("Username cannot be changed")

    def _validated_email(self, target: User, email: str) -> str:
        email = email.strip()
        if not EMAIL_PATTERN.match(email):
            raise ValidationError(f"Invalid email format: {email}")
        if email != target.email:
            other = self.db.query(User).filter(User.email == email, User.id != target.id).first()
            if other is not None:
                raise ConflictError(f"Email '{email}' is already in use")
        return email

    def _commit(self, target: User, failure: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(failure, exc_info=True)
            raise DataIntegrityError(f"{failure}: {e}") from e
        self.db.refresh(target)


def _validated_display_name(display_name: str) -> str:
    if not display_name.strip():
        raise ValidationError("Display name cannot be empty")
    if len(display_name) > 255:
        raise ValidationError("Display name cannot exceed 255 characters")
    return display_name
