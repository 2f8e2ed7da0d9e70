"""Resolution of token claims to internal user records."""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cubord.exceptions import DataIntegrityError, InvalidArgumentError
from cubord.models.enums import UserRole
from cubord.models.user import User
from cubord.services.auth import TokenClaims

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_NAME = "User"


def username_from_email(email: str) -> str:
    """Derive a username from the local part of an email address."""
    at_index = email.find("@")
    if at_index < 0:
        raise InvalidArgumentError(f"Cannot derive username from email without '@': {email}")
    return email[:at_index]


class IdentityResolver:
    """Maps an authenticated principal to a user, creating it on first sight.

    Derived usernames are not de-duplicated: two identities whose email local
    parts match collide on the unique username column and the second one fails
    with a DataIntegrityError.
    """

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, claims: TokenClaims) -> User:
        """Return the user for the token subject, creating one if needed."""
        subject = (claims.subject or "").strip()
        if not subject:
            raise InvalidArgumentError("Token is missing the subject claim")

        user = self.db.query(User).filter(User.subject == subject).first()
        if user is not None:
            return user

        return self._create_user(subject, claims)

    def _create_user(self, subject: str, claims: TokenClaims) -> User:
        email = claims.email if claims.email else f"{subject}@unknown.com"
        user = User(
            subject=subject,
            username=username_from_email(email),
            email=email,
            display_name=claims.name if claims.name else DEFAULT_DISPLAY_NAME,
            role=UserRole.USER.value,
            memberships=[],
        )

        logger.info(f"Creating new user for token subject {subject}")
        try:
            self.db.add(user)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create user for subject {subject}", exc_info=True)
            raise DataIntegrityError(f"Failed to create user: {e}") from e

        self.db.refresh(user)
        logger.info(f"Created user {user.id} ({user.username})")
        return user
