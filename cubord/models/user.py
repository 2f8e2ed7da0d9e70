"""User model."""

import uuid

from sqlalchemy import Column, String, Uuid
from sqlalchemy.orm import relationship

from cubord.database import Base
from cubord.models.enums import UserRole
from cubord.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User created from the claims of an identity-provider token."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    subject = Column(String(255), unique=True, nullable=False, index=True)  # token "sub" claim
    username = Column(String(255), unique=True, nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)

    # Relationships
    memberships = relationship("HouseholdMember", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        """Check if the user holds the global ADMIN role."""
        return self.role == UserRole.ADMIN
