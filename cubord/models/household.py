"""Household and membership models."""

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from cubord.database import Base
from cubord.models.enums import HouseholdRole
from cubord.models.mixins import TimestampMixin


class Household(Base, TimestampMixin):
    """Group of users sharing one inventory."""

    __tablename__ = "households"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)

    # Relationships
    members = relationship("HouseholdMember", back_populates="household", cascade="all, delete-orphan")
    locations = relationship("Location", back_populates="household", cascade="all, delete-orphan")


class HouseholdMember(Base, TimestampMixin):
    """Membership of a user in a household; the sole source of access rights."""

    __tablename__ = "household_members"
    __table_args__ = (
        UniqueConstraint("household_id", "user_id", name="uq_household_member_household_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, default=HouseholdRole.MEMBER.value)

    # Relationships
    household = relationship("Household", back_populates="members")
    user = relationship("User", back_populates="memberships")
