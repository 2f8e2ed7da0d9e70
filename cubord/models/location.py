"""Location model for places where a household keeps things."""

import uuid

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from cubord.database import Base
from cubord.models.mixins import TimestampMixin


class Location(Base, TimestampMixin):
    """Storage location ("Kitchen", "Garage freezer") inside a household."""

    __tablename__ = "locations"
    __table_args__ = (
        UniqueConstraint("household_id", "name", name="uq_location_household_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    household_id = Column(Uuid, ForeignKey("households.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(String, nullable=True)

    # Relationships
    household = relationship("Household", back_populates="locations")
    pantry_items = relationship("PantryItem", back_populates="location", cascade="all, delete-orphan")
