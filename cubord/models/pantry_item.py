"""Pantry item model: a quantity of one product kept at one location."""

import uuid

from sqlalchemy import Column, Date, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from cubord.database import Base
from cubord.models.mixins import TimestampMixin


class PantryItem(Base, TimestampMixin):
    """Stock of a product at a location, one row per expiration date."""

    __tablename__ = "pantry_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id = Column(Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    location_id = Column(Uuid, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    expiration_date = Column(Date, nullable=True, index=True)
    quantity = Column(Integer, nullable=True)
    unit_of_measure = Column(String(50), nullable=True)
    notes = Column(String(500), nullable=True)

    # Relationships
    product = relationship("Product", back_populates="pantry_items")
    location = relationship("Location", back_populates="pantry_items")
