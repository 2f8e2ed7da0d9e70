"""Product catalog model."""

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Uuid
from sqlalchemy.orm import relationship

from cubord.database import Base
from cubord.models.enums import ProductDataSource
from cubord.models.mixins import TimestampMixin


class Product(Base, TimestampMixin):
    """Catalog entry keyed by barcode, shared by every household."""

    __tablename__ = "products"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    upc = Column(String(32), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255), nullable=True, index=True)
    category = Column(String(255), nullable=True, index=True)
    default_expiration_days = Column(Integer, nullable=True)
    data_source = Column(String(20), nullable=False, default=ProductDataSource.MANUAL.value)

    # Enrichment retry bookkeeping
    requires_api_retry = Column(Boolean, nullable=False, default=False)
    retry_attempts = Column(Integer, nullable=False, default=0)
    last_retry_attempt = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    pantry_items = relationship("PantryItem", back_populates="product", cascade="all, delete-orphan")
