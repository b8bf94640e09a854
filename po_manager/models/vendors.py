"""Vendor and Product models."""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base

UNIT_LABELS = {"piece": "pcs", "box": "boxes"}
DEFAULT_UNIT = "pcs"


class Vendor(Base):
    """Supplier receiving purchase orders.

    `id` is the stable business id (V001, V002, ...). `storage_ref` is the
    optional storage-layer id some records also carry; lookups and grouping
    use `id` first and only fall back to `storage_ref` when `id` is absent.
    """

    __tablename__ = "vendors"
    id = Column(String(36), primary_key=True)
    storage_ref = Column(String(36), unique=True)
    name = Column(String(255), nullable=False)
    tax_id = Column(String(50))
    address = Column(Text)
    phone = Column(String(50))
    contact_name = Column(String(255))
    contact_email = Column(String(255))
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    products = relationship("Product", back_populates="vendor")

    @property
    def key(self) -> str | None:
        return self.id or self.storage_ref


class Product(Base):
    """Stock item; queued products are turned into PO line items."""

    __tablename__ = "products"
    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    brand = Column(String(255))
    category = Column(String(255))
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"))
    unit = Column(String(10), nullable=False, default="piece")  # piece | box
    current_stock = Column(Integer, default=0)
    reorder_level = Column(Integer, default=0)
    order_quantity = Column(Integer, default=1)
    include_in_po = Column(Boolean, default=True)
    in_queue = Column(Boolean, default=False)
    queued_at = Column(UTCDateTime)
    po_status = Column(String(20), nullable=False, default="available")  # available | queued | po_created
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))

    vendor = relationship("Vendor", back_populates="products")

    __table_args__ = (
        Index("ix_products_vendor", "vendor_id"),
        Index("ix_products_po_status", "po_status"),
    )

    @property
    def unit_label(self) -> str:
        return UNIT_LABELS.get(self.unit, DEFAULT_UNIT)
