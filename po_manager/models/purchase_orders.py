"""Purchase Order, line item, and download log models."""

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from ..database import UTCDateTime
from .base import Base

PO_STATUSES = ("created", "approved", "rejected")


class PurchaseOrder(Base):
    """PO for a single vendor: created, then approved or rejected once."""

    __tablename__ = "purchase_orders"
    id = Column(Integer, primary_key=True)
    po_number = Column(String(50), nullable=False, unique=True)
    vendor_id = Column(String(36), ForeignKey("vendors.id", ondelete="SET NULL"))
    # Name captured at creation; display falls back to a live vendor lookup
    vendor_name = Column(String(255))
    date = Column(Date, nullable=False)
    total_items = Column(Integer, nullable=False, default=0)
    status = Column(String(20), nullable=False, default="created")

    created_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    approved_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    approved_at = Column(UTCDateTime)
    rejected_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    rejected_at = Column(UTCDateTime)
    rejection_reason = Column(Text)

    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        UTCDateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "PurchaseOrderItem",
        back_populates="purchase_order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
        passive_deletes=True,
    )
    download_logs = relationship(
        "DownloadLog",
        back_populates="purchase_order",
        passive_deletes=True,
    )
    vendor = relationship("Vendor", foreign_keys=[vendor_id])
    created_by = relationship("User", foreign_keys=[created_by_id])
    approved_by = relationship("User", foreign_keys=[approved_by_id])
    rejected_by = relationship("User", foreign_keys=[rejected_by_id])

    __table_args__ = (
        Index("ix_po_status", "status"),
        Index("ix_po_vendor", "vendor_id"),
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    id = Column(Integer, primary_key=True)
    po_id = Column(
        Integer, ForeignKey("purchase_orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id = Column(Integer, ForeignKey("products.id", ondelete="SET NULL"))
    quantity = Column(Integer, nullable=False, default=1)

    purchase_order = relationship("PurchaseOrder", back_populates="items")
    product = relationship("Product")

    __table_args__ = (Index("ix_po_items_po", "po_id"),)


class DownloadLog(Base):
    """Append-only record of every exported PO."""

    __tablename__ = "po_download_logs"
    id = Column(Integer, primary_key=True)
    # Logs outlive the PO they describe; po_number keeps them readable
    po_id = Column(Integer, ForeignKey("purchase_orders.id", ondelete="SET NULL"))
    po_number = Column(String(50), nullable=False)
    downloaded_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    downloaded_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
    location = Column(Text, nullable=False)
    format = Column(String(10))

    purchase_order = relationship("PurchaseOrder", back_populates="download_logs")
    downloaded_by = relationship("User")

    __table_args__ = (Index("ix_download_logs_po", "po_id"),)
