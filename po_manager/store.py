"""
store.py — Entity Store: CRUD collaborator over the SQLAlchemy session.

Every service reads and writes entities through this thin layer so the
lookup rules (vendor primary id first, storage_ref second) live in one place.
Download logs are append-only: the store has no update/delete path for them.

Called by: services/*
Depends on: models, exceptions
"""

from sqlalchemy import func as sqlfunc
from sqlalchemy.orm import Session

from .exceptions import NotFound
from .models import DownloadLog, Product, PurchaseOrder, Vendor


class EntityStore:
    def __init__(self, db: Session):
        self.db = db

    # ── Generic CRUD ─────────────────────────────────────────────────

    def get(self, model, entity_id):
        if entity_id is None:
            return None
        return self.db.get(model, entity_id)

    def list_all(self, model, order_by=None, **filters) -> list:
        q = self.db.query(model).filter_by(**filters)
        if order_by is not None:
            q = q.order_by(order_by)
        return q.all()

    def create(self, entity):
        self.db.add(entity)
        self.db.flush()
        return entity

    def update(self, entity, **fields):
        if isinstance(entity, DownloadLog):
            raise TypeError("Download logs are append-only")
        for key, value in fields.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity

    def delete(self, entity) -> None:
        if isinstance(entity, DownloadLog):
            raise TypeError("Download logs are append-only")
        self.db.delete(entity)
        self.db.flush()

    # ── Typed lookups ────────────────────────────────────────────────

    def find_vendor(self, ref: str | None) -> Vendor | None:
        """Resolve a vendor by primary id, then by storage_ref."""
        if not ref:
            return None
        vendor = self.db.get(Vendor, ref)
        if vendor is None:
            vendor = self.db.query(Vendor).filter_by(storage_ref=ref).first()
        return vendor

    def find_product(self, product_id) -> Product | None:
        return self.get(Product, product_id)

    def require_vendor(self, ref: str) -> Vendor:
        vendor = self.find_vendor(ref)
        if vendor is None:
            raise NotFound("Vendor", ref)
        return vendor

    def require_po(self, po_id) -> PurchaseOrder:
        po = self.get(PurchaseOrder, po_id)
        if po is None:
            raise NotFound("Purchase order", po_id)
        return po

    def require_pos(self, po_ids) -> list[PurchaseOrder]:
        """All requested POs in request order; NotFound on the first missing id."""
        return [self.require_po(po_id) for po_id in po_ids]

    def list_pos(self, status: str | None = None) -> list[PurchaseOrder]:
        q = self.db.query(PurchaseOrder)
        if status:
            q = q.filter(PurchaseOrder.status == status)
        return q.order_by(PurchaseOrder.date.desc(), PurchaseOrder.id.desc()).all()

    def max_po_sequence(self, year: int) -> int:
        prefix = f"PO-{year}-"
        numbers = (
            self.db.query(PurchaseOrder.po_number)
            .filter(PurchaseOrder.po_number.like(f"{prefix}%"))
            .all()
        )
        highest = 0
        for (number,) in numbers:
            tail = number[len(prefix):]
            if tail.isdigit():
                highest = max(highest, int(tail))
        return highest

    def count_download_logs(self, po_id=None) -> int:
        q = self.db.query(sqlfunc.count(DownloadLog.id))
        if po_id is not None:
            q = q.filter(DownloadLog.po_id == po_id)
        return q.scalar() or 0
