"""
po_lifecycle.py — Purchase order state machine and bulk lifecycle actions.

Handles the full PO lifecycle:
- Queue products → generate one PO per vendor (status "created")
- created → approved (approve / approve_many)
- created → rejected (reject, optional reason)
- Delete (any status, delete_po permission only)

Business Rules:
- approved and rejected are terminal; any other move raises InvalidTransition
- approved_at / rejected_at are both null while created, exactly one afterwards
- total_items always equals the number of line items
- Product po_status only moves forward: available → queued → po_created
- PO numbers are PO-<year>-<NNN>, assigned once at creation, never reused
- Permission is checked before any write; bulk actions never roll back
  successes when a sibling fails

Called by: routers/purchase_orders.py
Depends on: store, permissions, models, services/batch
"""

import logging
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from ..exceptions import InvalidTransition, NotFound, ValidationFailure
from ..models import PO_STATUSES, Product, PurchaseOrder, PurchaseOrderItem, User
from ..permissions import (
    APPROVE_PO,
    BULK_APPROVE_PO,
    CREATE_PO,
    DELETE_PO,
    REJECT_PO,
    VIEW_REJECTED,
    has_permission,
    require_permission,
)
from ..store import EntityStore
from .batch import BatchResult, run_batch

log = logging.getLogger("po_manager.lifecycle")

# status → statuses it may move to
TRANSITIONS = {
    "created": ("approved", "rejected"),
    "approved": (),
    "rejected": (),
}

PRODUCT_STATUS_ORDER = ("available", "queued", "po_created")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def check_transition(po: PurchaseOrder, target: str) -> None:
    if target not in TRANSITIONS.get(po.status, ()):
        raise InvalidTransition(
            po.status,
            target,
            f"Cannot move PO {po.po_number} from '{po.status}' to '{target}'",
        )


def advance_product(product: Product, target: str) -> None:
    """Move a product's po_status forward; equal status is a no-op."""
    current = PRODUCT_STATUS_ORDER.index(product.po_status or "available")
    wanted = PRODUCT_STATUS_ORDER.index(target)
    if wanted < current:
        raise InvalidTransition(product.po_status, target)
    product.po_status = target


# ── Queries ──────────────────────────────────────────────────────────────


def list_purchase_orders(
    db: Session, user: User, status: str | None = None
) -> list[PurchaseOrder]:
    """POs newest first. Rejected POs are hidden without view_rejected."""
    if status and status not in PO_STATUSES:
        raise ValidationFailure(f"Unknown PO status '{status}'")
    if status == "rejected":
        require_permission(user, VIEW_REJECTED)
    pos = EntityStore(db).list_pos(status)
    if not has_permission(user.role, VIEW_REJECTED):
        pos = [po for po in pos if po.status != "rejected"]
    return pos


def get_purchase_order(db: Session, user: User, po_id: int) -> PurchaseOrder:
    po = EntityStore(db).require_po(po_id)
    if po.status == "rejected":
        require_permission(user, VIEW_REJECTED)
    return po


# ── Creation ─────────────────────────────────────────────────────────────


def next_po_number(store: EntityStore, on: date | None = None) -> str:
    year = (on or date.today()).year
    return f"PO-{year}-{store.max_po_sequence(year) + 1:03d}"


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailure(f"Quantity must be a positive integer, got {quantity!r}")
    return quantity


def queue_product(db: Session, user: User, product_id: int, quantity: int) -> Product:
    """Put a product into the PO queue with the quantity to order."""
    require_permission(user, CREATE_PO)
    store = EntityStore(db)
    product = store.find_product(product_id)
    if product is None:
        raise NotFound("Product", product_id)
    _validate_quantity(quantity)

    if product.po_status == "queued":
        return product
    advance_product(product, "queued")
    store.update(
        product,
        in_queue=True,
        include_in_po=False,
        order_quantity=quantity,
        queued_at=_now(),
    )
    db.commit()
    log.info(f"Product {product.id} queued for PO (qty {quantity})")
    return product


def _build_po(
    store: EntityStore,
    user: User,
    vendor_ref: str,
    items: list[tuple[int, int]],
    on: date | None = None,
) -> PurchaseOrder:
    if not items:
        raise ValidationFailure("A purchase order needs at least one item")
    vendor = store.require_vendor(vendor_ref)

    products = []
    for product_id, quantity in items:
        _validate_quantity(quantity)
        product = store.find_product(product_id)
        if product is None:
            raise NotFound("Product", product_id)
        products.append(product)

    today = on or date.today()
    po = PurchaseOrder(
        po_number=next_po_number(store, today),
        vendor_id=vendor.id,
        vendor_name=vendor.name,
        date=today,
        status="created",
        created_by_id=user.id,
        items=[
            PurchaseOrderItem(product_id=product_id, quantity=quantity)
            for product_id, quantity in items
        ],
    )
    po.total_items = len(po.items)
    store.create(po)

    for product in products:
        advance_product(product, "po_created")
        product.in_queue = False
        product.include_in_po = False
    log.info(f"PO {po.po_number} created for vendor {vendor.id} ({po.total_items} items)")
    return po


def create_purchase_order(
    db: Session,
    user: User,
    vendor_id: str,
    items: list[tuple[int, int]],
    on: date | None = None,
) -> PurchaseOrder:
    """Create one PO in status "created" for a vendor and its (product, qty) items."""
    require_permission(user, CREATE_PO)
    po = _build_po(EntityStore(db), user, vendor_id, items, on)
    db.commit()
    return po


def generate_from_queue(
    db: Session,
    user: User,
    product_ids: list[int] | None = None,
    on: date | None = None,
) -> list[PurchaseOrder]:
    """Turn queued products into one PO per vendor, in queue order.

    With `product_ids`, only those queued products are used; the rest stay
    queued for a later run.
    """
    require_permission(user, CREATE_PO)
    store = EntityStore(db)
    queued = (
        db.query(Product)
        .filter(Product.po_status == "queued")
        .order_by(Product.queued_at, Product.id)
        .all()
    )
    if product_ids is not None:
        wanted = set(product_ids)
        queued = [p for p in queued if p.id in wanted]
    if not queued:
        raise ValidationFailure("No queued products selected")

    by_vendor: dict[str, list[tuple[int, int]]] = {}
    for product in queued:
        if not product.vendor_id:
            log.warning(f"Queued product {product.id} has no vendor, skipped")
            continue
        by_vendor.setdefault(product.vendor_id, []).append(
            (product.id, product.order_quantity or 1)
        )

    created = [
        _build_po(store, user, vendor_id, items, on)
        for vendor_id, items in by_vendor.items()
    ]
    db.commit()
    return created


# ── Approval ─────────────────────────────────────────────────────────────


def _approve_one(store: EntityStore, user: User, po_id: int) -> PurchaseOrder:
    po = store.require_po(po_id)
    check_transition(po, "approved")
    store.update(po, status="approved", approved_by_id=user.id, approved_at=_now())
    log.info(f"PO {po.po_number} approved by user {user.id}")
    return po


def approve(db: Session, user: User, po_id: int) -> PurchaseOrder:
    require_permission(user, APPROVE_PO)
    po = _approve_one(EntityStore(db), user, po_id)
    db.commit()
    return po


def approve_many(db: Session, user: User, po_ids: list[int]) -> BatchResult:
    """Approve each id independently; failures are counted, not rolled back."""
    require_permission(user, APPROVE_PO)
    require_permission(user, BULK_APPROVE_PO)
    store = EntityStore(db)
    result = run_batch(
        db, po_ids, lambda po_id: _approve_one(store, user, po_id), log, "Approve"
    )
    log.info(f"Bulk approve by user {user.id}: {result.summary('approved')}")
    return result


# ── Rejection ────────────────────────────────────────────────────────────


def reject(
    db: Session, user: User, po_id: int, reason: str | None = None
) -> PurchaseOrder:
    """Reject a created PO. The reason is stored verbatim; no reason stores null."""
    require_permission(user, REJECT_PO)
    store = EntityStore(db)
    po = store.require_po(po_id)
    check_transition(po, "rejected")
    store.update(
        po,
        status="rejected",
        rejected_by_id=user.id,
        rejected_at=_now(),
        rejection_reason=reason or None,
    )
    db.commit()
    log.info(f"PO {po.po_number} rejected by user {user.id}: {reason or 'no reason given'}")
    return po


# ── Deletion ─────────────────────────────────────────────────────────────


def _delete_one(store: EntityStore, po_id: int) -> None:
    po = store.require_po(po_id)
    number = po.po_number
    store.delete(po)
    log.info(f"PO {number} deleted")


def delete(db: Session, user: User, po_id: int) -> None:
    """Delete a PO and its items. Irreversible."""
    require_permission(user, DELETE_PO)
    _delete_one(EntityStore(db), po_id)
    db.commit()


def delete_many(db: Session, user: User, po_ids: list[int]) -> BatchResult:
    require_permission(user, DELETE_PO)
    store = EntityStore(db)
    result = run_batch(db, po_ids, lambda po_id: _delete_one(store, po_id), log, "Delete")
    log.info(f"Bulk delete by user {user.id}: {result.summary('deleted')}")
    return result
