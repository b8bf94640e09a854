"""
routers/purchase_orders.py — Purchase Order API

Thin HTTP layer over the PO services: lifecycle actions, bulk actions,
document export and vendor notifications. Errors raised by services are
POManagerError subclasses and are turned into JSON by the handler in main.py.

Business Rules:
- Every route needs an authenticated user (require_user)
- Role checks happen in the services, before any write
- Bulk routes always answer 200 with per-id outcomes
- Export and send routes are rate limited

Called by: main.py (router mount)
Depends on: services/*, schemas/purchase_orders.py, dependencies.py
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import require_user
from ..models import User
from ..rate_limit import limiter
from ..schemas.purchase_orders import (
    BatchResponse,
    BulkIds,
    ExportRequest,
    GenerateFromQueue,
    GroupPreview,
    NotifyRequest,
    POCreate,
    POOut,
    ProductQueueOut,
    QueueProductIn,
    RejectRequest,
)
from ..schemas.responses import OkResponse
from ..services import po_export, po_lifecycle, po_notify
from ..services.batch import BatchResult
from ..services.po_grouping import EMAIL, PHONE, VendorGroup
from ..store import EntityStore

router = APIRouter(tags=["purchase-orders"])


def _batch_response(result: BatchResult, verb: str) -> BatchResponse:
    return BatchResponse(**result.to_dict(), message=result.summary(verb))


def _apply_edits(groups: list[VendorGroup], payload: NotifyRequest) -> list[VendorGroup]:
    edits = {e.vendor_id: e for e in payload.edits}
    out = []
    for group in groups:
        edit = edits.get(group.key)
        if edit:
            group = group.edited(target=edit.target, subject=edit.subject, message=edit.message)
        out.append(group)
    return out


def _preview(msg: po_notify.GroupMessage, step=None) -> GroupPreview:
    group = msg.group
    return GroupPreview(
        vendor_id=group.key,
        vendor_name=group.vendor.name,
        po_numbers=[s.po_number for s in msg.snapshots],
        channel=group.channel,
        target=group.target,
        valid=group.valid,
        error=group.error,
        subject=msg.subject,
        message=msg.text,
        html=msg.html,
        url=step.url if step else None,
        delay=step.delay if step else None,
    )


# ── Queries ──────────────────────────────────────────────────────────


@router.get("/api/purchase-orders", response_model=list[POOut])
def list_purchase_orders(
    status: str | None = None,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """List POs, newest first. Rejected POs need view_rejected."""
    return po_lifecycle.list_purchase_orders(db, user, status)


@router.get("/api/purchase-orders/{po_id}", response_model=POOut)
def get_purchase_order(
    po_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return po_lifecycle.get_purchase_order(db, user, po_id)


# ── Creation ─────────────────────────────────────────────────────────


@router.post("/api/purchase-orders", response_model=POOut, status_code=201)
def create_purchase_order(
    payload: POCreate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    items = [(i.product_id, i.quantity) for i in payload.items]
    return po_lifecycle.create_purchase_order(db, user, payload.vendor_id, items)


@router.post("/api/purchase-orders/queue", response_model=ProductQueueOut)
def queue_product(
    payload: QueueProductIn,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return po_lifecycle.queue_product(db, user, payload.product_id, payload.quantity)


@router.post("/api/purchase-orders/generate", response_model=list[POOut], status_code=201)
def generate_from_queue(
    payload: GenerateFromQueue,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Create one PO per vendor from the queued products."""
    pos = po_lifecycle.generate_from_queue(db, user, payload.product_ids)
    logger.info(f"Generated {len(pos)} PO(s) from queue for user {user.id}")
    return pos


# ── Approval / rejection ─────────────────────────────────────────────


@router.put("/api/purchase-orders/{po_id}/approve", response_model=POOut)
def approve_purchase_order(
    po_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return po_lifecycle.approve(db, user, po_id)


@router.put("/api/purchase-orders/{po_id}/reject", response_model=POOut)
def reject_purchase_order(
    po_id: int,
    payload: RejectRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    return po_lifecycle.reject(db, user, po_id, payload.reason)


@router.post("/api/purchase-orders/bulk-approve", response_model=BatchResponse)
def bulk_approve(
    payload: BulkIds,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    result = po_lifecycle.approve_many(db, user, payload.ids)
    return _batch_response(result, "approved")


# ── Deletion ─────────────────────────────────────────────────────────


@router.delete("/api/purchase-orders/{po_id}", response_model=OkResponse)
def delete_purchase_order(
    po_id: int,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    po_lifecycle.delete(db, user, po_id)
    return OkResponse()


@router.post("/api/purchase-orders/bulk-delete", response_model=BatchResponse)
def bulk_delete(
    payload: BulkIds,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    result = po_lifecycle.delete_many(db, user, payload.ids)
    return _batch_response(result, "deleted")


# ── Export ───────────────────────────────────────────────────────────


def _file_response(exported: po_export.ExportedFile) -> Response:
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={
            "Content-Disposition": f"attachment; filename={exported.filename}",
            "X-Export-Succeeded": str(exported.result.succeeded_count),
            "X-Export-Failed": str(exported.result.failed_count),
        },
    )


@router.post("/api/purchase-orders/export")
@limiter.limit(settings.rate_limit_export)
def export_purchase_orders(
    request: Request,
    payload: ExportRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Download one PO, or a ZIP of several, and log each download."""
    exported = po_export.export_purchase_orders(
        db, user, payload.ids, payload.format, payload.location
    )
    if exported.result.failed_count:
        logger.warning(
            f"Export for user {user.id} skipped POs {exported.result.failed_ids}"
        )
    return _file_response(exported)


@router.get("/api/purchase-orders/export/list")
@limiter.limit(settings.rate_limit_export)
def export_po_list(
    request: Request,
    q: str = "",
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Spreadsheet of approved POs, optionally filtered by PO number."""
    return _file_response(po_export.export_po_list(db, user, q))


# ── Notifications ────────────────────────────────────────────────────


@router.post("/api/purchase-orders/notify/whatsapp/preview", response_model=list[GroupPreview])
def preview_whatsapp(
    payload: NotifyRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Per-vendor WhatsApp messages plus the staggered wa.me link schedule.

    Links are only returned once every group has a valid phone number.
    """
    groups = _apply_edits(po_notify.prepare_groups(db, user, payload.ids, PHONE), payload)
    store = EntityStore(db)
    messages = [po_notify.compose_for_group(store, g) for g in groups]
    if all(g.valid for g in groups):
        steps = po_notify.whatsapp_schedule(messages)
    else:
        steps = [None] * len(messages)
    return [_preview(m, step) for m, step in zip(messages, steps)]


@router.post("/api/purchase-orders/notify/email/preview", response_model=list[GroupPreview])
def preview_email(
    payload: NotifyRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    groups = _apply_edits(po_notify.prepare_groups(db, user, payload.ids, EMAIL), payload)
    store = EntityStore(db)
    return [_preview(po_notify.compose_for_group(store, g)) for g in groups]


@router.post("/api/purchase-orders/notify/email/send", response_model=BatchResponse)
@limiter.limit(settings.rate_limit_send)
async def send_email(
    request: Request,
    payload: NotifyRequest,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    """Email each vendor its POs. Nothing is sent if any address is invalid."""
    groups = _apply_edits(po_notify.prepare_groups(db, user, payload.ids, EMAIL), payload)
    result = await po_notify.send_group_emails(db, user, groups)
    noun = "email" if result.succeeded_count == 1 else "emails"
    message = f"{result.succeeded_count} {noun} sent."
    if result.failed_count:
        message += f" {result.failed_count} failed."
    return BatchResponse(**result.to_dict(), message=message)
