"""
po_export.py — Bulk export packager: single documents, ZIP bundles, PO list.

Flow: permission gate → resolve every id → write one DownloadLog per PO →
render → return a single file or a ZIP of files.

Business Rules:
- download_po is always required; more than one PO also needs bulk_download_po
- Every id must exist before anything is written (NotFound otherwise)
- Exactly one DownloadLog per exported PO, blank location → "Not specified"
- One PO → the raw document; several → PO-Bulk-Download-<today>.zip
- All files in one export share the same format
- In a bulk export, a PO that fails to render is reported and skipped

Called by: routers/purchase_orders.py
Depends on: services/po_document, store, permissions, config
"""

import logging
from dataclasses import dataclass, field
from datetime import date

from openpyxl import Workbook
from openpyxl.styles import Font
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import RenderFailure, ValidationFailure
from ..models import DownloadLog, PurchaseOrder, User
from ..permissions import BULK_DOWNLOAD_PO, DOWNLOAD_PO, VIEW_PO_DOWNLOAD, require_permission
from ..store import EntityStore
from .batch import BatchResult
from .po_document import (
    MEDIA_TYPES,
    XLSX,
    build_snapshot,
    build_zip,
    format_display_date,
    po_filename,
    render,
    resolve_vendor_name,
    save_workbook,
)

log = logging.getLogger("po_manager.export")

ZIP_MEDIA_TYPE = "application/zip"

PO_LIST_HEADER = ["PO Number", "Vendor", "Date", "Items", "Approved At"]


@dataclass
class ExportedFile:
    filename: str
    content: bytes
    media_type: str
    result: BatchResult = field(default_factory=BatchResult)


def _unique(ids) -> list:
    return list(dict.fromkeys(ids))


def bulk_zip_name(today: date) -> str:
    return f"PO-Bulk-Download-{today.isoformat()}.zip"


def _log_downloads(
    store: EntityStore, user: User, pos: list[PurchaseOrder], location: str, fmt: str
) -> None:
    for po in pos:
        store.create(
            DownloadLog(
                po_id=po.id,
                po_number=po.po_number,
                downloaded_by_id=user.id,
                location=location,
                format=fmt,
            )
        )


def export_purchase_orders(
    db: Session,
    user: User,
    po_ids: list[int],
    fmt: str,
    location: str = "",
    today: date | None = None,
) -> ExportedFile:
    """Export one or more POs in a single format and log every download."""
    po_ids = _unique(po_ids)
    require_permission(user, DOWNLOAD_PO)
    if len(po_ids) > 1:
        require_permission(user, BULK_DOWNLOAD_PO)
    if not po_ids:
        raise ValidationFailure("Select at least one purchase order to download")
    if fmt not in MEDIA_TYPES:
        raise ValidationFailure(f"Unsupported format '{fmt}'")

    store = EntityStore(db)
    pos = store.require_pos(po_ids)
    location = (location or "").strip() or settings.download_location_placeholder

    _log_downloads(store, user, pos, location, fmt)
    db.commit()
    log.info(f"User {user.id} exported {len(pos)} PO(s) as {fmt} to '{location}'")

    if len(pos) == 1:
        po = pos[0]
        content = render(build_snapshot(store, po), fmt)
        result = BatchResult(succeeded=[po.id])
        return ExportedFile(po_filename(po.po_number, po.date, fmt), content, MEDIA_TYPES[fmt], result)

    result = BatchResult()
    files = []
    for po in pos:
        try:
            files.append((po_filename(po.po_number, po.date, fmt), render(build_snapshot(store, po), fmt)))
        except RenderFailure as e:
            result.add_failure(po.id, e.kind)
            log.warning(f"Skipping PO {po.po_number} in bulk export: {e}")
        else:
            result.add_success(po.id)

    if not files:
        raise RenderFailure("None of the selected purchase orders could be rendered")
    return ExportedFile(
        bulk_zip_name(today or date.today()), build_zip(files), ZIP_MEDIA_TYPE, result
    )


def export_po_list(
    db: Session, user: User, query: str = "", today: date | None = None
) -> ExportedFile:
    """Spreadsheet of approved POs, optionally filtered by PO number substring."""
    require_permission(user, VIEW_PO_DOWNLOAD)
    store = EntityStore(db)
    pos = store.list_pos(status="approved")
    needle = (query or "").strip().lower()
    if needle:
        pos = [po for po in pos if needle in po.po_number.lower()]

    wb = Workbook()
    ws = wb.active
    ws.title = "Approved POs"
    ws.append(PO_LIST_HEADER)
    for cell in ws[1]:
        cell.font = Font(bold=True)
    for po in pos:
        ws.append([
            po.po_number,
            resolve_vendor_name(store, po),
            format_display_date(po.date),
            po.total_items,
            format_display_date(po.approved_at),
        ])

    today = today or date.today()
    content = save_workbook(wb, today)
    log.info(f"User {user.id} exported PO list ({len(pos)} rows)")
    return ExportedFile(
        f"PO-List-{today.isoformat()}.xlsx",
        content,
        MEDIA_TYPES[XLSX],
        BatchResult(succeeded=[po.id for po in pos]),
    )
