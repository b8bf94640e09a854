"""
po_document.py — Render one purchase order as PDF or XLSX.

Both formats are produced from the same POSnapshot so the PDF, the
spreadsheet and the notification messages always agree on item rows.

Business Rules:
- Vendor name: PO snapshot column first, live vendor lookup second, else "Unknown"
- Missing product → "Unknown Product" / "-" / "-" / "pcs", quantity unchanged
- PDF cells truncate product to 25 chars, brand and category to 15
- A new PDF page starts when the next row would cross the bottom margin
- File name: PO-<po_number>-<YYYY-MM-DD>.<pdf|xlsx>
- Dates display as "15 Jan 2024"

Called by: services/po_export.py, services/po_notify.py
Depends on: reportlab, openpyxl, store
"""

import io
import logging
import zipfile
from dataclasses import dataclass
from datetime import date, datetime, time

from openpyxl import Workbook
from openpyxl.styles import Font
from openpyxl.xml.constants import ARC_CORE
from openpyxl.xml.functions import tostring
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..exceptions import RenderFailure, ValidationFailure
from ..models import DEFAULT_UNIT, PurchaseOrder
from ..store import EntityStore

log = logging.getLogger("po_manager.document")

PDF = "pdf"
XLSX = "xlsx"
MEDIA_TYPES = {
    PDF: "application/pdf",
    XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}

UNKNOWN_VENDOR = "Unknown"
UNKNOWN_PRODUCT = "Unknown Product"
PLACEHOLDER = "-"

DISPLAY_DATE_FORMAT = "%d %b %Y"
FILE_DATE_FORMAT = "%Y-%m-%d"

# Timestamp written on every ZIP entry, including those inside XLSX files
ZIP_ENTRY_DATE = (1980, 1, 1, 0, 0, 0)

# PDF geometry, in millimetres measured from the top of an A4 page
PAGE_WIDTH, PAGE_HEIGHT = A4
HEADER_Y = 100
FIRST_ROW_Y = 115
ROW_HEIGHT = 10
BOTTOM_Y = 270
CONTINUATION_Y = 20
TOTAL_GAP = 10

# column → (x offset in mm, truncation length)
PDF_COLUMNS = (
    ("Product", 25, 25),
    ("Brand", 75, 15),
    ("Category", 105, 15),
    ("Unit", 145, None),
    ("Qty", 170, None),
)
XLSX_HEADER = ["Product", "Brand", "Category", "Unit", "Quantity"]


# ── Snapshot ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ItemRow:
    name: str
    brand: str
    category: str
    unit: str
    quantity: int


@dataclass(frozen=True)
class POSnapshot:
    """Everything needed to render or message one PO, resolved once."""

    po_id: int
    po_number: str
    date: date
    vendor_name: str
    status: str
    approved_at: datetime | None
    total_items: int
    items: tuple[ItemRow, ...]

    @property
    def display_date(self) -> str:
        return format_display_date(self.date)

    @property
    def display_approved(self) -> str | None:
        return format_display_date(self.approved_at) if self.approved_at else None

    @property
    def display_status(self) -> str:
        return self.status.upper()


def format_display_date(value: date | datetime | None) -> str:
    if value is None:
        return PLACEHOLDER
    return value.strftime(DISPLAY_DATE_FORMAT)


def po_filename(po_number: str, po_date: date, fmt: str) -> str:
    """'PO-2024-001', 2024-01-15, 'pdf' → 'PO-PO-2024-001-2024-01-15.pdf'."""
    if fmt not in MEDIA_TYPES:
        raise ValidationFailure(f"Unsupported format '{fmt}'")
    return f"PO-{po_number}-{po_date.strftime(FILE_DATE_FORMAT)}.{fmt}"


def _item_row(store: EntityStore, item) -> ItemRow:
    product = store.find_product(item.product_id)
    if product is None:
        return ItemRow(UNKNOWN_PRODUCT, PLACEHOLDER, PLACEHOLDER, DEFAULT_UNIT, item.quantity)
    return ItemRow(
        name=product.name or UNKNOWN_PRODUCT,
        brand=product.brand or PLACEHOLDER,
        category=product.category or PLACEHOLDER,
        unit=product.unit_label,
        quantity=item.quantity,
    )


def resolve_vendor_name(store: EntityStore, po: PurchaseOrder) -> str:
    if po.vendor_name:
        return po.vendor_name
    vendor = store.find_vendor(po.vendor_id)
    if vendor is not None and vendor.name:
        return vendor.name
    return UNKNOWN_VENDOR


def build_snapshot(store: EntityStore, po: PurchaseOrder) -> POSnapshot:
    return POSnapshot(
        po_id=po.id,
        po_number=po.po_number,
        date=po.date,
        vendor_name=resolve_vendor_name(store, po),
        status=po.status,
        approved_at=po.approved_at,
        total_items=po.total_items,
        items=tuple(_item_row(store, item) for item in po.items),
    )


# ── PDF ──────────────────────────────────────────────────────────────────


def layout_pages(row_count: int) -> list[list[int]]:
    """Vertical position (mm from top) of each item row, grouped per page.

    Rows start below the table header on page one. Before placing a row
    whose position is past BOTTOM_Y a new page starts at CONTINUATION_Y.
    Always returns at least one page.
    """
    pages: list[list[int]] = [[]]
    y = FIRST_ROW_Y
    for _ in range(row_count):
        if y > BOTTOM_Y:
            pages.append([])
            y = CONTINUATION_Y
        pages[-1].append(y)
        y += ROW_HEIGHT
    return pages


def total_line_y(pages: list[list[int]]) -> int:
    last = pages[-1]
    return (last[-1] + ROW_HEIGHT if last else FIRST_ROW_Y) + TOTAL_GAP


def _truncate(value: str, limit: int | None) -> str:
    return value if limit is None else value[:limit]


def _y(top_mm: float) -> float:
    return PAGE_HEIGHT - top_mm * mm


def _draw_header(pdf: canvas.Canvas, snap: POSnapshot) -> None:
    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawCentredString(PAGE_WIDTH / 2, _y(20), "PURCHASE ORDER")

    pdf.setFont("Helvetica", 12)
    lines = [
        f"PO Number: {snap.po_number}",
        f"Date: {snap.display_date}",
        f"Vendor: {snap.vendor_name}",
        f"Status: {snap.display_status}",
    ]
    if snap.display_approved:
        lines.append(f"Approved: {snap.display_approved}")
    for i, line in enumerate(lines):
        pdf.drawString(20 * mm, _y(40 + i * 10), line)

    pdf.setFillColor(colors.Color(240 / 255, 240 / 255, 240 / 255))
    pdf.rect(20 * mm, _y(HEADER_Y + 5), 170 * mm, 10 * mm, stroke=0, fill=1)
    pdf.setFillColor(colors.black)
    pdf.setFont("Helvetica-Bold", 12)
    for label, x, _ in PDF_COLUMNS:
        pdf.drawString(x * mm, _y(HEADER_Y), label)


def render_pdf(snap: POSnapshot) -> bytes:
    try:
        buf = io.BytesIO()
        pdf = canvas.Canvas(buf, pagesize=A4, invariant=1)
        pdf.setTitle(f"Purchase Order {snap.po_number}")
        _draw_header(pdf, snap)

        pages = layout_pages(len(snap.items))
        rows = iter(snap.items)
        for page_no, positions in enumerate(pages):
            if page_no:
                pdf.showPage()
            pdf.setFont("Helvetica", 12)
            for y in positions:
                row = next(rows)
                cells = (row.name, row.brand, row.category, row.unit, str(row.quantity))
                for (_, x, limit), text in zip(PDF_COLUMNS, cells):
                    pdf.drawString(x * mm, _y(y), _truncate(text, limit))

        pdf.setFont("Helvetica-Bold", 12)
        pdf.drawString(20 * mm, _y(total_line_y(pages)), f"Total Items: {snap.total_items}")
        pdf.save()
        return buf.getvalue()
    except Exception as e:
        log.exception(f"PDF render failed for PO {snap.po_number}")
        raise RenderFailure(f"Could not render PDF for {snap.po_number}: {e}") from e


# ── XLSX ─────────────────────────────────────────────────────────────────


def xlsx_rows(snap: POSnapshot) -> list[list]:
    rows = [
        ["PURCHASE ORDER"],
        [],
        ["PO Number", snap.po_number],
        ["Date", snap.display_date],
        ["Vendor", snap.vendor_name],
        ["Status", snap.display_status],
    ]
    if snap.display_approved:
        rows.append(["Approved", snap.display_approved])
    rows += [[], XLSX_HEADER]
    rows += [[r.name, r.brand, r.category, r.unit, r.quantity] for r in snap.items]
    rows += [[], ["Total Items", snap.total_items]]
    return rows


def build_zip(files: list[tuple[str, bytes]]) -> bytes:
    """Deflated ZIP with every entry dated ZIP_ENTRY_DATE."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files:
            info = zipfile.ZipInfo(name, date_time=ZIP_ENTRY_DATE)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, content)
    return buf.getvalue()


def save_workbook(wb: Workbook, stamp: date) -> bytes:
    """Save `wb` so the bytes depend only on its content and `stamp`.

    openpyxl stamps docProps/core.xml and each archive entry with the wall
    clock on save; both are rewritten here.
    """
    pinned = datetime.combine(stamp, time())
    wb.properties.created = pinned
    raw = io.BytesIO()
    wb.save(raw)
    wb.properties.modified = pinned
    core = tostring(wb.properties.to_tree())
    with zipfile.ZipFile(raw) as src:
        files = [
            (name, core if name == ARC_CORE else src.read(name))
            for name in src.namelist()
        ]
    return build_zip(files)


def render_xlsx(snap: POSnapshot) -> bytes:
    try:
        wb = Workbook()
        ws = wb.active
        ws.title = "Purchase Order"
        for row in xlsx_rows(snap):
            ws.append(row)
        ws["A1"].font = Font(bold=True, size=14)
        return save_workbook(wb, snap.date)
    except Exception as e:
        log.exception(f"XLSX render failed for PO {snap.po_number}")
        raise RenderFailure(f"Could not render XLSX for {snap.po_number}: {e}") from e


RENDERERS = {PDF: render_pdf, XLSX: render_xlsx}


def render(snap: POSnapshot, fmt: str) -> bytes:
    renderer = RENDERERS.get(fmt)
    if renderer is None:
        raise ValidationFailure(f"Unsupported format '{fmt}'")
    return renderer(snap)
