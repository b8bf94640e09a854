"""
tests/test_po_document.py — Tests for services/po_document.py

Covers: snapshot resolution (vendor name order, missing products, unit
labels), file naming, display dates, pure page layout, PDF content and
determinism, XLSX row layout, and RenderFailure wrapping.

Called by: pytest
Depends on: po_manager/services/po_document.py, conftest.py
"""

import io
import zipfile
from datetime import date, datetime
from unittest.mock import patch

import pytest
from openpyxl import load_workbook
from pypdf import PdfReader

from po_manager.exceptions import RenderFailure, ValidationFailure
from po_manager.services.po_document import (
    BOTTOM_Y,
    CONTINUATION_Y,
    FIRST_ROW_Y,
    ZIP_ENTRY_DATE,
    build_snapshot,
    format_display_date,
    layout_pages,
    po_filename,
    render,
    render_pdf,
    render_xlsx,
)
from po_manager.store import EntityStore


def _pdf_text(content: bytes) -> tuple[int, str]:
    reader = PdfReader(io.BytesIO(content))
    return len(reader.pages), "\n".join(page.extract_text() for page in reader.pages)


# ── Naming & dates ───────────────────────────────────────────────────


class TestNaming:
    def test_pdf_filename(self):
        assert po_filename("PO-2024-001", date(2024, 1, 15), "pdf") == "PO-PO-2024-001-2024-01-15.pdf"

    def test_xlsx_filename(self):
        assert po_filename("PO-2024-001", date(2024, 1, 15), "xlsx") == "PO-PO-2024-001-2024-01-15.xlsx"

    def test_unknown_format(self):
        with pytest.raises(ValidationFailure):
            po_filename("PO-2024-001", date(2024, 1, 15), "docx")

    def test_display_date(self):
        assert format_display_date(date(2024, 1, 15)) == "15 Jan 2024"
        assert format_display_date(None) == "-"


# ── Layout ───────────────────────────────────────────────────────────


class TestLayoutPages:
    def test_no_rows_single_empty_page(self):
        assert layout_pages(0) == [[]]

    def test_first_page_capacity(self):
        pages = layout_pages(16)
        assert len(pages) == 1
        assert pages[0][0] == FIRST_ROW_Y
        assert pages[0][-1] <= BOTTOM_Y

    def test_overflow_starts_new_page(self):
        pages = layout_pages(17)
        assert [len(p) for p in pages] == [16, 1]
        assert pages[1] == [CONTINUATION_Y]

    def test_every_row_placed_once(self):
        for n in (1, 15, 42, 43, 100):
            pages = layout_pages(n)
            assert sum(len(p) for p in pages) == n
            assert all(y <= BOTTOM_Y for p in pages for y in p)

    def test_continuation_page_capacity(self):
        assert [len(p) for p in layout_pages(16 + 26 + 1)] == [16, 26, 1]


# ── Snapshot ─────────────────────────────────────────────────────────


class TestSnapshot:
    def test_rows_follow_item_order(self, db_session, vendor, product, box_product, make_po):
        po = make_po(vendor, [(box_product, 2), (product, 5)])
        snap = build_snapshot(EntityStore(db_session), po)
        assert [r.name for r in snap.items] == ["Hex Nuts M8", "Steel Bolts M8"]
        assert [r.unit for r in snap.items] == ["boxes", "pcs"]
        assert snap.total_items == 2

    def test_unlisted_unit_shows_default(self, db_session, vendor, product, make_po):
        product.unit = "crate"
        db_session.commit()
        po = make_po(vendor, [(product, 1)])
        assert build_snapshot(EntityStore(db_session), po).items[0].unit == "pcs"

    def test_missing_product_placeholders(self, db_session, vendor, make_po):
        po = make_po(vendor, [(None, 7)])
        row = build_snapshot(EntityStore(db_session), po).items[0]
        assert (row.name, row.brand, row.category, row.unit, row.quantity) == (
            "Unknown Product", "-", "-", "pcs", 7,
        )

    def test_vendor_name_snapshot_wins(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 1)], vendor_name="Acme (2023 name)")
        assert build_snapshot(EntityStore(db_session), po).vendor_name == "Acme (2023 name)"

    def test_vendor_name_falls_back_to_lookup(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 1)], vendor_name=None)
        assert build_snapshot(EntityStore(db_session), po).vendor_name == "Acme Supplies"

    def test_vendor_name_unknown(self, db_session, product, make_po):
        po = make_po(None, [(product, 1)])
        assert build_snapshot(EntityStore(db_session), po).vendor_name == "Unknown"


# ── PDF ──────────────────────────────────────────────────────────────


class TestRenderPdf:
    def test_content(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)], status="approved")
        pages, text = _pdf_text(render_pdf(build_snapshot(EntityStore(db_session), po)))
        assert pages == 1
        assert "PURCHASE ORDER" in text
        assert f"PO Number: {po.po_number}" in text
        assert "Date: 15 Jan 2024" in text
        assert "Vendor: Acme Supplies" in text
        assert "Status: APPROVED" in text
        assert "Approved: 16 Jan 2024" in text
        assert "Steel Bolts M8" in text
        assert "Total Items: 1" in text

    def test_no_approved_line_while_created(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)])
        _, text = _pdf_text(render_pdf(build_snapshot(EntityStore(db_session), po)))
        assert "Approved:" not in text
        assert "Status: CREATED" in text

    def test_long_item_list_paginates(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, i + 1) for i in range(20)])
        pages, text = _pdf_text(render_pdf(build_snapshot(EntityStore(db_session), po)))
        assert pages == 2
        assert "Total Items: 20" in text

    def test_cells_truncated(self, db_session, vendor, product, make_po):
        product.name = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
        db_session.commit()
        po = make_po(vendor, [(product, 1)])
        _, text = _pdf_text(render_pdf(build_snapshot(EntityStore(db_session), po)))
        assert "ABCDEFGHIJKLMNOPQRSTUVWXY" in text
        assert "Z0123" not in text

    def test_identical_snapshots_identical_bytes(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)], status="approved")
        snap = build_snapshot(EntityStore(db_session), po)
        assert render_pdf(snap) == render_pdf(snap)

    def test_wraps_unexpected_errors(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)])
        snap = build_snapshot(EntityStore(db_session), po)
        with patch("po_manager.services.po_document.canvas.Canvas", side_effect=RuntimeError("boom")):
            with pytest.raises(RenderFailure, match="boom"):
                render_pdf(snap)


# ── XLSX ─────────────────────────────────────────────────────────────


class TestRenderXlsx:
    def _sheet(self, content: bytes):
        return load_workbook(io.BytesIO(content)).active

    def test_layout_with_approval(self, db_session, vendor, product, box_product, make_po):
        po = make_po(vendor, [(product, 3), (box_product, 4)], status="approved")
        ws = self._sheet(render_xlsx(build_snapshot(EntityStore(db_session), po)))

        assert ws.title == "Purchase Order"
        assert ws["A1"].value == "PURCHASE ORDER"
        assert ws["A2"].value is None
        assert (ws["A3"].value, ws["B3"].value) == ("PO Number", po.po_number)
        assert (ws["A4"].value, ws["B4"].value) == ("Date", "15 Jan 2024")
        assert (ws["A5"].value, ws["B5"].value) == ("Vendor", "Acme Supplies")
        assert (ws["A6"].value, ws["B6"].value) == ("Status", "APPROVED")
        assert (ws["A7"].value, ws["B7"].value) == ("Approved", "16 Jan 2024")
        assert [c.value for c in ws[9]] == ["Product", "Brand", "Category", "Unit", "Quantity"]
        assert [c.value for c in ws[10]] == ["Steel Bolts M8", "FastenCo", "Hardware", "pcs", 3]
        assert [c.value for c in ws[11]] == ["Hex Nuts M8", "NutWorks", "Fasteners", "boxes", 4]
        assert (ws["A13"].value, ws["B13"].value) == ("Total Items", 2)

    def test_identical_snapshots_identical_bytes(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)], status="approved")
        snap = build_snapshot(EntityStore(db_session), po)
        content = render_xlsx(snap)
        assert render_xlsx(snap) == content

        # Nothing in the archive carries the wall clock
        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            assert {info.date_time for info in zf.infolist()} == {ZIP_ENTRY_DATE}
        props = load_workbook(io.BytesIO(content)).properties
        assert props.created == datetime(2024, 1, 15)
        assert props.modified == datetime(2024, 1, 15)

    def test_no_approved_row_while_created(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)])
        ws = self._sheet(render_xlsx(build_snapshot(EntityStore(db_session), po)))
        assert ws["A7"].value is None
        assert ws["A8"].value == "Product"

    def test_wraps_unexpected_errors(self, db_session, vendor, product, make_po):
        po = make_po(vendor, [(product, 3)])
        snap = build_snapshot(EntityStore(db_session), po)
        with patch("po_manager.services.po_document.Workbook", side_effect=RuntimeError("disk")):
            with pytest.raises(RenderFailure):
                render_xlsx(snap)


def test_render_dispatch_rejects_unknown_format(db_session, vendor, product, make_po):
    po = make_po(vendor, [(product, 1)])
    with pytest.raises(ValidationFailure):
        render(build_snapshot(EntityStore(db_session), po), "csv")
