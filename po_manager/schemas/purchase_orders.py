"""
schemas/purchase_orders.py — Pydantic models for Purchase Order endpoints

Validates request bodies and documents response shapes for OpenAPI.

Business Rules:
- Quantities are strict positive integers (no bools, no strings)
- Bulk requests need at least one id
- Export format is pdf or xlsx; location is optional free text
- Rejection reason is optional; blank is stored as null

Called by: routers/purchase_orders.py
Depends on: pydantic
"""

from __future__ import annotations

import datetime as dt
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


# ── Requests ─────────────────────────────────────────────────────────


class POItemIn(BaseModel):
    product_id: int
    quantity: int = Field(ge=1, strict=True)


class POCreate(BaseModel):
    vendor_id: str
    items: list[POItemIn] = Field(min_length=1)


class QueueProductIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1, strict=True)


class GenerateFromQueue(BaseModel):
    product_ids: list[int] | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class BulkIds(BaseModel):
    ids: list[int] = Field(min_length=1)


class ExportRequest(BulkIds):
    format: Literal["pdf", "xlsx"] = "pdf"
    location: str = ""


class GroupEdit(BaseModel):
    """Per-vendor edits made in a send dialog."""

    vendor_id: str
    target: str | None = None
    subject: str | None = None
    message: str | None = None


class NotifyRequest(BulkIds):
    edits: list[GroupEdit] = Field(default_factory=list)


# ── Responses ────────────────────────────────────────────────────────


class POItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int | None = None
    quantity: int


class POOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    po_number: str
    vendor_id: str | None = None
    vendor_name: str | None = None
    date: dt.date
    total_items: int
    status: str
    created_by_id: int | None = None
    approved_by_id: int | None = None
    approved_at: dt.datetime | None = None
    rejected_by_id: int | None = None
    rejected_at: dt.datetime | None = None
    rejection_reason: str | None = None
    items: list[POItemOut] = Field(default_factory=list)


class ProductQueueOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    vendor_id: str | None = None
    po_status: str
    order_quantity: int | None = None


class BatchFailure(BaseModel):
    id: int | str | None
    error: str


class BatchResponse(BaseModel):
    succeeded: list[int | str] = Field(default_factory=list)
    failed: list[BatchFailure] = Field(default_factory=list)
    succeeded_count: int = 0
    failed_count: int = 0
    message: str = ""


class GroupPreview(BaseModel):
    vendor_id: str | None
    vendor_name: str
    po_numbers: list[str]
    channel: str
    target: str
    valid: bool
    error: str | None = None
    subject: str = ""
    message: str
    html: str | None = None
    url: str | None = None
    delay: float | None = None
