"""
po_grouping.py — Partition a PO selection into per-vendor recipient groups.

Used by the send flows: one WhatsApp message or email per vendor, covering all
of that vendor's selected POs.

Business Rules:
- One group per distinct vendor key, in order of first appearance
- Vendor key is the primary id; storage_ref only when the primary id is absent
- A PO whose vendor cannot be resolved is dropped from the result
- POs inside a group keep their selection order
- Phone: strip spaces, hyphens, parentheses and a leading "+"; < 10 chars is invalid
- Email: must match ^[^\\s@]+@[^\\s@]+\\.[^\\s@]+$

Grouping is a pure function of (selection, vendor lookup); nothing here
touches the database directly.

Called by: services/po_notify.py, routers/purchase_orders.py
Depends on: models (Vendor, PurchaseOrder)
"""

import re
from dataclasses import dataclass, replace
from typing import Callable

from ..models import PurchaseOrder, Vendor

PHONE = "phone"
EMAIL = "email"
CHANNELS = (PHONE, EMAIL)

MIN_PHONE_LENGTH = 10
_PHONE_STRIP_RE = re.compile(r"[\s\-\(\)]")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

PHONE_MISSING = "Vendor phone number missing. Please update vendor details."
PHONE_INVALID = "Phone number appears invalid. Include country code."
EMAIL_MISSING = "Vendor email is missing. Please update vendor details."
EMAIL_INVALID = "Please enter a valid email address."


@dataclass(frozen=True)
class Selection:
    """Ordered, de-duplicated set of POs picked for a bulk action."""

    pos: tuple[PurchaseOrder, ...] = ()

    @classmethod
    def of(cls, pos) -> "Selection":
        seen = set()
        ordered = []
        for po in pos:
            if po.id in seen:
                continue
            seen.add(po.id)
            ordered.append(po)
        return cls(tuple(ordered))

    @property
    def ids(self) -> list[int]:
        return [po.id for po in self.pos]

    def __len__(self) -> int:
        return len(self.pos)


@dataclass(frozen=True)
class VendorGroup:
    vendor: Vendor
    pos: tuple[PurchaseOrder, ...]
    channel: str
    target: str
    # User edits made in the send dialog; None means use the composed text
    subject: str | None = None
    message: str | None = None

    @property
    def key(self) -> str | None:
        return self.vendor.key

    @property
    def error(self) -> str | None:
        if self.channel == PHONE:
            return phone_error(self.target)
        return email_error(self.target)

    @property
    def valid(self) -> bool:
        return self.error is None

    @property
    def is_bulk(self) -> bool:
        return len(self.pos) > 1

    def with_target(self, target: str) -> "VendorGroup":
        """Copy of the group with an edited phone number or email address."""
        return replace(self, target=(target or "").strip())

    def edited(self, target=None, subject=None, message=None) -> "VendorGroup":
        """Apply whichever dialog edits were supplied."""
        group = self if target is None else self.with_target(target)
        if subject is not None:
            group = replace(group, subject=subject)
        if message is not None:
            group = replace(group, message=message)
        return group


# ── Contact validation ───────────────────────────────────────────────────


def clean_phone(phone: str | None) -> str:
    """'+91 98765-43210' → '919876543210'."""
    cleaned = _PHONE_STRIP_RE.sub("", phone or "")
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    return cleaned


def phone_error(phone: str | None) -> str | None:
    cleaned = clean_phone(phone)
    if not cleaned:
        return PHONE_MISSING
    if len(cleaned) < MIN_PHONE_LENGTH:
        return PHONE_INVALID
    return None


def is_valid_phone(phone: str | None) -> bool:
    return phone_error(phone) is None


def email_error(email: str | None) -> str | None:
    email = (email or "").strip()
    if not email:
        return EMAIL_MISSING
    if not _EMAIL_RE.match(email):
        return EMAIL_INVALID
    return None


def is_valid_email(email: str | None) -> bool:
    return email_error(email) is None


# ── Grouping ─────────────────────────────────────────────────────────────


def default_target(vendor: Vendor, channel: str) -> str:
    if channel == PHONE:
        return (vendor.phone or "").strip()
    return (vendor.contact_email or "").strip()


def group_by_vendor(
    selection: Selection,
    vendor_lookup: Callable[[str | None], Vendor | None],
    channel: str = PHONE,
) -> list[VendorGroup]:
    """Group the selection's POs by resolved vendor.

    `vendor_lookup` resolves a PO's vendor reference (primary id or
    storage_ref) to a Vendor, or None.
    """
    if channel not in CHANNELS:
        raise ValueError(f"Unknown channel '{channel}'")

    vendors: dict[str, Vendor] = {}
    buckets: dict[str, list[PurchaseOrder]] = {}
    for po in selection.pos:
        vendor = vendor_lookup(po.vendor_id)
        if vendor is None or vendor.key is None:
            continue
        key = vendor.key
        if key not in buckets:
            vendors[key] = vendor
            buckets[key] = []
        buckets[key].append(po)

    return [
        VendorGroup(
            vendor=vendors[key],
            pos=tuple(pos),
            channel=channel,
            target=default_target(vendors[key], channel),
        )
        for key, pos in buckets.items()
    ]


def validate_groups(groups: list[VendorGroup]) -> list[VendorGroup]:
    """Groups whose contact target is missing or invalid."""
    return [g for g in groups if not g.valid]
