"""
po_notify.py — Compose and deliver vendor notifications for selected POs.

Message flavours (all built from the same POSnapshot rows):
- WhatsApp text with *asterisk* bold, delivered as a wa.me deep link
- Plain text and HTML email bodies (Jinja2 templates), delivered via Brevo

Business Rules:
- One message per vendor group; a group with several POs gets one bulk
  message with a "---" divider between PO blocks
- Subject: "Purchase Order - <po_number>" or "Purchase Orders (<n>) - <vendor>"
- Nothing is sent while any group has a missing/invalid phone or email
- WhatsApp links open on a fixed stagger (notify_stagger_seconds apart)
- Emails go out one group at a time; a failed group does not stop the rest
- Sender is CC'd on every email when email_cc_sender is set

Called by: routers/purchase_orders.py
Depends on: services/po_grouping, services/po_document, http_client, config
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import quote

import httpx
from jinja2 import Environment, FileSystemLoader, select_autoescape
from sqlalchemy.orm import Session

from ..config import settings
from ..exceptions import DeliveryFailure, POManagerError, ValidationFailure
from ..http_client import http
from ..models import User
from ..permissions import SEND_PO, require_permission
from ..store import EntityStore
from .batch import INTERNAL_ERROR, BatchResult
from .po_document import POSnapshot, build_snapshot
from .po_grouping import EMAIL, PHONE, Selection, VendorGroup, clean_phone, group_by_vendor, validate_groups

log = logging.getLogger("po_manager.notify")

_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates" / "notifications"

_jinja_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

BLOCK_DIVIDER = "\n\n---\n\n"
CLOSING = "Please review and confirm.\n\nThank you."


@dataclass(frozen=True)
class GroupMessage:
    """Composed content for one vendor group, after any dialog edits."""

    group: VendorGroup
    snapshots: tuple[POSnapshot, ...]
    subject: str
    text: str
    html: str | None = None


@dataclass(frozen=True)
class DispatchStep:
    delay: float  # seconds after dispatch start
    url: str
    vendor_key: str | None = None


# ── WhatsApp text ────────────────────────────────────────────────────────


def _item_line(item, indent: str = "") -> str:
    return (
        f"{indent}• {item.name} | Brand: {item.brand} | Category: {item.category}"
        f" | Unit: {item.unit} | Qty: {item.quantity}"
    )


def whatsapp_single_message(snap: POSnapshot) -> str:
    items = "\n".join(_item_line(item) for item in snap.items)
    return (
        "*PURCHASE ORDER*\n\n"
        f"*PO Number:* {snap.po_number}\n"
        f"*Date:* {snap.display_date}\n"
        f"*Vendor:* {snap.vendor_name}\n"
        f"*Status:* {snap.display_status}\n"
        f"*Approved:* {snap.display_approved or '-'}\n\n"
        f"*Items:*\n{items}\n\n"
        f"*Total Items:* {snap.total_items}\n\n"
        f"{CLOSING}"
    )


def _whatsapp_block(snap: POSnapshot) -> str:
    items = "\n".join(_item_line(item, indent="  ") for item in snap.items)
    return (
        f"*PO Number:* {snap.po_number}\n"
        f"*Date:* {snap.display_date}\n"
        f"*Status:* {snap.display_status}\n"
        f"*Approved:* {snap.display_approved or '-'}\n"
        f"*Items:*\n{items}\n"
        f"*Total Items:* {snap.total_items}"
    )


def whatsapp_bulk_message(vendor_name: str, snaps: list[POSnapshot]) -> str:
    blocks = BLOCK_DIVIDER.join(_whatsapp_block(s) for s in snaps)
    return f"*PURCHASE ORDERS*\n\n*Vendor:* {vendor_name}\n\n{blocks}\n\n{CLOSING}"


def compose_whatsapp_message(vendor_name: str, snaps: list[POSnapshot]) -> str:
    if not snaps:
        raise ValidationFailure("No purchase orders to message")
    if len(snaps) == 1:
        return whatsapp_single_message(snaps[0])
    return whatsapp_bulk_message(vendor_name, snaps)


def whatsapp_link(phone: str, message: str) -> str:
    """wa.me deep link; the message is percent-encoded like encodeURIComponent."""
    encoded = quote(message, safe="-_.!~*'()")
    return f"{settings.whatsapp_base_url}/{clean_phone(phone)}?text={encoded}"


# ── Email content ────────────────────────────────────────────────────────


def email_subject(vendor_name: str, snaps: list[POSnapshot]) -> str:
    if len(snaps) == 1:
        return f"Purchase Order - {snaps[0].po_number}"
    return f"Purchase Orders ({len(snaps)}) - {vendor_name}"


def compose_email(vendor_name: str, snaps: list[POSnapshot]) -> tuple[str, str, str]:
    """Return (subject, html, text) for one vendor's POs."""
    if not snaps:
        raise ValidationFailure("No purchase orders to email")
    context = {
        "title": "PURCHASE ORDER" if len(snaps) == 1 else "PURCHASE ORDERS",
        "vendor_name": vendor_name,
        "pos": snaps,
    }
    html = _jinja_env.get_template("po_email.html").render(**context)
    text = _jinja_env.get_template("po_email.txt").render(**context)
    return email_subject(vendor_name, snaps), html, text


# ── Group preparation ────────────────────────────────────────────────────


def prepare_groups(db: Session, user: User, po_ids: list[int], channel: str) -> list[VendorGroup]:
    """Load the selected POs and group them per vendor for `channel`."""
    require_permission(user, SEND_PO)
    store = EntityStore(db)
    selection = Selection.of(store.require_pos(po_ids))
    return group_by_vendor(selection, store.find_vendor, channel)


def compose_for_group(store: EntityStore, group: VendorGroup) -> GroupMessage:
    snaps = tuple(build_snapshot(store, po) for po in group.pos)
    vendor_name = group.vendor.name
    if group.channel == PHONE:
        text = compose_whatsapp_message(vendor_name, list(snaps))
        return GroupMessage(group, snaps, subject="", text=group.message or text)
    subject, html, text = compose_email(vendor_name, list(snaps))
    return GroupMessage(
        group,
        snaps,
        subject=group.subject or subject,
        text=group.message or text,
        html=html,
    )


def _require_all_valid(groups: list[VendorGroup]) -> None:
    invalid = validate_groups(groups)
    if invalid:
        names = ", ".join(g.vendor.name for g in invalid)
        raise ValidationFailure(
            f"Fix contact details before sending: {names}",
            errors={g.key: g.error for g in invalid},
        )


# ── WhatsApp dispatch ────────────────────────────────────────────────────


def whatsapp_schedule(messages: list[GroupMessage], stagger: float | None = None) -> list[DispatchStep]:
    """One deep link per group, spaced `stagger` seconds apart."""
    groups = [m.group for m in messages]
    _require_all_valid(groups)
    if stagger is None:
        stagger = settings.notify_stagger_seconds
    return [
        DispatchStep(
            delay=index * stagger,
            url=whatsapp_link(m.group.target, m.text),
            vendor_key=m.group.key,
        )
        for index, m in enumerate(messages)
    ]


async def dispatch_schedule(steps: list[DispatchStep], opener) -> list[str]:
    """Call `opener(url)` for each step at its scheduled offset."""
    opened = []
    elapsed = 0.0
    for step in steps:
        wait = step.delay - elapsed
        if wait > 0:
            await asyncio.sleep(wait)
            elapsed = step.delay
        result = opener(step.url)
        if inspect.isawaitable(result):
            await result
        opened.append(step.url)
    return opened


# ── Email delivery ───────────────────────────────────────────────────────


async def send_email(
    to: str,
    to_name: str,
    subject: str,
    html: str,
    text: str,
    cc: str | None = None,
) -> str | None:
    """Send one transactional email through Brevo. Returns the message id."""
    if not settings.brevo_api_key:
        raise DeliveryFailure("Email service not configured")

    payload = {
        "sender": {"name": settings.email_from_name, "email": settings.email_from_address},
        "to": [{"email": to, "name": to_name}],
        "subject": subject,
        "htmlContent": html,
        "textContent": text,
    }
    if cc:
        payload["cc"] = [{"email": cc}]
    headers = {
        "accept": "application/json",
        "api-key": settings.brevo_api_key,
        "content-type": "application/json",
    }

    try:
        resp = await http.post(
            settings.brevo_api_url,
            json=payload,
            headers=headers,
            timeout=settings.email_timeout_seconds,
        )
    except httpx.HTTPError as e:
        log.error(f"Brevo request failed for {to}: {e}")
        raise DeliveryFailure(f"Email delivery failed: {e}") from e

    if resp.status_code >= 300:
        try:
            detail = resp.json().get("message")
        except ValueError:
            detail = None
        log.error(f"Brevo returned {resp.status_code} for {to}: {resp.text[:200]}")
        raise DeliveryFailure(detail or f"Failed to send email ({resp.status_code})")

    try:
        message_id = resp.json().get("messageId")
    except ValueError:
        message_id = None
    log.info(f"Email '{subject}' sent to {to} (message {message_id})")
    return message_id


async def send_group_emails(db: Session, user: User, groups: list[VendorGroup]) -> BatchResult:
    """Email every vendor group in turn; the result is keyed by vendor key."""
    require_permission(user, SEND_PO)
    if any(g.channel != EMAIL for g in groups):
        raise ValidationFailure("Email delivery needs email-channel vendor groups")
    _require_all_valid(groups)

    store = EntityStore(db)
    cc = settings.email_from_address if settings.email_cc_sender else None
    result = BatchResult()
    for group in groups:
        try:
            msg = compose_for_group(store, group)
            await send_email(group.target, group.vendor.name, msg.subject, msg.html, msg.text, cc=cc)
        except POManagerError as e:
            result.add_failure(group.key, e.kind)
            log.error(f"Email to vendor {group.key} failed: {e}")
        except Exception:
            result.add_failure(group.key, INTERNAL_ERROR)
            log.exception(f"Email to vendor {group.key} crashed")
        else:
            result.add_success(group.key)
    log.info(f"User {user.id} emailed {result.succeeded_count} vendor(s), {result.failed_count} failed")
    return result
