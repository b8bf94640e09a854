"""
permissions.py — Role → capability gate for every PO action.

A static table, not user-data-driven. Services call require_permission()
before touching the database so a denial never leaves a partial side effect.

Business Rules:
- main_admin holds every capability
- approval_admin approves/rejects and downloads, but cannot create or delete
- po_creator creates POs, downloads single POs and sends them to vendors
- Unknown roles or capabilities are denied, never raised

Called by: services/po_lifecycle.py, services/po_export.py, services/po_notify.py,
           routers/purchase_orders.py
Depends on: exceptions
"""

from .exceptions import Unauthorized

CREATE_PO = "create_po"
APPROVE_PO = "approve_po"
REJECT_PO = "reject_po"
BULK_APPROVE_PO = "bulk_approve_po"
DELETE_PO = "delete_po"
DOWNLOAD_PO = "download_po"
BULK_DOWNLOAD_PO = "bulk_download_po"
SEND_PO = "send_po"
VIEW_REJECTED = "view_rejected"
VIEW_PO_DOWNLOAD = "view_po_download"

ALL_CAPABILITIES = frozenset(
    {
        CREATE_PO,
        APPROVE_PO,
        REJECT_PO,
        BULK_APPROVE_PO,
        DELETE_PO,
        DOWNLOAD_PO,
        BULK_DOWNLOAD_PO,
        SEND_PO,
        VIEW_REJECTED,
        VIEW_PO_DOWNLOAD,
    }
)

ROLE_PERMISSIONS: dict[str, frozenset[str]] = {
    "main_admin": ALL_CAPABILITIES,
    "approval_admin": frozenset(
        {
            APPROVE_PO,
            REJECT_PO,
            BULK_APPROVE_PO,
            DOWNLOAD_PO,
            BULK_DOWNLOAD_PO,
            SEND_PO,
            VIEW_REJECTED,
            VIEW_PO_DOWNLOAD,
        }
    ),
    "po_creator": frozenset(
        {
            CREATE_PO,
            DOWNLOAD_PO,
            SEND_PO,
            VIEW_PO_DOWNLOAD,
        }
    ),
}


def has_permission(role: str | None, capability: str) -> bool:
    """True if `role` holds `capability`. Unknown roles get nothing."""
    return capability in ROLE_PERMISSIONS.get(role or "", frozenset())


def permissions_for(role: str | None) -> list[str]:
    return sorted(ROLE_PERMISSIONS.get(role or "", frozenset()))


def require_permission(user, capability: str) -> None:
    """Raise Unauthorized unless the acting user's role holds `capability`."""
    role = getattr(user, "role", None)
    if not has_permission(role, capability):
        raise Unauthorized(role, capability)
