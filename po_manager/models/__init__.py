"""Database models — re-exports all models.

Import from here:  from po_manager.models import PurchaseOrder, Vendor, ...
Or from submodules: from po_manager.models.vendors import Vendor
"""

from .base import Base  # noqa: F401

# Auth & Users
from .auth import User  # noqa: F401

# Vendors & Products
from .vendors import DEFAULT_UNIT, UNIT_LABELS, Product, Vendor  # noqa: F401

# Purchase Orders
from .purchase_orders import (  # noqa: F401
    PO_STATUSES,
    DownloadLog,
    PurchaseOrder,
    PurchaseOrderItem,
)
