"""PO Manager — purchase order lifecycle, export and vendor notification service."""

__version__ = "1.0.0"
