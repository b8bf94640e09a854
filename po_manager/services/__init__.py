"""
services/ — PO lifecycle, grouping, document, export and notification logic.
"""
