"""
schemas/ — Pydantic request/response models for the PO Manager API
"""
