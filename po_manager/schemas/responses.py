"""
schemas/responses.py — Shared response models for OpenAPI documentation

Called by: routers/*.py
Depends on: pydantic
"""

from pydantic import BaseModel


class OkResponse(BaseModel):
    ok: bool = True
