"""Application users: the actors behind every gated PO action."""

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Integer, String

from ..database import UTCDateTime
from .base import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255))
    role = Column(
        String(20), nullable=False, default="po_creator"
    )  # main_admin | po_creator | approval_admin
    is_active = Column(Boolean, default=True)
    created_at = Column(UTCDateTime, default=lambda: datetime.now(timezone.utc))
