"""
dependencies.py — Shared FastAPI Dependencies

Authentication is handled upstream; the session carries the user id and
these helpers turn it into a User row for the routers.

Business Rules:
- get_user returns None if not logged in (non-throwing)
- require_user raises 401 if not logged in, 403 if deactivated
- Role checks are not done here: services call the permission gate

Called by: routers/purchase_orders.py
Depends on: models, database
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from .database import get_db
from .models import User


def get_user(request: Request, db: Session) -> User | None:
    """Return current user from session, or None if not logged in."""
    uid = request.session.get("user_id")
    if not uid:
        return None
    return db.get(User, uid)


def require_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Dependency: raises 401 if no authenticated user, 403 if deactivated."""
    user = get_user(request, db)
    if not user:
        raise HTTPException(401, "Not authenticated")
    if not user.is_active:
        request.session.clear()
        raise HTTPException(403, "Account deactivated, contact admin")
    return user
