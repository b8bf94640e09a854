"""
main.py — FastAPI application for the PO Manager service

Wires middleware, the PO router, and the exception handlers that turn
service errors into the shared ErrorResponse JSON shape.

Business Rules:
- Every response carries an X-Request-ID (incoming header or generated)
- POManagerError → its own status code (403/404/409/422/500/502)
- Tables are created on startup except in TESTING mode

Called by: uvicorn (po_manager.main:app)
Depends on: config, logging_config, database, routers/purchase_orders.py
"""

import os
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware

from . import __version__
from .config import settings
from .database import engine
from .exceptions import POManagerError
from .http_client import close_clients
from .logging_config import setup_logging
from .models import Base
from .rate_limit import limiter
from .routers import purchase_orders
from .schemas.errors import ErrorResponse


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if os.environ.get("TESTING"):
        logger.info("TESTING mode, skipping table creation")
    else:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ready")
    yield
    await close_clients()


app = FastAPI(title="PO Manager", version=__version__, lifespan=lifespan)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.secret_key,
    https_only=settings.is_production,
)
app.include_router(purchase_orders.router)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    request.state.request_id = request_id
    with logger.contextualize(request_id=request_id):
        response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


def _error_response(request: Request, status_code: int, error: str, detail=None) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        status_code=status_code,
        request_id=getattr(request.state, "request_id", ""),
        detail=detail,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(POManagerError)
async def po_manager_error_handler(request: Request, exc: POManagerError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.kind} on {request.method} {request.url.path}: {exc.message}")
    detail = {"kind": exc.kind, **exc.context} if exc.context else {"kind": exc.kind}
    return _error_response(request, exc.status_code, exc.message, detail)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return _error_response(request, exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
        for e in exc.errors()
    ]
    return _error_response(request, 422, "Validation error", errors)


@app.get("/health")
def health():
    return {"status": "ok", "version": __version__}
