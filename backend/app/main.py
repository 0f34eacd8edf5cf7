"""FastAPI application entry point."""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from app.auth.errors import AuthError, auth_error_handler
from app.config import settings
from app.db.engine import engine
from app.db.models import Base
from app.utils import background
from app.utils.logger import bind_principal, ctx_request_id, setup_logger

# Routers
from app.api.apikeys import router as apikeys_router
from app.api.audit import router as audit_router
from app.api.auth import router as auth_router
from app.api.organizations import router as organizations_router
from app.api.projects import router as projects_router
from app.api.service import router as service_router
from app.api.users import router as users_router

setup_logger(log_format=settings.LOG_FORMAT, log_level="DEBUG" if settings.DEBUG else settings.LOG_LEVEL)
logger = logging.getLogger("tenantgate")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Refuse to serve authenticated routes without a signing secret.
    settings.require_auth_secret()
    if settings.is_sqlite:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    # else: for PostgreSQL, run `alembic upgrade head` before starting the server
    logger.info("Application startup complete")
    try:
        yield
    finally:
        await background.drain()
        await engine.dispose()


app = FastAPI(
    title="TenantGate",
    description="Multi-tenant API with token / API-key authentication, RBAC and audit logging",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    ctx_request_id.set(request_id)
    bind_principal(None, None)
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Error rendering: every failure body is {"message": ..., ["error": ...]} ──

app.add_exception_handler(AuthError, auth_error_handler)


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Storage failure on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"message": "Internal server error.", "error": str(exc)})


# Mount routers
app.include_router(auth_router, prefix="/api/auth", tags=["auth"])
app.include_router(apikeys_router, prefix="/api/apikeys")
app.include_router(organizations_router, prefix="/api/organizations")
app.include_router(users_router, prefix="/api/users")
app.include_router(projects_router, prefix="/api/projects", tags=["projects"])
app.include_router(service_router, prefix="/api/service")
app.include_router(audit_router)  # prefix is defined in router: /api/audit


@app.get("/api/health")
async def health():
    return {"status": "ok"}


@app.get("/api/metrics", response_class=PlainTextResponse, tags=["observability"])
async def prometheus_metrics():
    """Prometheus-compatible text exposition of in-process metrics."""
    from app.utils.metrics import to_prometheus_text
    return to_prometheus_text()
