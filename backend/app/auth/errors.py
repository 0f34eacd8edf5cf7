"""Error taxonomy for the auth / tenancy core.

Each class maps to exactly one user-facing outcome.  All of them are terminal:
the stage that detects the condition raises, nothing retries.  The FastAPI app
renders them as ``{"message": ..., "error": ...}`` through
:func:`auth_error_handler`.
"""

from __future__ import annotations

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger("tenantgate.auth")


class AuthError(Exception):
    """Base class.  ``status_code`` and ``message`` define the HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = "Internal server error."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        error: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.error = error
        self.headers = headers
        super().__init__(self.message)


class MissingCredential(AuthError):
    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Access token required."


class InvalidCredential(AuthError):
    """Bad signature, expired token, or an unknown / revoked API key."""

    status_code = status.HTTP_401_UNAUTHORIZED
    message = "Invalid or revoked API key."


class Forbidden(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Insufficient permissions."


class TenantMismatch(AuthError):
    status_code = status.HTTP_403_FORBIDDEN
    message = "Access denied: organization mismatch."


class NotFound(AuthError):
    """Target entity absent *within the caller's organization*."""

    status_code = status.HTTP_404_NOT_FOUND
    message = "Not found."


class InternalError(AuthError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    message = "Internal server error."


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    body: dict[str, str] = {"message": exc.message}
    if exc.error:
        body["error"] = exc.error
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.message, exc.error)
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)
