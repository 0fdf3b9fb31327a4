"""
actlabs_hub.api.errors

Maps the domain error taxonomy onto HTTP responses.

Responsibilities:
- One exception handler for `ActlabsError` and its subclasses.
- Stable `{code, detail}` bodies so clients can tell a failed deploy from an
  unverified one.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from actlabs_hub.errors import (
    ActlabsError,
    AuthorizationError,
    DeployVerificationError,
    NotFoundError,
    ProviderError,
    ValidationError,
)
from actlabs_hub.observability.logging import get_logger

log = get_logger(__name__)

_ERROR_STATUS: tuple[tuple[type[ActlabsError], int, str], ...] = (
    (ValidationError, 400, "VALIDATION_ERROR"),
    (AuthorizationError, 403, "AUTH_FORBIDDEN"),
    (NotFoundError, 404, "NOT_FOUND"),
    (DeployVerificationError, 504, "DEPLOY_UNVERIFIED"),
    (ProviderError, 502, "PROVIDER_ERROR"),
)


def status_for(exc: ActlabsError) -> tuple[int, str]:
    for exc_type, status_code, code in _ERROR_STATUS:
        if isinstance(exc, exc_type):
            return status_code, code
    return 500, "INTERNAL_ERROR"


async def actlabs_error_handler(request: Request, exc: ActlabsError) -> JSONResponse:
    status_code, code = status_for(exc)
    log.warning("request_failed", code=code, status_code=status_code, error=str(exc))
    return JSONResponse(status_code=status_code, content={"code": code, "detail": str(exc)})


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ActlabsError, actlabs_error_handler)  # type: ignore[arg-type]
