"""Map service-level exceptions to JSON error responses."""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ats.core.errors import (
    AuthenticationError,
    AuthorizationError,
    InfrastructureError,
    NotFoundError,
    ServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _status_for(exc: ServiceError) -> int:
    if isinstance(exc, ValidationError):
        return 422
    if isinstance(exc, AuthenticationError):
        return 401
    if isinstance(exc, AuthorizationError):
        return 403
    if isinstance(exc, NotFoundError):
        return 404
    return 500


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    status_code = _status_for(exc)
    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    detail = exc.message
    if status_code == 500:
        # cause already logged by the gateway; never echo it
        if not isinstance(exc, InfrastructureError):
            logger.error("Unhandled service error on %s %s: %r", request.method, request.url.path, exc)
        detail = InfrastructureError.message
    return JSONResponse(status_code=status_code, content={"detail": detail}, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, service_error_handler)
