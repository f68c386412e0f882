"""
Service-level exceptions shared by the gateways, the token code and the API.

None of these carry HTTP details; ``ats.api.errors`` maps them to responses.
"""

from __future__ import annotations

from enum import Enum


class AuthFailure(str, Enum):
    """Why an authentication check rejected a request."""

    MISSING_TOKEN = "missing_token"
    EXPIRED_TOKEN = "expired_token"
    INVALID_TOKEN = "invalid_token"
    INVALID_CREDENTIALS = "invalid_credentials"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"


class ServiceError(Exception):
    """Base class for all service-level errors."""

    message = "Service error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ValidationError(ServiceError):
    """Malformed or missing input; rejected before any store call."""

    message = "Invalid input"


class InfrastructureError(ServiceError):
    """
    A database or object storage call failed for good (after retries).

    The message is deliberately generic; the cause is chained and logged
    where the failure is detected.
    """

    message = "Internal server error"


class NotFoundError(ServiceError):
    message = "Not found"


class BlobNotFoundError(NotFoundError):
    def __init__(self, key: str):
        super().__init__("Object not found")
        self.key = key


class AuthenticationError(ServiceError):
    """Bad credentials, bad refresh token, or missing/invalid/expired access token."""

    message = "Authentication failed"

    def __init__(self, reason: AuthFailure, message: str | None = None):
        super().__init__(message)
        self.reason = reason


class TokenExpiredError(AuthenticationError):
    def __init__(self, message: str = "Access token has expired"):
        super().__init__(AuthFailure.EXPIRED_TOKEN, message)


class TokenInvalidError(AuthenticationError):
    def __init__(self, message: str = "Invalid access token"):
        super().__init__(AuthFailure.INVALID_TOKEN, message)


class AuthorizationError(ServiceError):
    """Authenticated, but the role does not allow the action."""

    message = "Forbidden: Admins only"
