"""Request authentication (bearer access token) and authorization (admin role)."""

from __future__ import annotations

from ats.core.errors import AuthenticationError, AuthFailure, AuthorizationError
from ats.core.tokens import AccessClaims, TokenFactory

BEARER_PREFIX = "Bearer "


class AccessGuard:
    def __init__(self, tokens: TokenFactory):
        self._tokens = tokens

    def authenticate(self, authorization_header: str | None) -> AccessClaims:
        """Return the claims of the bearer token in ``authorization_header``; raises AuthenticationError."""
        if not authorization_header or not authorization_header.startswith(BEARER_PREFIX):
            raise AuthenticationError(AuthFailure.MISSING_TOKEN, "Access token is required")
        token = authorization_header[len(BEARER_PREFIX):].strip()
        if not token:
            raise AuthenticationError(AuthFailure.MISSING_TOKEN, "Access token is required")
        return self._tokens.verify(token)

    @staticmethod
    def authorize(claims: AccessClaims) -> None:
        if not claims.is_admin:
            raise AuthorizationError()
