"""Access token (JWT) issuing/verification and refresh token generation."""

from __future__ import annotations

import hashlib
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from ats.config import Settings
from ats.core.errors import TokenExpiredError, TokenInvalidError, ValidationError

ACCESS_TOKEN_TTL = timedelta(minutes=5)
REFRESH_TOKEN_TTL = timedelta(days=30)
REFRESH_TOKEN_BYTES = 32  # 256 bits -> 64 hex chars


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_refresh_token(token: str) -> str:
    """SHA256 hex digest of a refresh token; the only form that is stored."""
    if not isinstance(token, str):
        raise ValidationError("Refresh token must be a string")
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class AccessClaims:
    subject_user_id: int
    username: str
    is_admin: bool
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class IssuedTokens:
    access_token: str
    refresh_token: str
    refresh_token_hash: str
    access_expires_at: datetime
    refresh_expires_at: datetime


class TokenFactory:
    """
    Signs short-lived access tokens and mints refresh tokens.

    Signing uses HS256 with ``secret`` unless an RSA key pair is given, in
    which case access tokens are RS256 (private key signs, public verifies).
    """

    def __init__(
        self,
        secret: str,
        *,
        algorithm: str = "HS256",
        private_key: str = "",
        public_key: str = "",
        access_ttl: timedelta = ACCESS_TOKEN_TTL,
        refresh_ttl: timedelta = REFRESH_TOKEN_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ):
        if private_key.strip() and public_key.strip():
            self._signing_key, self._algorithm = private_key.strip(), "RS256"
            self._verification_key = public_key.strip()
        else:
            self._signing_key = self._verification_key = secret
            self._algorithm = algorithm
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self._clock = clock

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> TokenFactory:
        return cls(
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
            private_key=settings.jwt_private_key,
            public_key=settings.jwt_public_key,
            access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
            refresh_ttl=timedelta(days=settings.refresh_token_expire_days),
            **kwargs,
        )

    @property
    def algorithm(self) -> str:
        return self._algorithm

    def issue(
        self,
        user_id: int,
        username: str,
        is_admin: bool,
        access_ttl: timedelta | None = None,
        refresh_ttl: timedelta | None = None,
        now: datetime | None = None,
    ) -> IssuedTokens:
        """
        Create an access token, a refresh token and the refresh token hash.

        The caller stores ``refresh_token_hash`` and hands ``refresh_token``
        to the client; the raw refresh token is never kept server-side. Both
        expiries count from ``now``, the factory clock by default.
        """
        # bool is an int subclass; a flag is not a user id
        if not isinstance(user_id, int) or isinstance(user_id, bool):
            raise ValidationError("Invalid arguments: user_id must be an integer")
        if not isinstance(username, str):
            raise ValidationError("Invalid arguments: username must be a string")
        if not isinstance(is_admin, bool):
            raise ValidationError("Invalid arguments: is_admin must be a boolean")

        if now is None:
            now = self._clock()
        access_expires_at = now + (access_ttl if access_ttl is not None else self.access_ttl)
        refresh_expires_at = now + (refresh_ttl if refresh_ttl is not None else self.refresh_ttl)
        payload = {
            "sub": str(user_id),
            "name": username,
            "isAdmin": is_admin,
            "iat": now,
            "exp": access_expires_at,
        }
        result = jwt.encode(payload, self._signing_key, algorithm=self._algorithm)
        access_token = result if isinstance(result, str) else result.decode("utf-8")

        refresh_token = secrets.token_hex(REFRESH_TOKEN_BYTES)
        return IssuedTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            refresh_token_hash=hash_refresh_token(refresh_token),
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    def verify(self, access_token: str) -> AccessClaims:
        """Decode and check an access token; expired and otherwise-bad tokens raise different errors."""
        if not isinstance(access_token, str) or not access_token:
            raise TokenInvalidError()
        try:
            payload = jwt.decode(access_token, self._verification_key, algorithms=[self._algorithm])
        except ExpiredSignatureError as e:
            raise TokenExpiredError() from e
        except JWTError as e:
            raise TokenInvalidError() from e
        return self._claims_from_payload(payload)

    @staticmethod
    def _claims_from_payload(payload: dict[str, Any]) -> AccessClaims:
        try:
            user_id = int(payload["sub"])
            username = payload["name"]
            is_admin = payload["isAdmin"]
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (KeyError, TypeError, ValueError) as e:
            raise TokenInvalidError() from e
        if not isinstance(username, str) or not isinstance(is_admin, bool):
            raise TokenInvalidError()
        return AccessClaims(
            subject_user_id=user_id,
            username=username,
            is_admin=is_admin,
            issued_at=issued_at,
            expires_at=expires_at,
        )
