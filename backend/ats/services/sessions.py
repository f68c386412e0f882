"""
Refresh token sessions: login, rotation and revocation.

Only ``sha256(refresh_token)`` reaches the ``refresh_tokens`` table. Expiry is
checked when a token is presented for rotation; nothing sweeps old rows.
Rotation swaps the hash with one conditional UPDATE keyed on the old hash, so
when two requests rotate the same token concurrently exactly one succeeds.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone

from ats.core.errors import AuthenticationError, AuthFailure, ValidationError
from ats.core.tokens import IssuedTokens, TokenFactory, hash_refresh_token
from ats.services.datastore import DataStoreGateway
from ats.services.identity import Identity, IdentityStore

logger = logging.getLogger(__name__)

INSERT_REFRESH_TOKEN = """
    INSERT INTO refresh_tokens (user_id, refresh_token_hash, expires_at)
    VALUES (:user_id, :token_hash, :expires_at)
"""

SELECT_ACTIVE_SESSION = """
    SELECT rt.user_id, u.username, u.is_admin
    FROM refresh_tokens AS rt
    JOIN users AS u ON u.id = rt.user_id
    WHERE rt.refresh_token_hash = :token_hash
      AND rt.expires_at > :now
"""

ROTATE_REFRESH_TOKEN = """
    UPDATE refresh_tokens
    SET refresh_token_hash = :new_hash,
        expires_at = :expires_at
    WHERE refresh_token_hash = :old_hash
      AND expires_at > :now
"""

SELECT_ROTATED_HASH = """
    SELECT 1 AS found
    FROM refresh_tokens
    WHERE refresh_token_hash = :new_hash
"""

DELETE_REFRESH_TOKEN = """
    DELETE FROM refresh_tokens
    WHERE refresh_token_hash = :token_hash
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class TokenPair:
    access_token: str
    refresh_token: str
    expires_in: int  # seconds until the access token expires


def _require_token(refresh_token: object) -> str:
    if not isinstance(refresh_token, str):
        raise ValidationError("Incorrect data type in body")
    token = refresh_token.strip()
    if not token:
        raise ValidationError("Missing refresh token")
    return token


class SessionStore:
    def __init__(
        self,
        db: DataStoreGateway,
        tokens: TokenFactory,
        identities: IdentityStore | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._db = db
        self._tokens = tokens
        self._identities = identities or IdentityStore(db)
        self._clock = clock

    @staticmethod
    def _pair(issued: IssuedTokens, now: datetime) -> TokenPair:
        expires_in = max(0, int((issued.access_expires_at - now).total_seconds()))
        return TokenPair(
            access_token=issued.access_token,
            refresh_token=issued.refresh_token,
            expires_in=expires_in,
        )

    async def login(self, identity: Identity) -> TokenPair:
        """Issue a token pair for ``identity`` and persist the refresh token hash."""
        now = self._clock()
        issued = self._tokens.issue(identity.id, identity.username, identity.is_admin, now=now)
        await self._db.query(
            INSERT_REFRESH_TOKEN,
            {
                "user_id": identity.id,
                "token_hash": issued.refresh_token_hash,
                "expires_at": issued.refresh_expires_at,
            },
        )
        logger.info("Session started for user %s", identity.id)
        return self._pair(issued, now)

    async def login_with_password(self, username: str, password: str) -> TokenPair:
        identity = await self._identities.verify_credentials(username, password)
        return await self.login(identity)

    async def rotate(self, old_refresh_token: str) -> TokenPair:
        """
        Exchange a live refresh token for a new pair; the presented token stops working.

        Unknown, expired and already-rotated tokens all raise the same
        AuthenticationError.
        """
        old_hash = hash_refresh_token(_require_token(old_refresh_token))
        now = self._clock()
        result = await self._db.query(SELECT_ACTIVE_SESSION, {"token_hash": old_hash, "now": now})
        row = result.first()
        if row is None:
            raise AuthenticationError(AuthFailure.INVALID_REFRESH_TOKEN, "Invalid refresh token")

        issued = self._tokens.issue(int(row["user_id"]), row["username"], bool(row["is_admin"]), now=now)
        updated = await self._db.query(
            ROTATE_REFRESH_TOKEN,
            {
                "new_hash": issued.refresh_token_hash,
                "expires_at": issued.refresh_expires_at,
                "old_hash": old_hash,
                "now": now,
            },
        )
        if updated.row_count != 1 and not await self._committed_earlier(issued.refresh_token_hash):
            logger.warning("Refresh token for user %s was rotated concurrently", row["user_id"])
            raise AuthenticationError(AuthFailure.INVALID_REFRESH_TOKEN, "Invalid refresh token")
        return self._pair(issued, now)

    async def _committed_earlier(self, new_hash: str) -> bool:
        # A retried UPDATE matches nothing when an earlier attempt committed but
        # its acknowledgement was lost. The new hash is known only to this call.
        result = await self._db.query(SELECT_ROTATED_HASH, {"new_hash": new_hash})
        return result.first() is not None

    async def revoke(self, refresh_token: str) -> None:
        """Delete the session for ``refresh_token``; a token with no session is not an error."""
        token_hash = hash_refresh_token(_require_token(refresh_token))
        await self._db.query(DELETE_REFRESH_TOKEN, {"token_hash": token_hash})
