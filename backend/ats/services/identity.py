"""Read-only access to user identities and credential checks."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ats.core.errors import AuthenticationError, AuthFailure, ValidationError
from ats.core.security import verify_password
from ats.services.datastore import DataStoreGateway

SELECT_BY_USERNAME = """
    SELECT id, username, password_hash, is_admin
    FROM users
    WHERE username = :username
"""


@dataclass(frozen=True, slots=True)
class Identity:
    id: int
    username: str
    password_hash: str
    is_admin: bool

    @classmethod
    def from_row(cls, row: dict) -> Identity:
        # SQLite hands booleans back as 0/1
        return cls(
            id=int(row["id"]),
            username=row["username"],
            password_hash=row["password_hash"] or "",
            is_admin=bool(row["is_admin"]),
        )


class IdentityStore:
    def __init__(
        self,
        db: DataStoreGateway,
        password_verifier: Callable[[str, str], bool] = verify_password,
    ):
        self._db = db
        self._verify_password = password_verifier

    async def get_by_username(self, username: str) -> Identity | None:
        result = await self._db.query(SELECT_BY_USERNAME, {"username": username})
        row = result.first()
        return Identity.from_row(row) if row else None

    async def verify_credentials(self, username: str, password: str) -> Identity:
        """Return the identity for valid credentials; unknown user and wrong password fail alike."""
        if not isinstance(username, str) or not isinstance(password, str):
            raise ValidationError("Incorrect data type(s) in body")
        if not username or not password:
            raise ValidationError("Missing required fields")
        identity = await self.get_by_username(username)
        if identity is None or not identity.password_hash:
            raise AuthenticationError(AuthFailure.INVALID_CREDENTIALS, "Invalid credentials")
        if not self._verify_password(password, identity.password_hash):
            raise AuthenticationError(AuthFailure.INVALID_CREDENTIALS, "Invalid credentials")
        return identity
