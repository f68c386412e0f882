"""
Relational store access with retry.

Each ``query`` call runs one parameterized statement in its own transaction
on the shared ``AsyncEngine``. Connection and execution faults are retried
per the RetryPolicy; once the attempts are used up the caller only sees an
``InfrastructureError``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from ats.core.errors import InfrastructureError
from ats.core.retry import RetryError, RetryPolicy, execute_with_retry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RowSet:
    rows: list[dict[str, Any]] = field(default_factory=list)
    row_count: int = 0

    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


def _is_transient(exc: BaseException) -> bool:
    # constraint violations fail the same way on every attempt
    if isinstance(exc, IntegrityError):
        return False
    return isinstance(exc, (SQLAlchemyError, OSError))


class DataStoreGateway:
    def __init__(self, engine: AsyncEngine, policy: RetryPolicy):
        self._engine = engine
        self.policy = policy

    async def query(self, sql: str, params: Mapping[str, Any] | None = None) -> RowSet:
        """
        Execute ``sql`` with ``:name`` bound ``params``.

        Returns a RowSet; for statements without a result set ``row_count`` is
        the number of affected rows.
        """
        statement = text(sql)
        bound = dict(params or {})

        async def _run() -> RowSet:
            async with self._engine.begin() as conn:
                result = await conn.execute(statement, bound)
                if result.returns_rows:
                    rows = [dict(row) for row in result.mappings().all()]
                    return RowSet(rows=rows, row_count=len(rows))
                return RowSet(rows=[], row_count=result.rowcount)

        try:
            return await execute_with_retry(_run, self.policy, retry_if=_is_transient, description="Database query")
        except (RetryError, SQLAlchemyError, OSError) as e:
            logger.exception("Database query failed: %s", " ".join(sql.split()))
            raise InfrastructureError() from e

    async def aclose(self) -> None:
        await self._engine.dispose()
