"""
Long-lived clients and the services built on them.

Everything is constructed once in the app lifespan (or by a test) and handed
to the request handlers through ``app.state.services``; ``aclose()`` releases
the database pool and the S3 client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ats.config import Settings
from ats.core.guard import AccessGuard
from ats.core.tokens import TokenFactory
from ats.db.session import build_engine, init_db
from ats.services.datastore import DataStoreGateway
from ats.services.identity import IdentityStore
from ats.services.sessions import SessionStore
from ats.services.storage import BlobStoreGateway, get_s3_client

logger = logging.getLogger(__name__)


@dataclass
class Services:
    db: DataStoreGateway
    blobs: BlobStoreGateway
    tokens: TokenFactory
    identities: IdentityStore
    sessions: SessionStore
    guard: AccessGuard

    @classmethod
    def assemble(cls, db: DataStoreGateway, blobs: BlobStoreGateway, tokens: TokenFactory) -> Services:
        identities = IdentityStore(db)
        return cls(
            db=db,
            blobs=blobs,
            tokens=tokens,
            identities=identities,
            sessions=SessionStore(db, tokens, identities),
            guard=AccessGuard(tokens),
        )

    @classmethod
    async def start(cls, settings: Settings) -> Services:
        """Build clients from settings, create tables and the bucket if missing."""
        policy = settings.retry_policy
        engine = build_engine(settings)
        db = DataStoreGateway(engine, policy)
        blobs = BlobStoreGateway(
            get_s3_client(settings),
            settings.s3_bucket,
            policy,
            app_env=settings.app_env,
        )
        services = cls.assemble(db, blobs, TokenFactory.from_settings(settings))
        try:
            await init_db(engine)
            await blobs.ensure_bucket()
        except BaseException:
            await services.aclose()
            raise
        logger.info("Services started (env=%s, retry attempts=%d)", settings.app_env, policy.max_attempts)
        return services

    async def aclose(self) -> None:
        await self.db.aclose()
        self.blobs.close()
