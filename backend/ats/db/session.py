from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ats.config import Settings
from ats.db.base import Base


def build_engine(settings: Settings) -> AsyncEngine:
    return create_async_engine(
        settings.database_url,
        echo=settings.debug,
        pool_pre_ping=True,
    )


async def init_db(engine: AsyncEngine) -> None:
    # register table metadata before create_all
    import ats.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
