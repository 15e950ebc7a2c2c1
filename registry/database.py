"""Engine, sessions and schema setup for the registry database."""

import asyncio
import logging
from pathlib import Path

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from registry.config import settings

logger = logging.getLogger(__name__)


def sqlite_file(database_url: str) -> Path | None:
    """The database file behind a SQLite URL; None for other backends and in-memory databases."""
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite" or url.database in (None, "", ":memory:"):
        return None
    return Path(url.database)


def _prepare(database_url: str) -> None:
    path = sqlite_file(database_url)
    if path is not None:
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Registry database file: %s", path)


_prepare(settings.database_url)

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    pass


async def get_db():
    async with async_session() as session:
        yield session


def _upgrade_to_head() -> None:
    from alembic import command
    from alembic.config import Config

    command.upgrade(Config("alembic.ini"), "head")


async def init_db():
    import registry.entities  # noqa: F401  (register tables on Base.metadata)

    if make_url(settings.database_url).get_backend_name() == "sqlite":
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return
    # env.py runs its own event loop
    await asyncio.to_thread(_upgrade_to_head)


async def close_db() -> None:
    await engine.dispose()
