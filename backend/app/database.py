from collections.abc import AsyncGenerator
from pathlib import Path
from typing import Any

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from .config import settings
from .crud.errors import store_errors

ALEMBIC_DIR = Path(__file__).resolve().parent.parent / "alembic"


engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    future=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_recycle=settings.db_pool_recycle,
    pool_pre_ping=settings.db_pool_pre_ping,
)
# expire_on_commit=False keeps role/admin snapshots readable after commit.
# Repositories refresh (or re-select) anything they hand back after a write.
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def alembic_config(**kwargs: Any) -> Config:
    config = Config(**kwargs)
    config.set_main_option("script_location", str(ALEMBIC_DIR))
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
    return config


def upgrade_schema(revision: str = "head") -> None:
    """Apply the Alembic migrations for ``roles`` and ``admins`` up to ``revision``."""
    with store_errors("schema.upgrade"):
        command.upgrade(alembic_config(), revision)
