"""Database configuration and engine management.

Provides the async SQLAlchemy engine and the declarative base
shared by the catalog models.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from catalog_service.infrastructure.config import Settings

# Base class for models
Base = declarative_base()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create an async engine for the configured database.

    Args:
        settings: Application settings.

    Returns:
        AsyncEngine bound to ``settings.database_url``.
    """
    options: dict = {"echo": settings.debug}
    if not settings.database_url.startswith("sqlite"):
        options["pool_pre_ping"] = True
    return create_async_engine(settings.database_url, **options)


async def init_models(engine: AsyncEngine) -> None:
    """Create any missing catalog tables.

    Args:
        engine: Engine to create tables on.
    """
    # Register models on Base.metadata
    import catalog_service.catalog.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
