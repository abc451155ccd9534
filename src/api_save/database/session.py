from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)

from api_save.config.settings import get_settings


@lru_cache()
def get_engine() -> AsyncEngine:
    """Process-wide engine, created on first use from Settings."""
    settings = get_settings()
    return create_async_engine(
        settings.database_url,
        echo=settings.SQLALCHEMY_ECHO,
        pool_pre_ping=True,
    )


@lru_cache()
def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=get_engine(),
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency. Yields a session and closes it after the request.

    Usage:
        async def endpoint(db: AsyncSession = Depends(get_async_session)):
            scope = SessionScope(db)
    """
    async with get_sessionmaker()() as session:
        yield session
