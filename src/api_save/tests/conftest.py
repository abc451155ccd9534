"""
Core pytest configuration.

Database fixtures run against a throw-away SQLite file per test (through
aiosqlite) unless TEST_DATABASE_URL points somewhere else. Domain fixtures
(models, stores, save configurations) live in tests/test_fixtures/.
"""

from __future__ import annotations

import os
import logging
from typing import AsyncGenerator
from urllib.parse import urlparse

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
    "httpx",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

from api_save.config import get_settings
from api_save.core.logging.builder import setup_logging
from api_save.database.base import Base
from .test_fixtures import models  # noqa: F401 - registers the test tables on Base.metadata

logger = logging.getLogger(__name__)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """Install the service logging configuration for the whole session."""
    setup_logging(get_settings())
    yield


def safe_log_db_url(db_url: str) -> str:
    """Database URL without credentials, for log lines."""
    parsed = urlparse(db_url)
    return f"{parsed.scheme}://{parsed.hostname or ''}:{parsed.port or ''}/{parsed.path.lstrip('/')}"


def get_test_database_url(tmp_path) -> str:
    """TEST_DATABASE_URL (CI override) or a SQLite file inside the test's tmp dir."""
    if test_url := os.getenv("TEST_DATABASE_URL"):
        return test_url
    return f"sqlite+aiosqlite:///{tmp_path / 'test_database.db'}"


@pytest.fixture()
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    url = get_test_database_url(tmp_path)
    logger.debug("Using test DB: %s", safe_log_db_url(url))

    engine = create_async_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """
    A request-like session. Repositories commit their own writes, so isolation
    comes from the per-test database rather than an outer transaction.
    """
    maker = async_sessionmaker(bind=async_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as session:
        yield session


from .test_fixtures.repository_fixtures import (  # noqa: E402,F401
    product_repo,
    product_category_repo,
    product_image_repo,
    warehouse_repo,
    create_product,
    session_scope,
)
from .test_fixtures.save_fixtures import (  # noqa: E402,F401
    fake_product_store,
    fake_category_store,
    fake_image_store,
    fake_registry,
    product_schema,
    product_config,
    sql_registry,
    sql_product_config,
)
