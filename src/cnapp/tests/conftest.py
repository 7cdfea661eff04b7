"""
Core pytest configuration for the whole suite.

Storage tests run against a real SQLite database file (aiosqlite) created in
the test's tmp_path, opened through the same `SQLiteProvider` the application
registers. Domain fixtures live in tests/test_fixtures/.
"""

from __future__ import annotations

import logging

# Silence noisy third-party loggers before they are initialized.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "aiosqlite",
    "asyncio",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

from pathlib import Path
from typing import AsyncGenerator

import pytest

from cnapp.config.settings import Settings
from cnapp.core.logging.builder import setup_logging
from cnapp.database.base import DatabaseConfig
from cnapp.database.sqlalchemy_provider import SQLAlchemyConnection, SQLiteProvider
from cnapp.models import Base

logger = logging.getLogger(__name__)


def make_test_settings(**overrides) -> Settings:
    """Settings for tests: never read the developer's .env file."""
    values = {
        "ENV": "testing",
        "LOG_LEVEL": "DEBUG",
        "LOG_FORMAT": "text",
        "LOG_TO_STDOUT": True,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(scope="session", autouse=True)
def configure_logging():
    """
    Install application logging once for the session.

    pytest re-attaches its capture handler for every test phase, so `caplog`
    keeps working after dictConfig replaced the root handlers.
    """
    setup_logging(make_test_settings())
    yield


@pytest.fixture
def test_settings() -> Settings:
    return make_test_settings()


# ------------------------------------------------------------------------------------------------
# DATABASE FIXTURES
# ------------------------------------------------------------------------------------------------

def sqlite_dsn(path: Path) -> str:
    return f"sqlite:///{path}"


@pytest.fixture
def sqlite_config(tmp_path: Path) -> DatabaseConfig:
    """Pool-bounded config for a fresh database file."""
    return DatabaseConfig(
        driver="sqlite",
        dsn=sqlite_dsn(tmp_path / "cnapp.db"),
        max_open_conns=5,
        max_idle_conns=2,
        conn_max_lifetime=60,
    )


@pytest.fixture
async def connection(sqlite_config: DatabaseConfig) -> AsyncGenerator[SQLAlchemyConnection, None]:
    """
    Open a connection through the sqlite provider and create the schema.

    Closed at teardown (closing an already closed connection is a no-op).
    """
    conn = await SQLiteProvider().connect(sqlite_config)
    async with conn.engine.begin() as raw:
        await raw.run_sync(Base.metadata.create_all)

    yield conn

    await conn.close()


# Repository / service fixtures
from .test_fixtures.repository_fixtures import (  # noqa: E402
    user_repository,
    sample_user,
    create_user,
    created_user,
    multiple_users,
)
from .test_fixtures.service_fixtures import (  # noqa: E402
    fake_repository,
    user_service,
)
