"""
Pytest configuration and fixtures
"""

import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from models import Base
from typing import AsyncGenerator


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest_asyncio.fixture(scope="function")
async def bare_engine(tmp_path):
    """SQLite engine on an empty database file"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'school.db'}",
        echo=False,
        poolclass=NullPool,  # Every session gets its own connection to the same file
    )
    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_engine(bare_engine):
    """Engine with the reference school schema created"""
    async with bare_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield bare_engine


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    async with session_factory() as session:
        yield session
        await session.rollback()


