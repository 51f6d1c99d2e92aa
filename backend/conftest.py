"""Global pytest fixtures for testing."""

import contextlib
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import dotenv
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from trawl_core.schemas import FeedState
from trawl_core.services import FeedStore
from trawl_database import Base
from trawl_database.session import create_session_factory

with contextlib.suppress(OSError):
    dotenv.load_dotenv()


class MockArqRedis:
    """Mock ArqRedis for testing."""

    def __init__(self):
        self.enqueued_jobs: list[tuple[str, tuple[Any, ...]]] = []
        self.job_ids: set[str] = set()

    async def enqueue_job(self, func_name: str, *args: Any, _job_id: str | None = None, **kwargs: Any):
        """Record calls; like arq, refuse a job id that is already queued."""
        if _job_id is not None:
            if _job_id in self.job_ids:
                return None
            self.job_ids.add(_job_id)
        self.enqueued_jobs.append((func_name, args))
        return _job_id or func_name

    def finish(self, job_id: str) -> None:
        """Mark a job as completed so its id can be reused."""
        self.job_ids.discard(job_id)

    def reset(self) -> None:
        """Reset all in-memory redis state."""
        self.enqueued_jobs.clear()
        self.job_ids.clear()


@pytest.fixture
def mock_redis() -> MockArqRedis:
    """Provide a fresh mock redis instance."""
    return MockArqRedis()


@pytest_asyncio.fixture
async def test_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Create a file-backed SQLite engine with all tables."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'trawl_test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(test_engine)


@pytest.fixture
def feed_store(session_factory: async_sessionmaker[AsyncSession]) -> FeedStore:
    """Feed store on the test database."""
    return FeedStore(session_factory)


@pytest.fixture
def make_feed():
    """Build in-memory feed working copies."""

    def _make(**overrides: Any) -> FeedState:
        values: dict[str, Any] = {
            "id": "feed-1",
            "url": "https://example.com/feed.xml",
            "check_interval": 60,
        }
        values.update(overrides)
        return FeedState(**values)

    return _make


@pytest.fixture
def poll_time() -> datetime:
    """Fixed poll timestamp."""
    return datetime(2024, 5, 1, 12, 0, tzinfo=UTC)
