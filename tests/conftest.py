"""
Taskflow Test Configuration and Fixtures
Shared pytest fixtures for all test modules.
"""
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskflow.core.exceptions import RosterUnavailable
from taskflow.events import CommentEventBus
from taskflow.models import Base
from taskflow.schemas.members import MemberInfo
from taskflow.services.engine import CommentEngine
from taskflow.services.roster import RosterResolver, StaticRosterSource

START = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


ALICE = MemberInfo(id=1, display_name="Alice", email="alice@example.com")
BOB = MemberInfo(id=2, display_name="Bob", email="bob@example.com")
CAROL = MemberInfo(id=3, display_name="Carol", email="carol@example.com")
SAM_LEE = MemberInfo(id=4, display_name="Sam Lee", email="sam.lee@example.com")
CHRIS_A = MemberInfo(id=5, display_name="Chris", email="chris.adams@example.com")
CHRIS_B = MemberInfo(id=6, display_name="Chris", email="chris.baker@example.com")
DANA = MemberInfo(id=7, display_name="Dana Scott", email="dana@example.com")

ROSTER = [ALICE, BOB, CAROL, SAM_LEE, CHRIS_A, CHRIS_B, DANA]


class BrokenRosterSource:
    """Roster source whose backing directory is down."""

    async def list_members(self):
        raise RosterUnavailable("directory offline")


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest_asyncio.fixture(scope="function")
async def async_engine():
    """Create an async SQLite engine for testing."""
    # Use a unique temp file for each test to ensure complete isolation
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{db_path}",
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()

    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def session_factory(async_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def async_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create an async session for testing."""
    async with session_factory() as session:
        yield session
        await session.rollback()


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def roster_source() -> StaticRosterSource:
    return StaticRosterSource(ROSTER)


@pytest.fixture
def roster(roster_source) -> RosterResolver:
    return RosterResolver(roster_source, limit=5)


@pytest.fixture
def event_bus() -> CommentEventBus:
    return CommentEventBus(max_retries=1, retry_delay_base=0)


@pytest.fixture
def comment_engine(session_factory, roster_source, clock, event_bus) -> CommentEngine:
    return CommentEngine(
        session_factory,
        roster_source=roster_source,
        clock=clock,
        event_bus=event_bus,
        edit_window_seconds=300,
    )


@pytest.fixture
def store(comment_engine, async_session):
    return comment_engine.comment_store(async_session)


@pytest.fixture
def inbox(comment_engine, async_session):
    return comment_engine.inbox(async_session)
