"""
Shared fixtures for the Gigboard test suite.

Each test gets a fresh file-backed SQLite database built from the ORM
metadata.  Transactions are opened with ``BEGIN IMMEDIATE`` so that
concurrent sessions serialize on the database write lock the way
row-level locking serializes them on PostgreSQL.

Usage:
    cd backend && pytest tests/ -v
"""

import os
import sys
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine

# Configure the app before anything imports it
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "10000")
os.environ.setdefault("ENVIRONMENT", "development")

# Add backend to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from gigboard.cache import InMemoryCache  # noqa: E402
from gigboard.database import build_session_factory  # noqa: E402
from gigboard.models.db import Base, Job  # noqa: E402
from gigboard.models.profile_models import ProfileFields  # noqa: E402
from gigboard.models.proposal_models import MilestoneInput, ProposalCreate  # noqa: E402
from gigboard.services.cache_service import CacheCoordinator  # noqa: E402

# January 2025, the month most scenarios are pinned to
JAN_2025 = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)
FEB_2025 = datetime(2025, 2, 3, 9, 0, tzinfo=timezone.utc)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================

def generate_uuid() -> uuid.UUID:
    """Generate a fresh identity."""
    return uuid.uuid4()


def make_profile_fields(**overrides) -> ProfileFields:
    """Factory for a valid profile payload."""
    data = {
        "job_title": "Backend Engineer",
        "profile_description": "Builds APIs and data pipelines for small teams.",
        "first_name": "Sam",
        "last_name": "Rivera",
        "city_name": "Austin",
        "country": "US",
        "hourly_rate": 85.0,
        "skills": ["python", "postgres"],
    }
    data.update(overrides)
    return ProfileFields(**data)


def make_milestone(price: str, description: str = "Deliverable") -> MilestoneInput:
    return MilestoneInput(
        description=description,
        due_date=datetime(2025, 3, 1, tzinfo=timezone.utc),
        price=Decimal(price),
    )


def make_proposal(
    job_id: uuid.UUID,
    client_id: uuid.UUID,
    proposal_type: str = "fixed",
    total_price: str = "500.00",
    milestones=None,
) -> ProposalCreate:
    """Factory for a proposal submission."""
    return ProposalCreate(
        job_id=job_id,
        client_id=client_id,
        cover_letter="I have shipped three similar projects this year.",
        estimated_time="2 weeks",
        proposal_type=proposal_type,
        total_price=Decimal(total_price),
        milestones=milestones,
    )


async def make_job(db, client_id: uuid.UUID) -> Job:
    """Insert a fixed-price job owned by *client_id*."""
    job = Job(
        client_id=client_id,
        job_title="Build a REST API",
        description="Design and implement a small REST API with auth.",
        skills=["python"],
        timeline="small",
        total_time="1 month",
        expertise_level="intermediate",
        payment_type="fixed",
        price=Decimal("500.00"),
        fixed_payment_type="project",
        files=[],
        milestones=[],
    )
    db.add(job)
    await db.commit()
    return job


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture
async def engine(tmp_path):
    url = f"sqlite+aiosqlite:///{tmp_path / 'gigboard.db'}"
    engine = create_async_engine(url, connect_args={"timeout": 30})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def cache_backend():
    return InMemoryCache()


@pytest.fixture
def cache(cache_backend):
    return CacheCoordinator(cache_backend)


# ============================================================================
# HTTP FIXTURES
# ============================================================================

@pytest.fixture
async def client(session_factory, cache):
    """httpx client bound to the app with database and cache overridden."""
    from httpx import ASGITransport, AsyncClient

    from gigboard.deps import get_cache, get_db
    from gigboard.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


def auth_headers(user_id: uuid.UUID, role: str) -> dict:
    from gigboard.auth import create_access_token

    return {"Authorization": f"Bearer {create_access_token(user_id, role)}"}
