"""Shared fixtures: a throwaway SQLite job store and helpers to seed it."""

import itertools
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from jobsearch.database import build_session_factory, init_db
from jobsearch.models import JobPosting
from jobsearch.services.search_service import SearchService

NOW = datetime.now(timezone.utc).replace(microsecond=0)

_external_ids = itertools.count(1)


def make_posting(**overrides) -> JobPosting:
    """Build an active posting with sensible defaults."""
    fields = {
        "source_platform": "indeed",
        "external_id": f"ext-{next(_external_ids)}",
        "title": "Software Engineer",
        "description": "Build and maintain services.",
        "company": "Acme",
        "is_active": True,
        "posted_at": NOW - timedelta(days=1),
    }
    fields.update(overrides)
    return JobPosting(**fields)


@pytest.fixture
async def engine(tmp_path):
    # File-backed so each concurrent session gets its own connection
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'jobs.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def service(engine, session_factory):
    return SearchService(session_factory, engine.dialect.name)


@pytest.fixture
def seed(session_factory):
    """Insert postings and return them with ids assigned."""

    async def _seed(*postings: JobPosting) -> list[JobPosting]:
        async with session_factory() as db:
            db.add_all(postings)
            await db.commit()
        return list(postings)

    return _seed


@pytest.fixture
async def scenario(seed):
    """Three active postings: two remote, one onsite."""
    a, b, c = await seed(
        make_posting(
            title="Backend Engineer",
            work_mode="remote",
            salary_max=150000,
            posted_at=NOW - timedelta(days=3),
        ),
        make_posting(
            title="Backend Lead",
            work_mode="onsite",
            salary_max=180000,
            posted_at=NOW - timedelta(days=2),
        ),
        make_posting(
            title="Frontend Engineer",
            work_mode="remote",
            salary_max=120000,
            posted_at=NOW - timedelta(days=1),
        ),
    )
    return {"A": a.id, "B": b.id, "C": c.id}
