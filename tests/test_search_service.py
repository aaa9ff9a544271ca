"""Search service tests against a real SQLite job store.

Covers pagination, filter conjunction, facet self-exclusion, ordering and
the failure isolation rules for facets versus the main page.
"""

import asyncio
import math
from datetime import timedelta

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from jobsearch.exceptions import SearchTimeoutError, StoreUnavailableError
from jobsearch.services import facet_aggregator, search_service
from jobsearch.services.query_parser import parse_search_params
from jobsearch.services.search_service import SearchService

from .conftest import NOW, make_posting

WORK_MODES = ["remote", "hybrid", "onsite"]
JOB_TYPES = ["full-time", "part-time", "contract"]
COUNTRIES = ["US", "DE", "GB", "US"]


def search_params(**params):
    pairs = []
    for key, value in params.items():
        values = value if isinstance(value, list) else [value]
        pairs.extend((key, str(item)) for item in values)
    return parse_search_params(pairs)


def facet_counts(facets, dimension) -> dict[str, int]:
    return {bucket.value: bucket.count for bucket in facets[dimension]}


@pytest.fixture
async def catalog(seed):
    """Twenty-five varied postings plus inactive and expired ones."""
    postings = [
        make_posting(
            title=f"Engineer {i}",
            company="Acme" if i % 2 else "Globex",
            work_mode=WORK_MODES[i % 3],
            job_type=JOB_TYPES[i % 3],
            country_code=COUNTRIES[i % 4],
            city="Berlin" if COUNTRIES[i % 4] == "DE" else "Springfield",
            category="technology",
            currency="USD",
            salary_min=40000 + i * 2000,
            salary_max=60000 + i * 3000,
            # Pairs of postings share a date to exercise the id tie-breaker
            posted_at=NOW - timedelta(days=i // 2),
        )
        for i in range(25)
    ]
    postings.append(make_posting(title="Retired role", is_active=False, work_mode="remote"))
    postings.append(
        make_posting(
            title="Expired role",
            work_mode="remote",
            expires_at=NOW - timedelta(days=1),
        )
    )
    return await seed(*postings)


async def test_concrete_scenario(service, scenario):
    query = search_params(work_mode="remote", sort="salary", page=1, size=10)

    response = await service.search(query)

    assert [job.id for job in response.jobs] == [scenario["A"], scenario["C"]]
    assert response.pagination.total == 2
    assert response.pagination.total_pages == 1
    assert response.facets is None


async def test_concrete_scenario_facets(service, scenario):
    query = search_params(work_mode="remote", sort="salary", include_facets="true")

    response = await service.search(query)

    assert facet_counts(response.facets, "work_mode") == {"remote": 2, "onsite": 1}


async def test_pagination_covers_every_match_once(service, catalog):
    size = 7
    first = await service.search(search_params(size=size))
    total = first.pagination.total

    assert total == 25
    assert first.pagination.total_pages == math.ceil(total / size)

    seen = []
    for page in range(1, first.pagination.total_pages + 1):
        response = await service.search(search_params(size=size, page=page))
        seen.extend(job.id for job in response.jobs)

    assert len(seen) == total
    assert len(set(seen)) == total


async def test_page_past_the_end_is_empty(service, catalog):
    response = await service.search(search_params(size=10, page=99))

    assert response.jobs == []
    assert response.pagination.total == 25
    assert response.pagination.total_pages == 3


async def test_no_matches_returns_zero_pages(service, catalog):
    response = await service.search(search_params(company="Initech"))

    assert response.jobs == []
    assert response.pagination.total == 0
    assert response.pagination.total_pages == 0


async def test_inactive_and_expired_postings_are_never_returned(service, catalog):
    response = await service.search(search_params(size=100))

    titles = {job.title for job in response.jobs}
    assert "Retired role" not in titles
    assert "Expired role" not in titles


async def test_filters_are_conjunctive(service, catalog):
    query = search_params(
        job_type=["full-time", "contract"],
        country="us",
        company="acm",
        salary_min=50000,
        size=100,
    )

    response = await service.search(query)

    assert response.jobs
    for job in response.jobs:
        assert job.job_type in {"full-time", "contract"}
        assert job.country_code == "US"
        assert "acme" in job.company.lower()
        assert job.salary_min >= 50000


async def test_remote_only_wins_over_explicit_work_mode(service, catalog):
    response = await service.search(
        search_params(remote_only="true", work_mode="onsite", size=100)
    )

    assert response.jobs
    assert {job.work_mode for job in response.jobs} == {"remote"}


async def test_city_is_case_insensitive_substring(service, catalog):
    response = await service.search(search_params(city="BERL", size=100))

    assert response.jobs
    assert {job.city for job in response.jobs} == {"Berlin"}


async def test_facet_counts_exclude_their_own_filter(service, catalog):
    query = search_params(work_mode="remote", country="US", include_facets="true")

    response = await service.search(query)
    work_modes = facet_counts(response.facets, "work_mode")

    for mode, count in work_modes.items():
        restricted = await service.search(search_params(work_mode=mode, country="US"))
        assert restricted.pagination.total == count

    # The selected value's count equals the page total
    assert work_modes["remote"] == response.pagination.total


async def test_facet_counts_apply_other_filters(service, catalog):
    response = await service.search(search_params(country="DE", include_facets="true"))

    assert facet_counts(response.facets, "city") == {"Berlin": response.pagination.total}
    assert sum(facet_counts(response.facets, "work_mode").values()) == response.pagination.total


async def test_facets_are_ordered_by_count_then_value(service, catalog):
    response = await service.search(search_params(include_facets="true"))

    for buckets in response.facets.values():
        keys = [(-bucket.count, bucket.value) for bucket in buckets]
        assert keys == sorted(keys)


async def test_all_null_dimension_yields_empty_facet(service, catalog):
    response = await service.search(search_params(include_facets="true"))

    assert response.facets["subcategory"] == []


async def test_facet_limit_caps_values(engine, session_factory, catalog):
    service = SearchService(session_factory, engine.dialect.name, facet_limit=2)

    response = await service.search(search_params(include_facets="true"))

    assert all(len(buckets) <= 2 for buckets in response.facets.values())


async def test_failed_facet_is_omitted(service, catalog, monkeypatch, caplog):
    original = facet_aggregator.aggregate_dimension

    async def flaky(db, compiled, dimension, limit):
        if dimension == "city":
            raise RuntimeError("boom")
        return await original(db, compiled, dimension, limit)

    monkeypatch.setattr(facet_aggregator, "aggregate_dimension", flaky)

    response = await service.search(search_params(include_facets="true"))

    assert "city" not in response.facets
    assert "work_mode" in response.facets
    assert response.pagination.total == 25
    assert "Facet 'city' aggregation failed" in caplog.text


async def test_identical_requests_are_idempotent(service, catalog):
    query = search_params(sort="salary", include_facets="true", size=10, page=2)

    first = await service.search(query)
    second = await service.search(query)

    assert first.model_dump() == second.model_dump()


async def test_equal_dates_are_ordered_by_id(service, catalog):
    response = await service.search(search_params(size=100))

    keys = [(job.posted_at, job.id) for job in response.jobs]
    assert keys == sorted(keys, reverse=True)


async def test_salary_sort_puts_missing_salaries_last(service, seed):
    await seed(
        make_posting(title="Unknown pay", salary_max=None),
        make_posting(title="Well paid", salary_max=200000),
        make_posting(title="Modest pay", salary_max=70000),
    )

    response = await service.search(search_params(sort="salary"))

    assert [job.title for job in response.jobs] == ["Well paid", "Modest pay", "Unknown pay"]


async def test_relevance_ranks_title_matches_first(service, seed):
    await seed(
        make_posting(
            title="Engineer",
            description="Backend services in Go",
            posted_at=NOW - timedelta(hours=1),
        ),
        make_posting(
            title="Backend Engineer",
            description="APIs",
            posted_at=NOW - timedelta(days=5),
        ),
        make_posting(title="Designer", description="Figma", posted_at=NOW),
    )

    response = await service.search(search_params(q="backend engineer", sort="relevance"))

    assert [job.title for job in response.jobs] == ["Backend Engineer", "Engineer"]


async def test_recency_window(service, seed):
    await seed(
        make_posting(title="Fresh", posted_at=NOW - timedelta(days=2)),
        make_posting(title="Stale", posted_at=NOW - timedelta(days=40)),
    )

    response = await service.search(search_params(date_posted=7))

    assert [job.title for job in response.jobs] == ["Fresh"]


async def test_tags_match_any_requested_tag(service, seed):
    await seed(
        make_posting(title="Data", tags=["python", "sql"]),
        make_posting(title="Web", tags=["typescript"]),
        make_posting(title="Untagged", tags=None),
    )

    response = await service.search(search_params(tags=["sql", "rust"]))

    assert [job.title for job in response.jobs] == ["Data"]


async def test_salary_modes(engine, session_factory, seed):
    await seed(
        make_posting(title="Wide", salary_min=40000, salary_max=120000),
        make_posting(title="High", salary_min=200000, salary_max=250000),
    )
    query = search_params(salary_min=60000, salary_max=150000)

    bounds = SearchService(session_factory, engine.dialect.name, salary_mode="bounds")
    overlap = SearchService(session_factory, engine.dialect.name, salary_mode="overlap")

    assert [job.title for job in (await bounds.search(query)).jobs] == []
    assert [job.title for job in (await overlap.search(query)).jobs] == ["Wide"]


async def test_facets_only(service, scenario):
    query = parse_search_params([("work_mode", "remote")], paginated=False)

    response = await service.facets(query)

    assert response.total == 2
    assert response.applied_filters == {"work_mode": ["remote"]}
    assert facet_counts(response.facets, "work_mode") == {"remote": 2, "onsite": 1}


async def test_store_failure_is_retryable_error(tmp_path):
    broken = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'jobs.db'}"
    )
    service = SearchService.from_engine(broken)

    with pytest.raises(StoreUnavailableError):
        await service.search(search_params(include_facets="true"))

    await broken.dispose()


async def test_deadline_cancels_the_request(service, monkeypatch):
    async def stalled(*args, **kwargs):
        await asyncio.sleep(10)

    monkeypatch.setattr(search_service, "execute_search", stalled)
    service.timeout_seconds = 0.05

    with pytest.raises(SearchTimeoutError):
        await service.search(search_params())


async def test_page_and_facet_queries_run_concurrently(service, catalog, monkeypatch):
    # Every facet dimension plus the page query must be in flight together
    barrier = asyncio.Barrier(len(facet_aggregator.FACET_DIMENSIONS) + 1)
    original_dimension = facet_aggregator.aggregate_dimension
    original_search = search_service.execute_search

    async def dimension_at_barrier(db, compiled, dimension, limit):
        async with asyncio.timeout(2):
            await barrier.wait()
        return await original_dimension(db, compiled, dimension, limit)

    async def search_at_barrier(db, compiled, page, size):
        async with asyncio.timeout(2):
            await barrier.wait()
        return await original_search(db, compiled, page, size)

    monkeypatch.setattr(facet_aggregator, "aggregate_dimension", dimension_at_barrier)
    monkeypatch.setattr(search_service, "execute_search", search_at_barrier)

    response = await service.search(search_params(include_facets="true"))

    assert response.pagination.total == 25
    assert set(response.facets) == set(facet_aggregator.FACET_DIMENSIONS)


async def test_search_failure_cancels_facet_work(service, monkeypatch):
    started = set()
    cancelled = set()
    facets_started = asyncio.Event()

    async def stalled_dimension(db, compiled, dimension, limit):
        started.add(dimension)
        facets_started.set()
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.add(dimension)
            raise
        return []

    async def failing_search(*args, **kwargs):
        await facets_started.wait()
        raise StoreUnavailableError("Job store unavailable: connection refused")

    monkeypatch.setattr(facet_aggregator, "aggregate_dimension", stalled_dimension)
    monkeypatch.setattr(search_service, "execute_search", failing_search)

    with pytest.raises(StoreUnavailableError):
        await service.search(search_params(include_facets="true"))

    assert started
    assert cancelled == started
