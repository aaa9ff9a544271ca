"""Facet aggregator for the filter sidebar.

For every facet dimension this module counts matching postings per distinct
value, using the compiled query with that dimension's own filter removed.
A selected work mode therefore still shows counts for the other work modes.

Each dimension runs in its own session so all aggregations can be issued
concurrently; a failing dimension is logged and left out of the result.
"""

import asyncio
import logging
from collections.abc import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jobsearch.models import JobPosting
from jobsearch.schemas.search import FacetResult, FacetValue
from jobsearch.services.predicates import CompiledQuery

logger = logging.getLogger(__name__)

# Dimension name -> grouped column. Names match CompiledQuery predicate keys.
FACET_DIMENSIONS = {
    "country": JobPosting.country_code,
    "city": JobPosting.city,
    "category": JobPosting.category,
    "subcategory": JobPosting.subcategory,
    "job_type": JobPosting.job_type,
    "work_mode": JobPosting.work_mode,
    "experience_level": JobPosting.experience_level,
    "company": JobPosting.company,
    "source_platform": JobPosting.source_platform,
    "currency": JobPosting.currency,
}


async def aggregate_dimension(
    db: AsyncSession,
    compiled: CompiledQuery,
    dimension: str,
    limit: int,
) -> list[FacetValue]:
    """Count postings per value of one dimension.

    Args:
        db: Database session
        compiled: Compiled query; the dimension's own predicate is ignored
        dimension: Key of FACET_DIMENSIONS
        limit: Maximum number of distinct values to return

    Returns:
        Values ordered by count descending, then value ascending
    """
    column = FACET_DIMENSIONS[dimension]
    hits = func.count(JobPosting.id).label("hits")

    stmt = (
        select(column, hits)
        .where(compiled.where(exclude=dimension), column.is_not(None))
        .group_by(column)
        .order_by(hits.desc(), column.asc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return [FacetValue(value=str(value), count=count) for value, count in result.all()]


async def _aggregate_in_session(
    session_factory: async_sessionmaker[AsyncSession],
    compiled: CompiledQuery,
    dimension: str,
    limit: int,
) -> list[FacetValue]:
    async with session_factory() as db:
        return await aggregate_dimension(db, compiled, dimension, limit)


async def aggregate_facets(
    session_factory: async_sessionmaker[AsyncSession],
    compiled: CompiledQuery,
    dimensions: Iterable[str] | None = None,
    limit: int = 20,
) -> FacetResult:
    """Compute all facet dimensions concurrently.

    Args:
        session_factory: Factory for the per-dimension sessions
        compiled: Compiled query shared with the search executor
        dimensions: Subset of FACET_DIMENSIONS, defaults to all of them
        limit: Maximum number of values per dimension

    Returns:
        Mapping of dimension name to its values. Dimensions whose
        aggregation failed are omitted.
    """
    names = list(dimensions) if dimensions is not None else list(FACET_DIMENSIONS)

    results = await asyncio.gather(
        *(
            _aggregate_in_session(session_factory, compiled, name, limit)
            for name in names
        ),
        return_exceptions=True,
    )

    facets: FacetResult = {}
    for name, result in zip(names, results):
        if isinstance(result, Exception):
            logger.warning(
                f"Facet '{name}' aggregation failed, omitting: {type(result).__name__}: {result}"
            )
            continue
        if isinstance(result, BaseException):
            raise result
        facets[name] = result

    return facets
