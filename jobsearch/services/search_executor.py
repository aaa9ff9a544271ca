"""Search executor: total count plus one page of results."""

import logging
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jobsearch.exceptions import StoreUnavailableError
from jobsearch.models import JobPosting
from jobsearch.services.predicates import CompiledQuery

logger = logging.getLogger(__name__)


@dataclass
class SearchPage:
    """Matching postings for one page and the total across all pages."""

    jobs: list[JobPosting]
    total: int


async def execute_search(
    db: AsyncSession,
    compiled: CompiledQuery,
    page: int,
    size: int,
) -> SearchPage:
    """Run the count and page queries for a compiled search.

    Both statements use the same `compiled.where()`, so the total always
    describes the rows the page is drawn from.

    Args:
        db: Database session
        compiled: Predicates and ordering from the compiler
        page: 1-indexed page number
        size: Page size

    Returns:
        SearchPage with the requested slice and the total match count

    Raises:
        StoreUnavailableError: If the store is unreachable or the query fails
    """
    total = await count_matches(db, compiled)
    if total == 0 or (page - 1) * size >= total:
        return SearchPage(jobs=[], total=total)

    page_stmt = (
        select(JobPosting)
        .where(compiled.where())
        .order_by(*compiled.order_by)
        .offset((page - 1) * size)
        .limit(size)
    )

    try:
        result = await db.execute(page_stmt)
        jobs = list(result.scalars().all())
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Search query failed: {type(e).__name__}: {e}")
        raise StoreUnavailableError(f"Job store unavailable: {e}") from e

    logger.debug(f"Search matched {total} postings, returning {len(jobs)} on page {page}")
    return SearchPage(jobs=jobs, total=total)


async def count_matches(db: AsyncSession, compiled: CompiledQuery) -> int:
    """Count postings matching every compiled predicate."""
    try:
        result = await db.execute(
            select(func.count(JobPosting.id)).where(compiled.where())
        )
        return result.scalar_one()
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Count query failed: {type(e).__name__}: {e}")
        raise StoreUnavailableError(f"Job store unavailable: {e}") from e
