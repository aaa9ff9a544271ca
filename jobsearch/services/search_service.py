"""Search service orchestrating a complete search request.

Workflow:
1. Compile the validated query once
2. Run the search executor and, when requested, the facet aggregator as
   concurrent tasks, each with its own database session
3. Assemble the response envelope

The whole request runs under a deadline. When it expires every in-flight
sub-query is cancelled. A failure of the search executor cancels the facet
work and fails the request; facet failures only drop the affected dimension.
"""

import asyncio
import logging
from collections.abc import Coroutine
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from jobsearch.config import Settings, settings
from jobsearch.database import AsyncSessionLocal, build_session_factory, engine
from jobsearch.exceptions import SearchTimeoutError
from jobsearch.schemas.search import FacetsResponse, SearchQuery, SearchResponse
from jobsearch.services.assembler import assemble_facets_response, assemble_search_response
from jobsearch.services.facet_aggregator import aggregate_facets
from jobsearch.services.predicates import CompiledQuery, SalaryMode, compile_query
from jobsearch.services.search_executor import SearchPage, count_matches, execute_search

logger = logging.getLogger(__name__)


class SearchService:
    """Read-only faceted search over the job-posting store.

    Stateless apart from its configuration, so one instance is shared by
    all requests.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dialect: str,
        *,
        facet_limit: int = 20,
        timeout_seconds: float = 5.0,
        salary_mode: SalaryMode = "bounds",
        exclude_expired: bool = True,
    ):
        self.session_factory = session_factory
        self.dialect = dialect
        self.facet_limit = facet_limit
        self.timeout_seconds = timeout_seconds
        self.salary_mode = salary_mode
        self.exclude_expired = exclude_expired

    @classmethod
    def from_engine(
        cls,
        bind: AsyncEngine,
        config: Settings = settings,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> "SearchService":
        """Create a service for an engine using application settings."""
        return cls(
            session_factory or build_session_factory(bind),
            bind.dialect.name,
            facet_limit=config.facet_limit,
            timeout_seconds=config.search_timeout_seconds,
            salary_mode=config.salary_filter_mode,
            exclude_expired=config.exclude_expired,
        )

    def compile(self, query: SearchQuery, now: datetime | None = None) -> CompiledQuery:
        return compile_query(
            query,
            dialect=self.dialect,
            now=now or datetime.now(timezone.utc),
            salary_mode=self.salary_mode,
            exclude_expired=self.exclude_expired,
        )

    async def search(self, query: SearchQuery) -> SearchResponse:
        """Run a paginated search, with facets when the query asks for them.

        Raises:
            StoreUnavailableError: If the page or count query fails
            SearchTimeoutError: If the request deadline expires
        """
        compiled = self.compile(query)

        page_coro = self._search_page(compiled, query.page, query.size)
        facets_coro = self._facets(compiled) if query.include_facets else None

        page, facets = await self._run_with_deadline(page_coro, facets_coro)

        logger.info(
            f"Search returned {len(page.jobs)} of {page.total} postings "
            f"(page {query.page}, sort {query.effective_sort.value}, "
            f"filters {sorted(compiled.predicates)})"
        )
        return assemble_search_response(page, query, facets)

    async def facets(self, query: SearchQuery) -> FacetsResponse:
        """Compute facets and the total match count without a results page.

        Raises:
            StoreUnavailableError: If the count query fails
            SearchTimeoutError: If the request deadline expires
        """
        compiled = self.compile(query)

        total, facets = await self._run_with_deadline(
            self._count(compiled),
            self._facets(compiled),
        )
        return assemble_facets_response(total, query, facets)

    async def _search_page(self, compiled: CompiledQuery, page: int, size: int) -> SearchPage:
        async with self.session_factory() as db:
            return await execute_search(db, compiled, page, size)

    async def _count(self, compiled: CompiledQuery) -> int:
        async with self.session_factory() as db:
            return await count_matches(db, compiled)

    async def _facets(self, compiled: CompiledQuery):
        return await aggregate_facets(self.session_factory, compiled, limit=self.facet_limit)

    async def _run_with_deadline(
        self,
        primary: Coroutine[Any, Any, Any],
        secondary: Coroutine[Any, Any, Any] | None,
    ) -> tuple[Any, Any]:
        """Await the primary and optional secondary work as one group.

        Returns:
            (primary result, secondary result or None)
        """
        tasks = [asyncio.create_task(primary)]
        if secondary is not None:
            tasks.append(asyncio.create_task(secondary))

        try:
            async with asyncio.timeout(self.timeout_seconds):
                results = await asyncio.gather(*tasks)
        except asyncio.TimeoutError:
            logger.error(f"Search request exceeded {self.timeout_seconds}s deadline")
            raise SearchTimeoutError(
                f"Search timed out after {self.timeout_seconds}s"
            )
        finally:
            pending = [task for task in tasks if not task.done()]
            for task in pending:
                task.cancel()
            # Let cancelled sub-queries release their sessions before returning
            await asyncio.gather(*pending, return_exceptions=True)

        if secondary is None:
            return results[0], None
        return results[0], results[1]


_default_service: SearchService | None = None


def get_search_service() -> SearchService:
    """FastAPI dependency returning the shared SearchService."""
    global _default_service
    if _default_service is None:
        _default_service = SearchService.from_engine(
            engine,
            session_factory=AsyncSessionLocal,
        )
    return _default_service
