"""Search API router.

This module provides the read-only job search endpoints:
- GET /search: filtered, sorted, paginated postings with optional facets
- GET /search/facets: facet counts and total only, for the filter sidebar

Parameters are parsed from the raw query string rather than declared one by
one, so repeated keys and every validation error can be reported together.
"""

import logging

from fastapi import APIRouter, Depends, Request, Response

from jobsearch.config import settings
from jobsearch.schemas.search import FacetsResponse, SearchResponse
from jobsearch.services.latency import LatencyMonitor
from jobsearch.services.query_parser import parse_search_params
from jobsearch.services.search_service import SearchService, get_search_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/search", tags=["search"])

TIMING_HEADER = "X-Search-Time-Ms"


@router.get(
    "",
    response_model=SearchResponse,
    response_model_exclude_unset=True,
    summary="Search job postings",
)
async def search_jobs(
    request: Request,
    response: Response,
    service: SearchService = Depends(get_search_service),
) -> SearchResponse:
    """Search active job postings.

    Query parameters: q, country, city, radius, category, subcategory,
    job_type (repeatable), work_mode (repeatable), experience_level
    (repeatable), tags (repeatable), salary_min, salary_max, currency,
    company, source_platform, language, date_posted, remote_only,
    sort (relevance|date|salary), page, size, include_facets.

    Args:
        request: Incoming request, read for its raw query parameters
        response: Outgoing response, used to attach the timing header
        service: Search service

    Returns:
        Page of postings with pagination metadata, plus facets if requested

    Raises:
        SearchValidationError: 400, every invalid parameter listed
        StoreUnavailableError: 503, safe to retry
        SearchTimeoutError: 504, safe to retry
    """
    with LatencyMonitor(settings.slow_query_threshold_ms, operation="search") as monitor:
        query = parse_search_params(request.query_params.multi_items())
        monitor.query = query
        result = await service.search(query)

    response.headers[TIMING_HEADER] = f"{monitor.elapsed_ms:.2f}"
    return result


@router.get(
    "/facets",
    response_model=FacetsResponse,
    summary="Facet counts for the current filters",
)
async def search_facets(
    request: Request,
    response: Response,
    service: SearchService = Depends(get_search_service),
) -> FacetsResponse:
    """Compute facet counts without fetching a results page.

    Accepts the same filters as GET /search; page, size, sort and
    include_facets are ignored.

    Args:
        request: Incoming request, read for its raw query parameters
        response: Outgoing response, used to attach the timing header
        service: Search service

    Returns:
        Facets per dimension, total match count and the applied filters
    """
    with LatencyMonitor(settings.slow_query_threshold_ms, operation="facets") as monitor:
        query = parse_search_params(request.query_params.multi_items(), paginated=False)
        monitor.query = query
        result = await service.facets(query)

    response.headers[TIMING_HEADER] = f"{monitor.elapsed_ms:.2f}"
    return result
