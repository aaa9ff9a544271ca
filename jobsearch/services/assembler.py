"""Assembler for search response envelopes.

Pure and synchronous: combines the executor's page, pagination metadata and
optional facet output into the response schemas.
"""

import math

from jobsearch.schemas.job_posting import JobPostingResponse
from jobsearch.schemas.search import (
    FacetResult,
    FacetsResponse,
    Pagination,
    SearchQuery,
    SearchResponse,
)
from jobsearch.services.search_executor import SearchPage


def build_pagination(total: int, page: int, size: int) -> Pagination:
    """Pagination metadata; total_pages is 0 when nothing matched."""
    return Pagination(
        total=total,
        page=page,
        size=size,
        total_pages=math.ceil(total / size),
    )


def assemble_search_response(
    result: SearchPage,
    query: SearchQuery,
    facets: FacetResult | None = None,
) -> SearchResponse:
    """Build the GET /search envelope.

    Facets are only set when they were computed, so an unrequested facet
    block is left out of the serialized response entirely.
    """
    payload = {
        "jobs": [JobPostingResponse.model_validate(job) for job in result.jobs],
        "pagination": build_pagination(result.total, query.page, query.size),
    }
    if facets is not None:
        payload["facets"] = facets
    return SearchResponse(**payload)


def assemble_facets_response(
    total: int,
    query: SearchQuery,
    facets: FacetResult,
) -> FacetsResponse:
    """Build the GET /search/facets envelope."""
    return FacetsResponse(
        facets=facets,
        total=total,
        applied_filters=query.applied_filters(),
    )
