"""Query validation and normalization for the search endpoints.

Turns raw query-string pairs into a typed SearchQuery. Every invalid
parameter is collected into a single SearchValidationError so the caller can
fix the whole request at once.
"""

import logging
from collections.abc import Iterable

from pydantic import ValidationError

from jobsearch.exceptions import SearchValidationError
from jobsearch.schemas.search import (
    MULTI_VALUED_FIELDS,
    PAGINATION_FIELDS,
    FieldError,
    SearchQuery,
)

logger = logging.getLogger(__name__)

KNOWN_PARAMS = set(SearchQuery.model_fields)


def collect_params(
    items: Iterable[tuple[str, str]],
    *,
    paginated: bool = True,
) -> dict:
    """Group raw query pairs by parameter name.

    Multi-valued parameters keep every occurrence. Single-valued parameters
    keep the last non-blank occurrence; blank values count as absent.
    """
    raw: dict = {}
    for key, value in items:
        if key not in KNOWN_PARAMS:
            continue
        if not paginated and key in PAGINATION_FIELDS:
            continue

        value = value.strip()
        if key in MULTI_VALUED_FIELDS:
            raw.setdefault(key, []).append(value)
        elif value:
            raw[key] = value
    return raw


def parse_search_params(
    items: Iterable[tuple[str, str]],
    *,
    paginated: bool = True,
) -> SearchQuery:
    """Parse raw request parameters into a SearchQuery.

    Args:
        items: (name, value) pairs; repeated names are allowed
        paginated: False for facets-only requests, which ignore
            page, size, sort and include_facets

    Returns:
        Normalized SearchQuery

    Raises:
        SearchValidationError: Listing every invalid parameter
    """
    raw = collect_params(items, paginated=paginated)

    try:
        return SearchQuery.model_validate(raw)
    except ValidationError as e:
        errors = [
            FieldError(
                field=str(error["loc"][0]) if error["loc"] else "query",
                message=error["msg"],
            )
            for error in e.errors()
        ]
        logger.info(f"Rejected search request: {[error.field for error in errors]}")
        raise SearchValidationError(errors) from e
