"""Error taxonomy for the search engine.

Validation errors are the caller's fault and are raised before any store
access. Store and timeout errors are infrastructure failures that are safe to
retry because the engine never writes.
"""

from jobsearch.schemas.search import FieldError


class SearchError(Exception):
    """Base class for search engine errors."""


class SearchValidationError(SearchError):
    """One or more request parameters are outside their documented domain."""

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        fields = ", ".join(error.field for error in errors)
        super().__init__(f"Invalid search parameters: {fields}")


class StoreUnavailableError(SearchError):
    """The job-posting store could not be reached or rejected the query."""

    retryable = True


class SearchTimeoutError(SearchError):
    """The request-level deadline expired before all sub-queries returned."""

    retryable = True
