"""Search-related Pydantic schemas.

This module defines the normalized search query produced by the query parser,
and the response envelopes returned by the /search endpoints.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from jobsearch.schemas.job_posting import CamelModel, JobPostingResponse


class JobType(str, Enum):
    FULL_TIME = "full-time"
    PART_TIME = "part-time"
    CONTRACT = "contract"
    INTERNSHIP = "internship"
    TEMPORARY = "temporary"


class WorkMode(str, Enum):
    REMOTE = "remote"
    HYBRID = "hybrid"
    ONSITE = "onsite"


class ExperienceLevel(str, Enum):
    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    EXECUTIVE = "executive"
    INTERNSHIP = "internship"


class SortMode(str, Enum):
    RELEVANCE = "relevance"
    DATE = "date"
    SALARY = "salary"


# Salaries are stored in 32-bit integer columns
MAX_SALARY = 2_147_483_647

MULTI_VALUED_FIELDS = ("job_type", "work_mode", "experience_level", "tags")
BOOLEAN_FIELDS = ("remote_only", "include_facets")
PAGINATION_FIELDS = ("page", "size", "sort", "include_facets")


class SearchQuery(BaseModel):
    """Normalized, bounds-checked search request.

    Built by services.query_parser from raw query-string pairs. Multi-valued
    filters arrive as lists of raw strings and leave as sets of enum members,
    so a malformed value never reaches the predicate compiler.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    q: str | None = None

    # Location
    country: str | None = None
    city: str | None = None
    radius: int | None = Field(None, ge=1, le=500)

    # Classification
    category: str | None = None
    subcategory: str | None = None
    job_type: frozenset[JobType] | None = None
    work_mode: frozenset[WorkMode] | None = None
    experience_level: frozenset[ExperienceLevel] | None = None
    remote_only: bool = False

    # Compensation
    salary_min: int | None = Field(None, ge=0, le=MAX_SALARY)
    salary_max: int | None = Field(None, ge=0, le=MAX_SALARY)
    currency: str | None = None

    # Source and freshness
    company: str | None = None
    source_platform: str | None = None
    language: str | None = None
    tags: frozenset[str] | None = None
    date_posted: int | None = Field(None, ge=1, le=365)

    # Ordering and pagination
    sort: SortMode = SortMode.DATE
    page: int = Field(1, ge=1)
    size: int = Field(20, ge=1, le=100)
    include_facets: bool = False

    @field_validator(*MULTI_VALUED_FIELDS, mode="before")
    @classmethod
    def split_multi_values(cls, value):
        if value is None:
            return None
        if isinstance(value, str):
            value = [value]
        values = {
            part.strip()
            for raw in value
            for part in str(raw).split(",")
            if part.strip()
        }
        if not values:
            raise ValueError("at least one non-empty value is required")
        return values

    @field_validator(*BOOLEAN_FIELDS, mode="before")
    @classmethod
    def coerce_flag(cls, value):
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in ("true", "1")

    @field_validator("country", "currency")
    @classmethod
    def upper_code(cls, value: str | None) -> str | None:
        return value.upper() if value else value

    @field_validator("salary_max")
    @classmethod
    def salary_range_ordered(cls, value: int | None, info: ValidationInfo) -> int | None:
        salary_min = info.data.get("salary_min")
        if value is not None and salary_min is not None and value < salary_min:
            raise ValueError(
                f"salary_max ({value}) must be greater than or equal to salary_min ({salary_min})"
            )
        return value

    @property
    def effective_sort(self) -> SortMode:
        """Relevance ordering needs a text term; fall back to date otherwise."""
        if self.sort is SortMode.RELEVANCE and not self.q:
            return SortMode.DATE
        return self.sort

    def applied_filters(self) -> dict:
        """Filters the caller actually supplied, JSON-ready and order-stable."""
        applied = self.model_dump(
            mode="json",
            exclude_defaults=True,
            exclude=set(PAGINATION_FIELDS),
        )
        for name in MULTI_VALUED_FIELDS:
            if name in applied:
                applied[name] = sorted(applied[name])
        return applied

    def log_context(self) -> dict:
        """Normalized query for structured log records."""
        return {
            **self.applied_filters(),
            "sort": self.effective_sort.value,
            "page": self.page,
            "size": self.size,
            "include_facets": self.include_facets,
        }


class FieldError(BaseModel):
    """A single invalid request parameter."""

    field: str
    message: str


class FacetValue(BaseModel):
    """One bucket of a facet dimension."""

    value: str
    count: int = Field(..., ge=0)


FacetResult = dict[str, list[FacetValue]]


class Pagination(CamelModel):
    total: int
    page: int
    size: int
    total_pages: int


class SearchResponse(CamelModel):
    """Schema for GET /search."""

    jobs: list[JobPostingResponse]
    pagination: Pagination
    facets: FacetResult | None = None


class FacetsResponse(CamelModel):
    """Schema for GET /search/facets."""

    facets: FacetResult
    total: int
    applied_filters: dict
