"""Filter predicate compiler.

Translates a SearchQuery into named SQLAlchemy predicates and an ordering.
The same CompiledQuery is consumed by the search executor and the facet
aggregator, so both always agree on what a query means.

Predicates are keyed by dimension name. The facet aggregator computes a
dimension's counts with `where(exclude=<dimension>)`, which drops exactly
that dimension's filter and nothing else.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Literal

from sqlalchemy import String, and_, case, cast, func, or_
from sqlalchemy.sql.elements import ColumnElement

from jobsearch.models import JobPosting
from jobsearch.models.job_posting import TEXT_SEARCH_CONFIG, search_vector
from jobsearch.schemas.search import SearchQuery, SortMode, WorkMode

SalaryMode = Literal["bounds", "overlap"]

# Relevance weights used where PostgreSQL full-text search is unavailable
TITLE_WEIGHT = 3
COMPANY_WEIGHT = 2
DESCRIPTION_WEIGHT = 1


@dataclass(frozen=True)
class CompiledQuery:
    """Compiled form of a SearchQuery.

    Attributes:
        base: Eligibility predicates that are never removed (active, unexpired)
        predicates: Ordered map of dimension name to filter predicate
        order_by: ORDER BY clauses, always ending in the date tie-breaker
        rank: Relevance expression when a text term was supplied
    """

    base: tuple[ColumnElement[bool], ...]
    predicates: dict[str, ColumnElement[bool]] = field(default_factory=dict)
    order_by: tuple = ()
    rank: ColumnElement | None = None

    def where(self, exclude: str | None = None) -> ColumnElement[bool]:
        """Conjunction of every predicate except the excluded dimension."""
        clauses = [*self.base]
        clauses.extend(
            predicate
            for name, predicate in self.predicates.items()
            if name != exclude
        )
        return and_(*clauses)


def date_order() -> tuple:
    """Newest first; id breaks ties so pages never overlap."""
    return (JobPosting.posted_at.desc().nulls_last(), JobPosting.id.desc())


def text_predicate(term: str, dialect: str) -> tuple[ColumnElement[bool], ColumnElement]:
    """Build the free-text match and its relevance expression.

    PostgreSQL uses the GIN-indexed tsvector with ts_rank. Other dialects
    require every token to appear in title, description or company and
    score matches by field weight.
    """
    if dialect == "postgresql":
        tsquery = func.plainto_tsquery(TEXT_SEARCH_CONFIG, term)
        vector = search_vector()
        return vector.op("@@")(tsquery), func.ts_rank(vector, tsquery)

    tokens = term.split() or [term]
    matches = []
    score = None
    for token in tokens:
        in_title = JobPosting.title.icontains(token, autoescape=True)
        in_company = JobPosting.company.icontains(token, autoescape=True)
        in_description = JobPosting.description.icontains(token, autoescape=True)
        matches.append(or_(in_title, in_company, in_description))

        token_score = (
            case((in_title, TITLE_WEIGHT), else_=0)
            + case((in_company, COMPANY_WEIGHT), else_=0)
            + case((in_description, DESCRIPTION_WEIGHT), else_=0)
        )
        score = token_score if score is None else score + token_score

    return and_(*matches), score


def salary_predicates(query: SearchQuery, mode: SalaryMode) -> dict[str, ColumnElement[bool]]:
    """Salary bounds. Currency is filtered separately; nothing is converted."""
    predicates = {}
    if mode == "overlap":
        low = func.coalesce(JobPosting.salary_min, JobPosting.salary_max)
        high = func.coalesce(JobPosting.salary_max, JobPosting.salary_min)
        if query.salary_min is not None:
            predicates["salary_min"] = high >= query.salary_min
        if query.salary_max is not None:
            predicates["salary_max"] = low <= query.salary_max
    else:
        if query.salary_min is not None:
            predicates["salary_min"] = JobPosting.salary_min >= query.salary_min
        if query.salary_max is not None:
            predicates["salary_max"] = JobPosting.salary_max <= query.salary_max
    return predicates


def tags_predicate(tags: frozenset[str], dialect: str) -> ColumnElement[bool]:
    """Match postings carrying any of the requested tags."""
    wanted = sorted(tags)
    if dialect == "postgresql":
        return JobPosting.tags.overlap(wanted)
    # JSON list storage: look for the quoted element in the serialized array
    as_text = cast(JobPosting.tags, String)
    return or_(*[as_text.contains(json.dumps(tag), autoescape=True) for tag in wanted])


def compile_query(
    query: SearchQuery,
    *,
    dialect: str = "postgresql",
    now: datetime | None = None,
    salary_mode: SalaryMode = "bounds",
    exclude_expired: bool = True,
) -> CompiledQuery:
    """Compile a validated SearchQuery into predicates and ordering.

    Args:
        query: Normalized query from the query parser
        dialect: SQLAlchemy dialect name of the target store
        now: Reference time for recency and expiry, defaults to UTC now
        salary_mode: "bounds" or "overlap" salary semantics
        exclude_expired: Drop postings whose expires_at has passed

    Returns:
        CompiledQuery shared by the executor and the facet aggregator
    """
    now = now or datetime.now(timezone.utc)

    base = [JobPosting.is_active.is_(True)]
    if exclude_expired:
        base.append(or_(JobPosting.expires_at.is_(None), JobPosting.expires_at > now))

    predicates: dict[str, ColumnElement[bool]] = {}
    rank = None

    if query.q:
        predicates["text"], rank = text_predicate(query.q, dialect)

    # Location
    if query.country:
        predicates["country"] = JobPosting.country_code == query.country
    if query.city:
        predicates["city"] = JobPosting.city.icontains(query.city, autoescape=True)

    # Classification
    if query.category:
        predicates["category"] = JobPosting.category == query.category
    if query.subcategory:
        predicates["subcategory"] = JobPosting.subcategory == query.subcategory
    if query.job_type:
        predicates["job_type"] = JobPosting.job_type.in_(
            sorted(value.value for value in query.job_type)
        )
    if query.remote_only:
        predicates["work_mode"] = JobPosting.work_mode.in_([WorkMode.REMOTE.value])
    elif query.work_mode:
        predicates["work_mode"] = JobPosting.work_mode.in_(
            sorted(value.value for value in query.work_mode)
        )
    if query.experience_level:
        predicates["experience_level"] = JobPosting.experience_level.in_(
            sorted(value.value for value in query.experience_level)
        )

    # Compensation
    predicates.update(salary_predicates(query, salary_mode))
    if query.currency:
        predicates["currency"] = JobPosting.currency == query.currency

    # Source
    if query.company:
        predicates["company"] = JobPosting.company.icontains(query.company, autoescape=True)
    if query.source_platform:
        predicates["source_platform"] = JobPosting.source_platform == query.source_platform
    if query.language:
        predicates["language"] = JobPosting.language == query.language
    if query.tags:
        predicates["tags"] = tags_predicate(query.tags, dialect)

    if query.date_posted is not None:
        predicates["date_posted"] = JobPosting.posted_at >= now - timedelta(days=query.date_posted)

    sort = query.effective_sort
    if sort is SortMode.RELEVANCE:
        order_by = (rank.desc(), *date_order())
    elif sort is SortMode.SALARY:
        order_by = (JobPosting.salary_max.desc().nulls_last(), *date_order())
    else:
        order_by = date_order()

    return CompiledQuery(
        base=tuple(base),
        predicates=predicates,
        order_by=order_by,
        rank=rank,
    )
