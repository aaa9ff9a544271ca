"""JobPosting model for externally sourced job openings.

Rows are written by the ingestion pipeline; the search engine only reads them.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    literal_column,
)
from sqlalchemy.dialects.postgresql import ARRAY
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql.elements import ColumnElement

from .base import Base, TimestampMixin

# Native text array on PostgreSQL, JSON list everywhere else
TagList = ARRAY(String).with_variant(JSON(), "sqlite")

# Rendered inline so query expressions match the index expression
TEXT_SEARCH_CONFIG = literal_column("'simple'")


class JobPosting(Base, TimestampMixin):
    """One job opening collected from an upstream job board."""

    __tablename__ = "job_postings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Source information
    source_platform: Mapped[str] = mapped_column(String(64), nullable=False)
    external_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    source_url: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    language: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # Text-searchable fields
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[str] = mapped_column(String(255), nullable=False)

    # Location (no geometry, equality/substring only)
    country_code: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    # Classification
    category: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    subcategory: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    job_type: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    work_mode: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    experience_level: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)

    # Compensation
    salary_min: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    salary_max: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    currency: Mapped[Optional[str]] = mapped_column(String(8), nullable=True)
    salary_period: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    tags: Mapped[Optional[List[str]]] = mapped_column(TagList, nullable=True)

    # Engagement counters, maintained outside the search engine
    views_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    applied_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    saved_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    posted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "source_platform", "external_id", name="job_postings_source_external_unique"
        ),
        Index("job_postings_category_idx", "category"),
        Index("job_postings_category_subcategory_idx", "category", "subcategory"),
        Index("job_postings_source_idx", "source_platform"),
        Index("job_postings_country_city_idx", "country_code", "city"),
        Index("job_postings_job_type_idx", "job_type"),
        Index("job_postings_experience_level_idx", "experience_level"),
        Index("job_postings_work_mode_idx", "work_mode"),
        Index("job_postings_posted_at_idx", "posted_at"),
        Index("job_postings_tags_idx", "tags", postgresql_using="gin").ddl_if(
            dialect="postgresql"
        ),
    )

    def __repr__(self) -> str:
        return f"<JobPosting(id={self.id}, title='{self.title}', company='{self.company}')>"


def search_document() -> ColumnElement[str]:
    """Concatenated text of the fields covered by free-text search."""
    return (
        JobPosting.title
        + literal_column("' '")
        + func.coalesce(JobPosting.description, literal_column("''"))
        + literal_column("' '")
        + JobPosting.company
    )


def search_vector() -> ColumnElement:
    """tsvector over search_document(), identical to the GIN index expression."""
    return func.to_tsvector(TEXT_SEARCH_CONFIG, search_document())


Index(
    "job_postings_text_search_idx",
    search_vector(),
    postgresql_using="gin",
).ddl_if(dialect="postgresql")
