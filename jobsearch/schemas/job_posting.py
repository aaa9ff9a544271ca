"""Job posting response schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Response base that serializes field names in camelCase."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class JobPostingResponse(CamelModel):
    """Schema for a job posting in search results."""

    id: int
    title: str
    description: str | None = None
    company: str

    source_platform: str
    external_id: str | None = None
    source_url: str | None = None
    language: str | None = None

    country_code: str | None = None
    region: str | None = None
    city: str | None = None

    category: str | None = None
    subcategory: str | None = None
    job_type: str | None = None
    work_mode: str | None = None
    experience_level: str | None = None

    salary_min: int | None = None
    salary_max: int | None = None
    currency: str | None = None
    salary_period: str | None = None

    tags: list[str] | None = None

    views_count: int = 0
    applied_count: int = 0
    saved_count: int = 0

    is_active: bool
    posted_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
