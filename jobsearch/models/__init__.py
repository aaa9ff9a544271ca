"""Database models for the job search engine."""

from .base import Base
from .job_posting import JobPosting

__all__ = [
    "Base",
    "JobPosting",
]
