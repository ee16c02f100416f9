"""
Pydantic request/response models for the crawl API.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Unified error response."""

    detail: str
    error_code: str = "INTERNAL_ERROR"


class CrawlRequest(BaseModel):
    delete_existing: bool | None = None


class CategorySummary(BaseModel):
    id: str
    name: str
    status: str
    succeeded: int
    failed: int
    error: str | None = None


class CrawlSummary(BaseModel):
    profile: str
    crawled_at: datetime
    total_articles: int
    duration_seconds: float
    categories: list[CategorySummary] = Field(default_factory=list)


class CandidateArticle(BaseModel):
    title: str
    description: str
    url: str
    published_at: datetime | None = None


class RankedArticleResponse(CandidateArticle):
    summary: str
    importance: int = Field(ge=1, le=10)


class StoredArticleResponse(BaseModel):
    id: str
    category_id: str
    keyword: str | None = None
    title: str
    summary: str
    url: str
    published_at: datetime | None = None
    crawled_at: datetime


class SchedulerStatus(BaseModel):
    enabled: bool
    run_at: str
    next_run: datetime | None = None


class SchedulerUpdate(BaseModel):
    enabled: bool | None = None
    run_at: str | None = Field(default=None, pattern=r"^([01]?\d|2[0-3]):[0-5]\d$")
