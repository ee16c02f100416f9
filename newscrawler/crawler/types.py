"""
크롤 파이프라인 데이터 타입
- SearchHit: 검색 호출 1회의 임시 결과
- Category, KeywordSpec: 실행 시작 시 저장소에서 읽은 설정 스냅샷
- StoredArticle: 저장된 기사 레코드
- KeywordOutcome, CategoryResult, CrawlResult: 예외 없이 단계 결과를 위로 전달
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


@dataclass(frozen=True)
class SearchHit:
    """검색 결과 한 건. 날짜를 해석하지 못하면 ``published_at`` 은 None."""

    title: str
    body: str
    url: str
    published_at: datetime | None

    @property
    def text(self) -> str:
        return f"{self.title} {self.body}"


@dataclass(frozen=True)
class KeywordSpec:
    id: str
    category_id: str
    text: str


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    display_order: int = 0
    keywords: tuple[KeywordSpec, ...] = ()


@dataclass(frozen=True)
class ArticleFields:
    """기사 저장 시 저장소에 넘기는 필드."""

    category_id: str
    keyword: str | None
    title: str
    summary: str
    url: str
    published_at: datetime | None


@dataclass(frozen=True)
class StoredArticle:
    id: str
    category_id: str
    keyword: str | None
    title: str
    summary: str
    url: str
    published_at: datetime | None
    crawled_at: datetime
    category_name: str | None = None


@dataclass(frozen=True)
class RankedArticle:
    """LLM 중요도 점수(1-10)가 붙은 실시간 검색 결과."""

    title: str
    body: str
    url: str
    published_at: datetime | None
    summary: str
    importance: int

    def to_dict(self) -> dict:
        return {
            "title": self.title,
            "description": self.body,
            "url": self.url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "summary": self.summary,
            "importance": self.importance,
        }


@dataclass(frozen=True)
class KeywordOutcome:
    """키워드 처리 1회의 최종 결과. 저장된 기사 또는 사유가 있는 부재."""

    keyword: str
    article: StoredArticle | None = None
    reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.article is not None

    @classmethod
    def saved(cls, keyword: str, article: StoredArticle) -> KeywordOutcome:
        return cls(keyword=keyword, article=article)

    @classmethod
    def absent(cls, keyword: str, reason: str) -> KeywordOutcome:
        return cls(keyword=keyword, reason=reason)


class CategoryStatus(str, Enum):
    SKIPPED = "skipped"
    NO_NEWS = "no_news"
    PARTIAL = "partial"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class CategoryResult:
    category_id: str
    category_name: str
    status: CategoryStatus
    total_keywords: int = 0
    outcomes: list[KeywordOutcome] = field(default_factory=list)
    error: str | None = None

    @property
    def articles(self) -> list[StoredArticle]:
        return [o.article for o in self.outcomes if o.article is not None]

    @property
    def succeeded_keywords(self) -> int:
        return len(self.articles)

    @property
    def failed_keywords(self) -> int:
        return self.total_keywords - self.succeeded_keywords


@dataclass
class CrawlResult:
    profile: str
    crawled_at: datetime
    categories: list[CategoryResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def articles(self) -> list[StoredArticle]:
        return [a for c in self.categories for a in c.articles]

    @property
    def total_articles(self) -> int:
        return len(self.articles)

    def summary(self) -> dict:
        """카테고리별 성공/실패 키워드 수 요약."""
        return {
            "profile": self.profile,
            "crawled_at": self.crawled_at.isoformat(),
            "total_articles": self.total_articles,
            "duration_seconds": round(self.duration_seconds, 2),
            "categories": [
                {
                    "id": c.category_id,
                    "name": c.category_name,
                    "status": c.status.value,
                    "succeeded": c.succeeded_keywords,
                    "failed": c.failed_keywords,
                    "error": c.error,
                }
                for c in self.categories
            ],
        }
