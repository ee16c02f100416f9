from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from newscrawler.crawler.base_crawler import BaseSearchClient
from newscrawler.crawler.types import ArticleFields, Category, KeywordSpec, SearchHit, StoredArticle

NOW = datetime(2025, 3, 10, 0, 30, tzinfo=timezone.utc)  # 2025-03-10 09:30 KST


def make_hit(title, body="", url=None, published_at=None, hours_ago=1):
    return SearchHit(
        title=title,
        body=body,
        url=url or f"https://news.example.com/{abs(hash(title)) % 100000}",
        published_at=published_at if published_at is not None else NOW - timedelta(hours=hours_ago),
    )


def make_category(name, keywords, category_id=None, order=0):
    cid = category_id or f"cat-{name}"
    return Category(
        id=cid,
        name=name,
        display_order=order,
        keywords=tuple(KeywordSpec(id=f"{cid}-kw{i}", category_id=cid, text=k) for i, k in enumerate(keywords)),
    )


class FakeSearchClient(BaseSearchClient):
    """키워드별로 미리 정한 결과나 예외를 돌려준다."""

    name = "fake"

    def __init__(self, results=None):
        self.results = results or {}
        self.calls = []

    async def search(self, keyword):
        self.calls.append(keyword)
        result = self.results.get(keyword, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


class FakeStorage:
    def __init__(self, categories=None, fail_keywords=()):
        self.categories = list(categories or [])
        self.fail_keywords = set(fail_keywords)
        self.created = []
        self.deleted_dates = []
        self.calls = []

    async def create_article(self, fields: ArticleFields, crawled_at: datetime) -> StoredArticle:
        if fields.keyword in self.fail_keywords:
            raise RuntimeError(f"insert failed for {fields.keyword}")
        self.calls.append("create")
        article = StoredArticle(
            id=f"article-{len(self.created) + 1}",
            category_id=fields.category_id,
            keyword=fields.keyword,
            title=fields.title,
            summary=fields.summary,
            url=fields.url,
            published_at=fields.published_at,
            crawled_at=crawled_at,
        )
        self.created.append(article)
        return article

    async def delete_articles_for_date(self, day: date) -> int:
        self.calls.append("delete")
        self.deleted_dates.append(day)
        return 0

    async def load_categories_with_keywords(self):
        self.calls.append("load")
        return list(self.categories)


class RecordingSink:
    def __init__(self):
        self.events = []

    def publish(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [e.type.value for e in self.events]

    def for_keyword(self, keyword):
        return [e for e in self.events if e.payload.get("keyword") == keyword]


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.configured = True
    llm.ensure_configured = MagicMock()
    llm.call = AsyncMock(return_value={
        "content": "[0]",
        "model": "test-model",
        "input_tokens": 10,
        "output_tokens": 5,
        "stop_reason": "end_turn",
    })
    llm.call_json = AsyncMock(return_value=[])
    return llm


@pytest.fixture
def mock_ranker():
    ranker = MagicMock()
    ranker.rank_important = AsyncMock(return_value=[0])
    ranker.analyze_and_rank = AsyncMock(return_value=[])
    return ranker


@pytest.fixture
def mock_summarizer():
    summarizer = MagicMock()
    summarizer.summarize = AsyncMock(return_value="short summary")
    return summarizer
