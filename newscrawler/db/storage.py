"""
Storage collaborator for the crawl pipeline.

Each public method runs in its own session and commits on success; no
transaction spans two calls. Timestamps are written in UTC and naive values
read back are treated as UTC.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import Any, AsyncGenerator, Sequence

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from newscrawler.crawler.types import ArticleFields, Category, KeywordSpec, StoredArticle
from newscrawler.db.models import ArticleModel, CategoryModel, KeywordModel
from newscrawler.utils.errors import PersistenceError
from newscrawler.utils.kst import ensure_aware, kst_day_range
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)


def _to_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return ensure_aware(value).astimezone(timezone.utc)


def _to_domain(row: ArticleModel) -> StoredArticle:
    return StoredArticle(
        id=row.id,
        category_id=row.category_id,
        keyword=row.keyword,
        title=row.title,
        summary=row.summary,
        url=row.url,
        published_at=ensure_aware(row.published_date) if row.published_date else None,
        crawled_at=ensure_aware(row.crawled_date),
    )


class ArticleStorage:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            from newscrawler.db.connection import get_session_factory

            self._session_factory = get_session_factory()
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as exc:
            await session.rollback()
            raise PersistenceError(f"DB 작업 실패: {exc}") from exc
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    async def load_categories_with_keywords(self) -> list[Category]:
        """표시 순서대로 카테고리와 키워드 스냅샷을 반환한다."""
        async with self._session() as session:
            stmt = (
                select(CategoryModel)
                .options(selectinload(CategoryModel.keywords))
                .order_by(CategoryModel.display_order, CategoryModel.name)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [
                Category(
                    id=row.id,
                    name=row.name,
                    display_order=row.display_order,
                    keywords=tuple(
                        KeywordSpec(id=kw.id, category_id=row.id, text=kw.keyword)
                        for kw in sorted(row.keywords, key=lambda k: k.position)
                    ),
                )
                for row in rows
            ]

    async def create_article(self, fields: ArticleFields, crawled_at: datetime) -> StoredArticle:
        async with self._session() as session:
            row = ArticleModel(
                category_id=fields.category_id,
                keyword=fields.keyword,
                title=fields.title,
                summary=fields.summary,
                url=fields.url,
                published_date=_to_utc(fields.published_at),
                crawled_date=_to_utc(crawled_at),
            )
            session.add(row)
            await session.flush()
            return _to_domain(row)

    async def delete_articles_for_date(self, day: date) -> int:
        """crawled_date가 해당 KST 날짜에 속하는 기사를 삭제하고 삭제 건수를 반환한다."""
        start, end = kst_day_range(day)
        async with self._session() as session:
            result = await session.execute(
                delete(ArticleModel).where(
                    ArticleModel.crawled_date >= _to_utc(start),
                    ArticleModel.crawled_date < _to_utc(end),
                )
            )
            return result.rowcount or 0

    async def list_articles_for_date(self, day: date) -> list[StoredArticle]:
        start, end = kst_day_range(day)
        async with self._session() as session:
            stmt = (
                select(ArticleModel)
                .where(
                    ArticleModel.crawled_date >= _to_utc(start),
                    ArticleModel.crawled_date < _to_utc(end),
                )
                .order_by(ArticleModel.category_id, ArticleModel.title)
            )
            rows = (await session.execute(stmt)).scalars().all()
            return [_to_domain(row) for row in rows]

    async def get_article(self, article_id: str) -> StoredArticle | None:
        async with self._session() as session:
            row = await session.get(ArticleModel, article_id)
            return _to_domain(row) if row is not None else None

    async def seed_categories(self, data: Sequence[dict[str, Any]]) -> int:
        """카테고리가 하나도 없을 때만 초기 카테고리/키워드를 넣는다.

        Args:
            data: ``{"name", "display_order", "keywords": [str]}`` 목록.

        Returns:
            생성한 카테고리 수. 이미 데이터가 있으면 0.
        """
        async with self._session() as session:
            existing = (await session.execute(select(func.count()).select_from(CategoryModel))).scalar_one()
            if existing:
                logger.info("카테고리가 이미 %d개 있어 시드를 건너뜀", existing)
                return 0
            for order, entry in enumerate(data):
                category = CategoryModel(
                    name=entry["name"],
                    display_order=entry.get("display_order", order),
                )
                category.keywords = [
                    KeywordModel(keyword=text, position=position)
                    for position, text in enumerate(entry.get("keywords", []))
                ]
                session.add(category)
            logger.info("카테고리 시드 완료: %d개", len(data))
            return len(data)
