"""
DB/Redis 연결 관리.

엔진, 세션 팩토리, Redis 클라이언트는 프로세스당 하나씩 처음 사용할 때
만든다. 세션 단위 커밋/롤백은 ``ArticleStorage`` 가 담당한다.
"""

import redis.asyncio as aioredis
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from newscrawler.db.models import Base
from newscrawler.utils.config import get_settings
from newscrawler.utils.errors import ConfigurationError
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

# 크롤 1회의 동시 쓰기는 배치 크기(기본 5) 수준이므로 작은 풀로 충분하다
_POOL_SIZE = 5
_POOL_OVERFLOW = 5
_POOL_RECYCLE_SECONDS = 1800

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None
_redis_client: aioredis.Redis | None = None


def get_engine() -> AsyncEngine:
    """비동기 엔진을 반환한다. DB 비밀번호가 없으면 ConfigurationError."""
    global _engine
    if _engine is not None:
        return _engine

    settings = get_settings()
    if not settings.db_password:
        raise ConfigurationError("DB_PASSWORD가 설정되지 않았습니다.")
    _engine = create_async_engine(
        settings.database_url,
        echo=settings.db_echo,
        pool_size=_POOL_SIZE,
        max_overflow=_POOL_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=_POOL_RECYCLE_SECONDS,
    )
    logger.info("DB 엔진 생성 | %s:%d/%s", settings.db_host, settings.db_port, settings.db_name)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(bind=get_engine(), expire_on_commit=False)
    return _session_factory


def get_redis() -> aioredis.Redis:
    """진행 이벤트 발행용 Redis 클라이언트를 반환한다."""
    global _redis_client
    if _redis_client is None:
        settings = get_settings()
        _redis_client = aioredis.Redis(
            host=settings.redis_host,
            port=settings.redis_port,
            password=settings.redis_password or None,
            decode_responses=True,
        )
    return _redis_client


async def init_db() -> None:
    """연결을 확인하고 없는 테이블을 만든다."""
    async with get_engine().begin() as conn:
        await conn.execute(text("SELECT 1"))
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """엔진과 Redis 연결을 정리한다."""
    global _engine, _session_factory, _redis_client
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None
