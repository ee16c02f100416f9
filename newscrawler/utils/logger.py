"""
프로젝트 전체 로깅 설정
- 콘솔 + 파일 출력
- 날짜별 로그 파일 로테이션
"""
import logging
import sys
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

from newscrawler.utils.config import get_settings

LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-30s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_initialized: bool = False


def setup_logging() -> None:
    """루트 로거에 콘솔 핸들러와 파일 핸들러를 설정한다.

    최초 한 번만 실행되며, 이후 호출은 무시된다.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    LOG_DIR.mkdir(parents=True, exist_ok=True)

    level = getattr(logging, get_settings().log_level.upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # 자정 기준 로테이션, 30일 보관
    file_handler = TimedRotatingFileHandler(
        filename=LOG_DIR / "newscrawler.log",
        when="midnight",
        interval=1,
        backupCount=30,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    file_handler.suffix = "%Y-%m-%d"
    root_logger.addHandler(file_handler)

    for noisy_logger in ("httpx", "httpcore", "anthropic", "asyncio", "aiohttp", "sqlalchemy.engine"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """모듈별 로거를 반환한다.

    Args:
        name: 로거 이름. 보통 ``__name__`` 을 전달한다.
    """
    setup_logging()
    return logging.getLogger(name)
