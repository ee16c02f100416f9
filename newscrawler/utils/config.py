"""
프로젝트 설정 관리
.env 파일에서 환경변수를 로드하여 타입-안전한 설정 객체 제공
"""
from pydantic import computed_field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """애플리케이션 전체 설정을 관리하는 클래스."""

    # 네이버 뉴스 검색 API
    naver_client_id: str = ""
    naver_client_secret: str = ""

    # Claude AI 설정 (키가 없으면 첫 호출 시 ConfigurationError)
    anthropic_api_key: str = ""
    llm_max_retries: int = 2

    # 외부 호출(검색/LLM) 1회당 타임아웃 (초)
    external_call_timeout: float = 20.0

    # 파이프라인 속도 제한
    crawl_batch_size: int = 5
    crawl_batch_delay: float = 0.5
    crawl_category_delay: float = 1.0
    search_request_delay: float = 0.05

    # Database
    db_host: str = "localhost"
    db_port: int = 5432
    db_user: str = "newscrawler"
    db_password: str = ""
    db_name: str = "newscrawler"
    db_echo: bool = False

    # Redis (진행 상황 외부 전파, 선택)
    redis_enabled: bool = False
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""

    # 알림
    notify_enabled: bool = True
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    slack_webhook_url: str = ""

    # 스케줄러 (KST 기준 HH:MM)
    scheduler_enabled: bool = True
    scheduler_run_at: str = "09:00"

    # API 서버
    api_host: str = "0.0.0.0"
    api_port: int = 5000

    # Logging
    log_level: str = "INFO"

    @computed_field
    @property
    def database_url(self) -> str:
        """asyncpg 드라이버용 접속 URL을 반환한다."""
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


_settings: Settings | None = None


def get_settings() -> Settings:
    """설정 싱글톤을 반환한다."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
