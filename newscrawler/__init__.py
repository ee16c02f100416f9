"""키워드 기반 뉴스 수집 파이프라인."""

__version__ = "1.0.0"
