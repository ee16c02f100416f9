"""
검색 결과 텍스트 정규화
- HTML 엔티티 디코딩
- 검색어 하이라이트(<b>) 태그 제거
- 헤드라인 앞뒤의 말머리/출처 표기 제거
"""

from __future__ import annotations

import re

from newscrawler.crawler.types import SearchHit
from newscrawler.utils.logger import get_logger

logger = get_logger(__name__)

_NAMED_ENTITIES: dict[str, str] = {
    "quot": '"',
    "apos": "'",
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "nbsp": " ",
}

# 한 번의 패스로 치환한다. "&amp;lt;" 는 "&lt;" 가 된다.
_ENTITY_PATTERN = re.compile(r"&(#[xX][0-9a-fA-F]+|#\d+|[a-zA-Z]+);")

_HIGHLIGHT_PATTERN = re.compile(r"</?b>", re.IGNORECASE)

# 말머리: "[단독] ", "【속보】 ", "(종합) "
_PREFIX_PATTERNS = (
    re.compile(r"^\[[^\]]+\]\s*"),
    re.compile(r"^【[^】]+】\s*"),
    re.compile(r"^\([^)]+\)\s*"),
)

# 출처 표기: " - 연합뉴스", " | YTN", " (뉴스1)", " 【머니투데이】", " [이데일리]"
_SUFFIX_PATTERNS = (
    re.compile(r"\s*-\s*[^-]+$"),
    re.compile(r"\s*\|\s*[^|]+$"),
    re.compile(r"\s*\([^)]+\)$"),
    re.compile(r"\s*【[^】]+】$"),
    re.compile(r"\s*\[[^\]]+\]$"),
)

_MIN_HEADLINE_LENGTH = 5

# 과도한 정리 경고 기준
_OVERCLEAN_SOURCE_LENGTH = 20
_OVERCLEAN_RESULT_LENGTH = 10


def _replace_entity(match: re.Match) -> str:
    token = match.group(1)
    if token[0] != "#":
        return _NAMED_ENTITIES.get(token, match.group(0))
    try:
        if token[1] in "xX":
            return chr(int(token[2:], 16))
        return chr(int(token[1:]))
    except (ValueError, OverflowError):
        # 유니코드 범위를 벗어난 참조는 그대로 둔다
        return match.group(0)


def decode_entities(text: str) -> str:
    """이름/10진/16진 HTML 엔티티를 문자로 바꾼다. 모르는 엔티티는 그대로 둔다."""
    return _ENTITY_PATTERN.sub(_replace_entity, text)


def strip_highlight_markup(text: str) -> str:
    """검색 API가 일치 구간에 넣는 ``<b>``/``</b>`` 태그를 제거한다."""
    return _HIGHLIGHT_PATTERN.sub("", text)


def clean_headline(text: str) -> str:
    """헤드라인에서 말머리 하나와 뒤쪽 출처 표기를 제거한다.

    말머리는 처음 일치하는 패턴 하나만 제거한다. 출처 패턴은 정해진 순서로
    각각 시도하며, 제거 결과가 5자 미만이 되는 단계는 적용하지 않는다.
    """
    cleaned = text
    for pattern in _PREFIX_PATTERNS:
        stripped = pattern.sub("", cleaned, count=1)
        if stripped != cleaned:
            cleaned = stripped
            break
    cleaned = cleaned.strip()

    for pattern in _SUFFIX_PATTERNS:
        candidate = pattern.sub("", cleaned, count=1).strip()
        if len(candidate) >= _MIN_HEADLINE_LENGTH:
            cleaned = candidate

    return cleaned.strip()


def normalize_hit(hit: SearchHit) -> SearchHit:
    """제목과 본문을 화면 표시용으로 정리한 새 SearchHit을 반환한다."""
    decoded_title = decode_entities(strip_highlight_markup(hit.title))
    title = clean_headline(decoded_title)
    if len(title) < _OVERCLEAN_RESULT_LENGTH and len(decoded_title) > _OVERCLEAN_SOURCE_LENGTH:
        logger.warning("헤드라인 과다 정리 의심: '%s' -> '%s'", decoded_title, title)
    return SearchHit(
        title=title,
        body=decode_entities(strip_highlight_markup(hit.body)),
        url=hit.url,
        published_at=hit.published_at,
    )
