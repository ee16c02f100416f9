"""
Promotional-content filter.

Blocklists live in ``promotional_terms.json`` so they can be tuned without a
code change. Two lists ship: ``crawl_terms`` (marketing, events, CSR) for the
nightly crawl and ``backfill_terms`` (discounts, giveaways) for historical
backfill.
"""

from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Iterable, Optional, Sequence

from newscrawler.crawler.types import SearchHit

logger = logging.getLogger(__name__)

_DEFAULT_CONFIG_PATH = str(Path(__file__).parent / "promotional_terms.json")


class ExhaustionPolicy(str, Enum):
    """What to do when every candidate of a keyword is promotional.

    DROP_KEYWORD: the keyword ends Absent("all candidates promotional").
    FALLBACK_TO_MOST_SIMILAR: pick the unfiltered candidate with the highest
    mean similarity to the others.
    """

    DROP_KEYWORD = "drop_keyword"
    FALLBACK_TO_MOST_SIMILAR = "fallback_to_most_similar"


def load_terms(list_name: str, config_path: Optional[str] = None) -> list[str]:
    """Read one named term list from the JSON config."""
    path = Path(config_path or _DEFAULT_CONFIG_PATH)
    if not path.exists():
        logger.warning("Promotional term config not found at %s, using empty list", path)
        return []
    with open(path, encoding="utf-8") as f:
        config = json.load(f)
    return list(config.get(list_name, []))


class PromotionalFilter:
    """Case-insensitive substring blocklist over ``title + " " + body``."""

    def __init__(self, terms: Iterable[str]) -> None:
        self.terms: tuple[str, ...] = tuple(t for t in terms if t)
        self._patterns: list[re.Pattern[str]] = [
            re.compile(re.escape(term), re.IGNORECASE) for term in self.terms
        ]
        logger.debug("PromotionalFilter initialized: %d terms", len(self._patterns))

    @classmethod
    def from_config(cls, list_name: str = "crawl_terms", config_path: Optional[str] = None) -> PromotionalFilter:
        return cls(load_terms(list_name, config_path))

    def is_promotional(self, title: str, body: str) -> bool:
        text = f"{title} {body}"
        return any(p.search(text) for p in self._patterns)

    def exclude(self, hits: Sequence[SearchHit]) -> list[SearchHit]:
        """Return hits that are not promotional, preserving order."""
        kept = [h for h in hits if not self.is_promotional(h.title, h.body)]
        if len(kept) != len(hits):
            logger.debug("Promotional filter removed %d/%d candidates", len(hits) - len(kept), len(hits))
        return kept
