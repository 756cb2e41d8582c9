#!/usr/bin/env python3
"""
小紅書 (RedNote) collector via a RapidAPI search proxy.

The proxy has answered in two shapes over time, so responses are
classified before parsing:

    NESTED: {"data": {"items": [...]}}
    FLAT:   {"items": [...]}

Env: RAPIDAPI_KEY
Output: raw/rednote-zh-TW.json
"""

import logging
import sys
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .schemas import Candidate, TestimonialSource

logger = logging.getLogger(__name__)

RAPIDAPI_HOST = "xiaohongshu-scraper.p.rapidapi.com"
SEARCH_URL = f"https://{RAPIDAPI_HOST}/search/notes"
NOTE_URL = "https://www.xiaohongshu.com/explore/{note_id}"
DEFAULT_AUTHOR = "小紅書用戶"


class ResponseShape(str, Enum):
    """Known layouts of a search response."""
    NESTED = "nested"
    FLAT = "flat"
    UNKNOWN = "unknown"


def detect_shape(payload: Any) -> ResponseShape:
    """Classify a search response by where its item list lives."""
    if not isinstance(payload, dict):
        return ResponseShape.UNKNOWN

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("items"), list):
        return ResponseShape.NESTED
    if isinstance(payload.get("items"), list):
        return ResponseShape.FLAT
    return ResponseShape.UNKNOWN


@dataclass
class RedNoteNote:
    """A note from search results, with the proxy's loosely-typed fields."""
    id: Optional[str] = None
    note_id: Optional[str] = None
    title: Optional[str] = None
    desc: Optional[str] = None
    content: Optional[str] = None
    nickname: Optional[str] = None
    user_nickname: Optional[str] = None
    likes_count: Optional[int] = None

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "RedNoteNote":
        user = item.get("user") or {}
        return cls(
            id=item.get("id"),
            note_id=item.get("note_id"),
            title=item.get("title"),
            desc=item.get("desc"),
            content=item.get("content"),
            nickname=item.get("nickname"),
            user_nickname=user.get("nickname") if isinstance(user, dict) else None,
            likes_count=item.get("likes_count"),
        )

    @property
    def text(self) -> str:
        return self.desc or self.content or self.title or ""

    @property
    def author(self) -> str:
        return self.user_nickname or self.nickname or DEFAULT_AUTHOR

    @property
    def url(self) -> Optional[str]:
        note_id = self.note_id or self.id
        return NOTE_URL.format(note_id=note_id) if note_id else None


def parse_notes(payload: Any) -> List[RedNoteNote]:
    """
    Extract notes from a search response of either known shape.

    Returns an empty list (and logs a warning) for anything else.
    """
    shape = detect_shape(payload)
    if shape == ResponseShape.NESTED:
        items = payload["data"]["items"]
    elif shape == ResponseShape.FLAT:
        items = payload["items"]
    else:
        keys = list(payload.keys()) if isinstance(payload, dict) else type(payload).__name__
        logger.warning(f"  Unrecognised RedNote response shape: {keys}")
        return []

    return [RedNoteNote.from_api(item) for item in items if isinstance(item, dict)]


class RedNoteCollector(BaseCollector):
    """Collector for 小紅書 notes; output is filed under zh-TW."""

    platform = "rednote"
    source = TestimonialSource.REDNOTE
    required_env = {"RAPIDAPI_KEY": "api_key"}
    request_delay = 1.0
    locales = ["zh-TW"]

    def __init__(self, *args, api_key: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key

    def search(self, query: str) -> List[RedNoteNote]:
        payload = self.get_json(
            SEARCH_URL,
            params={"keyword": query, "page": "1", "sort": "general"},
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": RAPIDAPI_HOST,
            },
        )
        return parse_notes(payload)

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        for query in self.queries(locale):
            logger.info(f'  Searching: "{query}"')
            notes = self.attempt(result, f'search "{query}"', self.search, query)
            for note in notes or []:
                yield Candidate(content=note.text, author=note.author, url=note.url)


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser("Collect Tesla owner testimonials from 小紅書 (RedNote)")
    args = parser.parse_args(argv)
    return run_collector_cli(RedNoteCollector, args)


if __name__ == "__main__":
    sys.exit(main())
