#!/usr/bin/env python3
"""
Meta Threads collector using the keyword_search Graph API endpoint.

Env: THREADS_ACCESS_TOKEN
Output: raw/threads-{locale}.json
"""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .schemas import Candidate, TestimonialSource

logger = logging.getLogger(__name__)

API_BASE = "https://graph.threads.net/v1.0"
POST_FIELDS = "id,text,username,timestamp"
DEFAULT_AUTHOR = "Threads user"


@dataclass
class ThreadsPost:
    """A keyword search hit."""
    id: str
    text: str
    username: Optional[str] = None
    timestamp: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ThreadsPost":
        return cls(
            id=str(data.get("id", "")),
            text=data.get("text") or "",
            username=data.get("username"),
            timestamp=data.get("timestamp"),
        )

    @property
    def author(self) -> str:
        return f"@{self.username}" if self.username else DEFAULT_AUTHOR

    @property
    def url(self) -> Optional[str]:
        if not self.username:
            return None
        return f"https://www.threads.net/@{self.username}/post/{self.id}"


def parse_search_response(payload: Dict[str, Any]) -> List[ThreadsPost]:
    """Posts from a keyword_search response: {"data": [...]}."""
    return [ThreadsPost.from_api(item) for item in payload.get("data") or []]


class ThreadsCollector(BaseCollector):
    """
    Collector for Threads posts, one output file per configured locale.

    Each query is one unit of work; a failed search is logged and the
    remaining queries still run.
    """

    platform = "threads"
    source = TestimonialSource.THREADS
    required_env = {"THREADS_ACCESS_TOKEN": "access_token"}
    request_delay = 0.5

    def __init__(self, *args, access_token: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.access_token = access_token

    def search(self, query: str) -> List[ThreadsPost]:
        payload = self.get_json(
            f"{API_BASE}/keyword_search",
            params={
                "q": query,
                "fields": POST_FIELDS,
                "access_token": self.access_token,
            },
        )
        return parse_search_response(payload)

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        for query in self.queries(locale):
            logger.info(f'  Searching: "{query}"')
            posts = self.attempt(result, f'search "{query}"', self.search, query)
            for post in posts or []:
                if not post.text:
                    continue
                yield Candidate(content=post.text, author=post.author, url=post.url)


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser("Collect Tesla owner testimonials from Threads")
    args = parser.parse_args(argv)
    return run_collector_cli(ThreadsCollector, args)


if __name__ == "__main__":
    sys.exit(main())
