#!/usr/bin/env python3
"""
YouTube collector using the Data API v3.

For each locale, searches videos with the locale's queries, then reads the
most relevant top-level comments of every video found.

Env: YOUTUBE_API_KEY
Output: raw/youtube-{locale}.json
"""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List

import httpx

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .errors import TestimonialsError
from .quality import clean_text
from .schemas import Candidate, TestimonialSource

logger = logging.getLogger(__name__)

API_BASE = "https://www.googleapis.com/youtube/v3"
VIDEO_URL = "https://www.youtube.com/watch?v={video_id}"

SEARCH_MAX_RESULTS = 5
COMMENT_MAX_RESULTS = 20
MIN_LIKES = 1


@dataclass
class YouTubeComment:
    """A top-level comment thread's first comment."""
    text: str
    author: str
    like_count: int

    @classmethod
    def from_api(cls, item: Dict[str, Any]) -> "YouTubeComment":
        """Create from a commentThreads item (snippet.topLevelComment.snippet)."""
        snippet = item["snippet"]["topLevelComment"]["snippet"]
        return cls(
            text=snippet.get("textDisplay") or "",
            author=snippet.get("authorDisplayName") or "",
            like_count=snippet.get("likeCount") or 0,
        )


def relevance_language(locale: str) -> str:
    """Language part of a locale: zh-TW -> zh."""
    return locale.split("-")[0]


def parse_video_ids(payload: Dict[str, Any]) -> List[str]:
    ids = []
    for item in payload.get("items") or []:
        video_id = (item.get("id") or {}).get("videoId")
        if video_id:
            ids.append(video_id)
    return ids


def parse_comments(payload: Dict[str, Any]) -> List[YouTubeComment]:
    return [YouTubeComment.from_api(item) for item in payload.get("items") or []]


class YouTubeCollector(BaseCollector):
    """
    Collector for YouTube comments, one output file per configured locale.

    A video whose comments cannot be read (usually because they are
    disabled) contributes nothing but is not counted as a failure.
    """

    platform = "youtube"
    source = TestimonialSource.YOUTUBE
    required_env = {"YOUTUBE_API_KEY": "api_key"}
    request_delay = 0.2

    def __init__(self, *args, api_key: str, **kwargs):
        super().__init__(*args, **kwargs)
        self.api_key = api_key

    def search_videos(self, query: str, locale: str) -> List[str]:
        payload = self.get_json(
            f"{API_BASE}/search",
            params={
                "part": "snippet",
                "q": query,
                "type": "video",
                "maxResults": str(SEARCH_MAX_RESULTS),
                "relevanceLanguage": relevance_language(locale),
                "key": self.api_key,
            },
        )
        return parse_video_ids(payload)

    def get_comments(self, video_id: str) -> List[YouTubeComment]:
        """Top-level comments of a video; empty when they cannot be fetched."""
        try:
            payload = self.get_json(
                f"{API_BASE}/commentThreads",
                params={
                    "part": "snippet",
                    "videoId": video_id,
                    "maxResults": str(COMMENT_MAX_RESULTS),
                    "order": "relevance",
                    "key": self.api_key,
                },
            )
        except (httpx.HTTPError, TestimonialsError) as e:
            logger.info(f"  No comments for {video_id} ({e})")
            return []
        return parse_comments(payload)

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        video_ids: Dict[str, None] = {}
        for query in self.queries(locale):
            logger.info(f'  Searching: "{query}"')
            ids = self.attempt(result, f'search "{query}"', self.search_videos, query, locale)
            for video_id in ids or []:
                video_ids.setdefault(video_id, None)

        logger.info(f"  Found {len(video_ids)} unique videos")

        for video_id in video_ids:
            comments = self.attempt(result, f"comments {video_id}", self.get_comments, video_id)
            for comment in comments or []:
                if comment.like_count < MIN_LIKES:
                    continue
                yield Candidate(
                    content=clean_text(comment.text),
                    author=comment.author,
                    url=VIDEO_URL.format(video_id=video_id),
                )


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser("Collect Tesla owner testimonials from YouTube comments")
    args = parser.parse_args(argv)
    return run_collector_cli(YouTubeCollector, args)


if __name__ == "__main__":
    sys.exit(main())
