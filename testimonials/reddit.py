#!/usr/bin/env python3
"""
Reddit collector using the OAuth2 REST API.

Exchanges the app's client id/secret for a bearer token (client-credentials
grant) once per run, searches Tesla subreddits, and keeps well-scored post
bodies plus the best-scored replies.

Env: REDDIT_CLIENT_ID, REDDIT_CLIENT_SECRET
Output: raw/reddit-en.json
"""

import logging
import sys
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .errors import SourceAPIError
from .schemas import Candidate, TestimonialSource

logger = logging.getLogger(__name__)

TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
API_BASE = "https://oauth.reddit.com"
WEB_BASE = "https://reddit.com"
USER_AGENT = "TeslaTestimonials/1.0"

SUBREDDITS = ["teslamotors", "TeslaModel3", "ModelY"]

SEARCH_LIMIT = 10
COMMENT_LIMIT = 10
MIN_POST_SCORE = 5
MIN_COMMENT_SCORE = 3


@dataclass
class RedditPost:
    """A search hit."""
    id: str
    title: str
    selftext: str
    author: str
    score: int
    permalink: str
    num_comments: int

    @classmethod
    def from_api(cls, child: Dict[str, Any]) -> "RedditPost":
        """Create a RedditPost from a listing child ({"kind": "t3", "data": {...}})."""
        data = child["data"]
        return cls(
            id=data.get("id", ""),
            title=data.get("title") or "",
            selftext=data.get("selftext") or "",
            author=data.get("author") or "[deleted]",
            score=data.get("score") or 0,
            permalink=data.get("permalink") or "",
            num_comments=data.get("num_comments") or 0,
        )

    @property
    def url(self) -> str:
        return f"{WEB_BASE}{self.permalink}"


@dataclass
class RedditComment:
    """A top-level reply."""
    id: str
    body: str
    author: str
    score: int

    @classmethod
    def from_api(cls, child: Dict[str, Any]) -> Optional["RedditComment"]:
        """Create a RedditComment, or None for "more" stubs and bodiless entries."""
        data = child.get("data") or {}
        body = data.get("body")
        if not body:
            return None
        return cls(
            id=data.get("id", ""),
            body=body,
            author=data.get("author") or "[deleted]",
            score=data.get("score") or 0,
        )


def parse_search_listing(payload: Dict[str, Any]) -> List[RedditPost]:
    """Posts from a search response: {"data": {"children": [...]}}."""
    children = payload["data"]["children"]
    return [RedditPost.from_api(child) for child in children]


def parse_comment_listing(payload: Any) -> List[RedditComment]:
    """
    Replies from a comments response.

    The response is a two-element array: the post listing, then the
    comment listing.
    """
    if not isinstance(payload, list) or len(payload) < 2:
        return []
    children = (payload[1].get("data") or {}).get("children") or []
    comments = [RedditComment.from_api(child) for child in children]
    return [c for c in comments if c is not None]


class RedditCollector(BaseCollector):
    """
    Collector for Tesla subreddits.

    Usage:
        with RedditCollector(client_id="...", client_secret="...") as collector:
            collector.run()
    """

    platform = "reddit"
    source = TestimonialSource.REDDIT
    required_env = {
        "REDDIT_CLIENT_ID": "client_id",
        "REDDIT_CLIENT_SECRET": "client_secret",
    }
    request_delay = 1.0
    locales = ["en"]
    headers = {"User-Agent": USER_AGENT}

    def __init__(
        self,
        *args,
        client_id: str,
        client_secret: str,
        subreddits: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(*args, **kwargs)
        self.client_id = client_id
        self.client_secret = client_secret
        self.subreddits = list(subreddits) if subreddits is not None else list(SUBREDDITS)
        self._token: Optional[str] = None

    def get_access_token(self) -> str:
        """
        Exchange client credentials for a bearer token.

        Raises:
            SourceAPIError: If the token endpoint answers without a token
        """
        response = self.request(
            "POST",
            TOKEN_URL,
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        token = response.json().get("access_token")
        if not token:
            raise SourceAPIError("Reddit auth failed: no access_token in response", response.status_code)
        return token

    def authenticate(self) -> str:
        """Get the run's bearer token, requesting it on first use."""
        if self._token is None:
            self._token = self.get_access_token()
            logger.info("  OAuth token acquired")
        return self._token

    def _auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.authenticate()}"}

    def search_subreddit(self, subreddit: str, query: str) -> List[RedditPost]:
        payload = self.get_json(
            f"{API_BASE}/r/{subreddit}/search",
            params={
                "q": query,
                "sort": "relevance",
                "t": "year",
                "limit": str(SEARCH_LIMIT),
                "restrict_sr": "1",
            },
            headers=self._auth_headers(),
        )
        return parse_search_listing(payload)

    def get_post_comments(self, permalink: str) -> List[RedditComment]:
        payload = self.get_json(
            f"{API_BASE}{permalink}.json",
            params={"limit": str(COMMENT_LIMIT), "sort": "best"},
            headers=self._auth_headers(),
        )
        return parse_comment_listing(payload)

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        # Token failure is not a unit failure; it ends the run
        self.authenticate()

        for subreddit in self.subreddits:
            for query in self.queries(locale):
                logger.info(f'  Searching r/{subreddit}: "{query}"')
                posts = self.attempt(
                    result, f'r/{subreddit} "{query}"', self.search_subreddit, subreddit, query
                )
                for post in posts or []:
                    if post.selftext and post.score >= MIN_POST_SCORE:
                        yield Candidate(
                            content=post.selftext,
                            author=f"u/{post.author}",
                            url=post.url,
                            context=post.title,
                        )

                    if post.num_comments <= 0:
                        continue

                    comments = self.attempt(
                        result, f"comments {post.permalink}", self.get_post_comments, post.permalink
                    )
                    for comment in comments or []:
                        if comment.score >= MIN_COMMENT_SCORE:
                            yield Candidate(
                                content=comment.body,
                                author=f"u/{comment.author}",
                                url=post.url,
                            )


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser("Collect Tesla owner testimonials from Reddit")
    args = parser.parse_args(argv)
    return run_collector_cli(RedditCollector, args)


if __name__ == "__main__":
    sys.exit(main())
