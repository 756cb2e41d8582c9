#!/usr/bin/env python3
"""
PTT car board collector.

Finds Tesla-related posts on https://www.ptt.cc/bbs/car two ways:
- Browsing the most recent listing pages for titles mentioning Tesla
- Running the board's own title search for a fixed list of queries

Each linked article yields its body as one candidate, plus every "推"
(upvote) reply as a separate candidate attributed to the replier.

Env: none required
Output: raw/ptt-zh-TW.json
"""

import logging
import re
import sys
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .rate_limiter import is_retryable_fetch_error
from .schemas import Candidate, TestimonialSource

logger = logging.getLogger(__name__)

BASE_URL = "https://www.ptt.cc"
BOARD = "car"
LISTING_PAGES = 5

# Only article bodies this long are kept; replies use the default minimum
ARTICLE_MIN_LENGTH = 50

DEFAULT_AUTHOR = "匿名"
PREV_PAGE_LABEL = "上頁"
AUTHOR_META_TAG = "作者"
POSITIVE_PUSH_TAG = "推"

# Browser-like headers; over18 skips the age gate
HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-TW,zh;q=0.9,en-US;q=0.8,en;q=0.7",
    "Cookie": "over18=1",
    "Upgrade-Insecure-Requests": "1",
}

TITLE_KEYWORDS = [
    "tesla",
    "特斯拉",
    "model 3",
    "model y",
    "model s",
    "model x",
    "cybertruck",
]

_SIGNATURE_RE = re.compile(r"--\n[\s\S]*$")
_PUSH_PREFIX_RE = re.compile(r"^:\s*")


@dataclass
class PostLink:
    """A post found on a listing or search page."""
    title: str
    href: str


@dataclass
class ParsedArticle:
    """Author, body and upvote replies of an article page."""
    author: str
    content: str
    pushes: List[Tuple[str, str]] = field(default_factory=list)  # (author, content)


def is_tesla_title(title: str) -> bool:
    lower = title.lower()
    return any(keyword in lower for keyword in TITLE_KEYWORDS)


def _parse_entries(soup: BeautifulSoup) -> List[PostLink]:
    links = []
    for entry in soup.select(".r-ent"):
        anchor = entry.select_one(".title a")
        if anchor is None:
            continue
        title = anchor.get_text().strip()
        href = anchor.get("href")
        if not title or not href:
            continue
        links.append(PostLink(title=title, href=urljoin(BASE_URL, href)))
    return links


def parse_listing(html: str) -> Tuple[List[PostLink], Optional[str]]:
    """
    Parse a board listing page.

    Returns:
        (links whose title mentions Tesla, absolute URL of the previous page or None)
    """
    soup = BeautifulSoup(html, "html.parser")
    links = [link for link in _parse_entries(soup) if is_tesla_title(link.title)]

    prev_url = None
    for anchor in soup.select(".btn-group-paging a"):
        if PREV_PAGE_LABEL in anchor.get_text() and anchor.get("href"):
            prev_url = urljoin(BASE_URL, anchor["href"])
            break

    return links, prev_url


def parse_search_results(html: str) -> List[PostLink]:
    """Parse a board search results page; every hit is kept."""
    return _parse_entries(BeautifulSoup(html, "html.parser"))


def parse_article(html: str) -> ParsedArticle:
    """
    Parse an article page.

    The body is the text of #main-content once the metadata lines and
    replies are removed, cut at the signature separator ("--" line).
    """
    soup = BeautifulSoup(html, "html.parser")

    author = DEFAULT_AUTHOR
    for metaline in soup.select(".article-metaline"):
        tag = metaline.select_one(".article-meta-tag")
        value = metaline.select_one(".article-meta-value")
        if tag is not None and value is not None and tag.get_text() == AUTHOR_META_TAG:
            author = value.get_text().split(" ")[0]

    pushes = []
    for push in soup.select(".push"):
        tag = push.select_one(".push-tag")
        if tag is None or tag.get_text().strip() != POSITIVE_PUSH_TAG:
            continue
        user = push.select_one(".push-userid")
        text = push.select_one(".push-content")
        push_author = user.get_text().strip() if user is not None else ""
        push_content = _PUSH_PREFIX_RE.sub("", text.get_text()).strip() if text is not None else ""
        if push_content:
            pushes.append((push_author, push_content))

    content = ""
    main = soup.select_one("#main-content")
    if main is not None:
        for node in main.select(".article-metaline, .article-metaline-right, .push"):
            node.decompose()
        content = _SIGNATURE_RE.sub("", main.get_text()).strip()

    return ParsedArticle(author=author, content=content, pushes=pushes)


class PTTCollector(BaseCollector):
    """
    Collector for the PTT car board.

    Listing-page failures end pagination early but keep what was found;
    article failures skip only that article.
    """

    platform = "ptt"
    source = TestimonialSource.PTT
    request_delay = 2.0
    retry_base_delay = 2.0
    locales = ["zh-TW"]
    headers = HEADERS

    def __init__(self, *args, listing_pages: int = LISTING_PAGES, **kwargs):
        super().__init__(*args, **kwargs)
        self.listing_pages = listing_pages

    def fetch_page(self, url: str, params: Optional[Dict[str, str]] = None) -> str:
        """Fetch a page, retrying dropped connections as well as 429/5xx."""
        return self.request("GET", url, params=params, retry_on=is_retryable_fetch_error).text

    def browse_listings(self, result: LocaleResult) -> List[PostLink]:
        """Walk back through recent listing pages collecting Tesla posts."""
        links: List[PostLink] = []
        url: Optional[str] = f"{BASE_URL}/bbs/{BOARD}/index.html"

        for _ in range(self.listing_pages):
            if url is None:
                break
            logger.info(f"  Fetching page: {url}")
            html = self.attempt(result, f"listing {url}", self.fetch_page, url)
            if html is None:
                break
            page_links, url = parse_listing(html)
            links.extend(page_links)

        return links

    def search(self, result: LocaleResult, query: str) -> List[PostLink]:
        """Run a board title search."""
        logger.info(f'  Searching PTT: "{query}"')
        url = f"{BASE_URL}/bbs/{BOARD}/search"
        html = self.attempt(result, f'search "{query}"', self.fetch_page, url, params={"q": query})
        return parse_search_results(html) if html is not None else []

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        links = self.browse_listings(result)
        for query in self.queries(locale):
            links.extend(self.search(result, query))

        # Deduplicate by URL, first title wins
        unique = {}
        for link in links:
            unique.setdefault(link.href, link)
        logger.info(f"  Found {len(unique)} unique Tesla-related posts")

        for link in unique.values():
            logger.info(f"  Parsing: {link.title}")
            html = self.attempt(result, f"article {link.href}", self.fetch_page, link.href)
            if html is None:
                continue

            article = parse_article(html)
            yield Candidate(
                content=article.content,
                author=article.author,
                url=link.href,
                context=link.title,
                min_length=ARTICLE_MIN_LENGTH,
            )
            for push_author, push_content in article.pushes:
                yield Candidate(
                    content=push_content,
                    author=push_author,
                    url=link.href,
                    context=link.title,
                )


def main(argv=None) -> int:
    """
    Command-line entry point.

    Usage:
        python -m testimonials.ptt [-v] [--content-dir DIR]
    """
    parser = build_parser("Collect Tesla owner testimonials from the PTT car board")
    args = parser.parse_args(argv)
    return run_collector_cli(PTTCollector, args)


if __name__ == "__main__":
    sys.exit(main())
