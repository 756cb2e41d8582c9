#!/usr/bin/env python3
"""
Mobile01 Tesla forum collector.

Mobile01 sits behind Akamai bot protection that blocks most automated
requests, so this collector combines two inputs:

1. Automated: each known Tesla topic is fetched directly, falling back to
   the Google cache copy. Blocked pages are expected and yield nothing.
2. Manual: an operator-curated JSON file (default data/mobile01-input.json)
   of [{content, author?, model?, url?}] entries, read and never written.

Usage:
    python -m testimonials.mobile01              # automated + manual input
    python -m testimonials.mobile01 --manual     # print manual input instructions

Env: none required
Output: raw/mobile01-zh-TW.json
"""

import json
import logging
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Tuple
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup
from pydantic import ValidationError

from .base import BaseCollector, LocaleResult, build_parser, run_collector_cli
from .config import Settings
from .errors import SourceAPIError
from .schemas import Candidate, ManualInput, TestimonialSource, VehicleModel

logger = logging.getLogger(__name__)

FORUM_URL = "https://www.mobile01.com/topiclist.php?f=741"
CACHE_URL = "https://webcache.googleusercontent.com/search?q=cache:{url}"

# Known Tesla topics in forum f=741
KNOWN_URLS = [
    "https://www.mobile01.com/topicdetail.php?f=741&t=7103938",
    "https://www.mobile01.com/topicdetail.php?f=741&t=7218732",
    "https://www.mobile01.com/topicdetail.php?f=741&t=7077063",
    "https://www.mobile01.com/topicdetail.php?f=741&t=7155202",
    "https://www.mobile01.com/topicdetail.php?f=741&t=7044825",
    "https://www.mobile01.com/topicdetail.php?f=741&t=7006592",
    "https://www.mobile01.com/topicdetail.php?f=741&t=6957401",
    "https://www.mobile01.com/topicdetail.php?f=741&t=6899250",
]

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "zh-TW,zh;q=0.9,en-US;q=0.8,en;q=0.7",
}

DEFAULT_AUTHOR = "Mobile01 用戶"

# A real topic page is large; challenge pages are small or carry these markers
DIRECT_MIN_LENGTH = 5000
DIRECT_BLOCK_MARKERS = ["Access Denied", "edgesuite.net", "g-recaptcha"]
CACHE_MIN_LENGTH = 10000
CACHE_BLOCK_MARKERS = ["g-recaptcha", "Google Search"]

POST_SELECTORS = [
    ".l-post",
    "[class*='article-content']",
    ".post-content",
    ".single-post",
    "article",
]
AUTHOR_SELECTOR = "[class*='userid'], [class*='user-name'], .author-name"
CONTENT_SELECTOR = "[class*='postContent'], [class*='post-content'], .article-content-inner"
POST_MIN_LENGTH = 30


def is_usable_page(html: Optional[str], min_length: int, markers: List[str]) -> bool:
    """Check that a fetched page is real content rather than a bot challenge."""
    if not html or len(html) < min_length:
        return False
    return not any(marker in html for marker in markers)


def parse_article_page(html: str) -> List[Tuple[str, str]]:
    """
    Extract (author, content) posts from a topic page.

    Tries each post selector in turn; the first one that yields posts wins.
    """
    soup = BeautifulSoup(html, "html.parser")
    entries: List[Tuple[str, str]] = []

    for selector in POST_SELECTORS:
        for element in soup.select(selector):
            author_el = element.select_one(AUTHOR_SELECTOR)
            author = (author_el.get_text().strip() if author_el is not None else "") or DEFAULT_AUTHOR

            content_el = element.select_one(CONTENT_SELECTOR)
            content = content_el.get_text().strip() if content_el is not None else ""
            if not content:
                content = element.get_text().strip()

            if len(content) > POST_MIN_LENGTH:
                entries.append((author, content))
        if entries:
            break

    return entries


def load_manual_input(path: Path) -> List[ManualInput]:
    """
    Read the operator-curated input file.

    Returns an empty list when the file does not exist.

    Raises:
        ValueError: If the file is not a JSON array of {content, author?, model?, url?}
    """
    path = Path(path)
    if not path.exists():
        return []

    logger.info(f"  Reading manual input from {path}")
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Manual input {path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"Manual input {path} must contain a JSON array")

    try:
        return [ManualInput.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"Manual input {path} has an invalid entry: {e}") from e


def _known_model(name: Optional[str]) -> Optional[VehicleModel]:
    try:
        return VehicleModel(name) if name else None
    except ValueError:
        logger.warning(f"  Ignoring unknown model in manual input: {name!r}")
        return None


def manual_instructions(input_path: Path) -> str:
    """Describe the manual input file contract."""
    example = [
        {
            "content": "在這裡貼上車主評價內容，需包含 Tesla 或特斯拉等關鍵字...",
            "author": "Mobile01 用戶名",
            "model": "Model Y",
            "url": "https://www.mobile01.com/topicdetail.php?f=741&t=XXXXXXX",
        }
    ]
    return "\n".join([
        "",
        "=== Mobile01 Manual Input Instructions ===",
        "",
        "Mobile01 uses Akamai bot protection that blocks automated access.",
        "To add Mobile01 testimonials manually:",
        "",
        f"1. Browse Tesla forum: {FORUM_URL}",
        "2. Find interesting owner reviews/comments",
        f"3. Create {input_path} with this format:",
        "",
        json.dumps(example, indent=2, ensure_ascii=False),
        "",
        "   'content' is required; 'author', 'model' and 'url' are optional.",
        f"   'model' must be one of: {', '.join(m.value for m in VehicleModel)}",
        "",
        "4. Run: python -m testimonials.mobile01",
    ])


class Mobile01Collector(BaseCollector):
    """
    Collector for the Mobile01 Tesla forum.

    Pages are fetched without retry: a block is the normal outcome, not a
    transient fault.
    """

    platform = "mobile01"
    source = TestimonialSource.MOBILE01
    request_delay = 3.0
    locales = ["zh-TW"]
    headers = HEADERS

    def __init__(self, *args, urls: Optional[List[str]] = None, input_path: Optional[Path] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.urls = list(urls) if urls is not None else list(KNOWN_URLS)
        self.input_path = Path(input_path) if input_path else self.settings.manual_input_path

    def _try_fetch(self, url: str, min_length: int, markers: List[str]) -> Optional[str]:
        try:
            html = self._send("GET", url).text
        except (httpx.HTTPError, SourceAPIError) as e:
            logger.debug(f"  Fetch failed for {url}: {e}")
            return None
        return html if is_usable_page(html, min_length, markers) else None

    def fetch_direct(self, url: str) -> Optional[str]:
        return self._try_fetch(url, DIRECT_MIN_LENGTH, DIRECT_BLOCK_MARKERS)

    def fetch_cached(self, url: str) -> Optional[str]:
        cache_url = CACHE_URL.format(url=quote(url, safe=""))
        return self._try_fetch(cache_url, CACHE_MIN_LENGTH, CACHE_BLOCK_MARKERS)

    def fetch_topic(self, url: str) -> Optional[str]:
        """Fetch a topic page directly or from cache; None when both are blocked."""
        html = self.fetch_direct(url)
        if html is not None:
            logger.info(f"  {url} ... direct OK")
            return html

        html = self.fetch_cached(url)
        if html is not None:
            logger.info(f"  {url} ... cache OK")
            return html

        logger.info(f"  {url} ... blocked")
        return None

    def manual_candidates(self) -> List[Candidate]:
        items = load_manual_input(self.input_path)
        if items:
            logger.info(f"  Loaded {len(items)} items from manual input")
        return [
            Candidate(
                content=item.content,
                author=item.author or DEFAULT_AUTHOR,
                url=item.url,
                model=_known_model(item.model),
            )
            for item in items
        ]

    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        # A broken manual file is an operator error: let it abort the run
        yield from self.manual_candidates()

        logger.info(f"  Trying {len(self.urls)} known URLs (direct + Google Cache)...")
        for url in self.urls:
            html = self.attempt(result, f"topic {url}", self.fetch_topic, url)
            if html is None:
                continue
            for author, content in parse_article_page(html):
                yield Candidate(content=content, author=author, url=url)

    def run(self):
        report = super().run()
        if not any(r.records for r in report.results.values()):
            logger.info("  No results from automated fetching (Akamai bot protection).")
            logger.info("  Use --manual for instructions: python -m testimonials.mobile01 --manual")
        return report


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = build_parser("Collect Tesla owner testimonials from Mobile01")
    parser.add_argument(
        "--manual",
        action="store_true",
        help="Print manual input instructions and exit (no network access)",
    )
    parser.add_argument("--input", type=Path, help="Manual input file (default: data/mobile01-input.json)")
    args = parser.parse_args(argv)

    settings = Settings(content_dir=args.content_dir)
    input_path = args.input or settings.manual_input_path

    if args.manual:
        print(manual_instructions(input_path))
        return 0

    return run_collector_cli(Mobile01Collector, args, settings=settings, input_path=input_path)


if __name__ == "__main__":
    sys.exit(main())
