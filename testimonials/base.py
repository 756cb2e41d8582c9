"""
Shared machinery for the per-platform testimonial collectors.

A collector is a one-shot batch job. For each locale it walks a list of
units of work (a listing page, a search query, a video), turning each into
candidate texts:

    unit of work -> fetch -> parse -> qualify -> record

Units run strictly one after another, and every request goes through the
collector's RateLimiter and retry policy, so there is never more than one
request in flight. A failed unit contributes nothing; the rest of the run
carries on and whatever was gathered is written out.
"""

import argparse
import json
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, TypeVar

import httpx

from .config import Settings, load_env, require_env, setup_logging
from .errors import MissingCredentialsError, RateLimitError, TestimonialsError
from .quality import extract_model, generate_id, is_qualified, truncate
from .rate_limiter import RateLimiter, is_retryable_error, with_retry
from .schemas import Candidate, Testimonial, TestimonialSource
from .storage import raw_filename, write_raw_output

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Errors that end a single unit of work, not the run
UNIT_ERRORS: Tuple[type, ...] = (
    httpx.HTTPError,
    TestimonialsError,
    ValueError,
    KeyError,
    TypeError,
)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a Z suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class LocaleResult:
    """What one locale's pass produced."""
    locale: str
    records: List[Testimonial] = field(default_factory=list)
    units_ok: int = 0
    units_failed: int = 0

    @property
    def has_output(self) -> bool:
        """Nothing is written when no unit succeeded and nothing was found."""
        return bool(self.records) or self.units_ok > 0


@dataclass
class CollectorReport:
    """Summary of a collector run."""
    source: str
    results: Dict[str, LocaleResult] = field(default_factory=dict)
    written: List[Path] = field(default_factory=list)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "records": {locale: len(r.records) for locale, r in self.results.items()},
            "units_ok": sum(r.units_ok for r in self.results.values()),
            "units_failed": sum(r.units_failed for r in self.results.values()),
            "written": [str(p) for p in self.written],
        }


class BaseCollector(ABC):
    """
    Base class for a single-platform collector.

    Subclasses set the class attributes and implement `iter_candidates`.

    Attributes:
        platform: Slug used in ids and raw filenames (e.g. "ptt")
        source: Source tag stored on records
        required_env: Environment variables the collector cannot run without,
            mapped to the constructor argument each one fills
        request_delay: Minimum seconds between requests
        retry_base_delay: Backoff base in seconds
        locales: Locales this collector produces output for (None = from queries)
    """

    platform: str = ""
    source: TestimonialSource
    required_env: Dict[str, str] = {}
    request_delay: float = 1.0
    retry_base_delay: float = 1.0
    max_attempts: int = 3
    locales: Optional[Sequence[str]] = None
    headers: Dict[str, str] = {}

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.Client] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """
        Args:
            settings: Run configuration (defaults to Settings())
            client: Optional HTTP client; one is created and owned otherwise
            rate_limiter: Optional limiter; defaults to one spaced by request_delay
        """
        self.settings = settings or Settings()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=self.settings.timeout,
            follow_redirects=True,
        )
        self.rate_limiter = rate_limiter or RateLimiter(self.request_delay)

    @classmethod
    def credentials_from_env(cls) -> Dict[str, str]:
        """
        Resolve this collector's credentials.

        Raises:
            MissingCredentialsError: If any required variable is unset
        """
        return require_env(*cls.required_env)

    @classmethod
    def from_env(cls, settings: Optional[Settings] = None, **kwargs) -> "BaseCollector":
        """Build a collector, pulling credentials from the environment."""
        credentials = cls.credentials_from_env()
        for env_name, arg_name in cls.required_env.items():
            kwargs.setdefault(arg_name, credentials[env_name])
        return cls(settings=settings, **kwargs)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def close(self):
        """Close the HTTP client if we created it."""
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """One rate-limited request; raises on error status."""
        headers = {**self.headers, **kwargs.pop("headers", {})}
        self.rate_limiter.wait()
        response = self._client.request(method, url, headers=headers, **kwargs)

        if response.status_code == 429:
            retry_after = response.headers.get("retry-after")
            raise RateLimitError(
                f"Rate limited (429) by {self.source.value}: {url}",
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )

        response.raise_for_status()
        return response

    def request(
        self,
        method: str,
        url: str,
        retry_on: Callable[[Exception], bool] = is_retryable_error,
        **kwargs,
    ) -> httpx.Response:
        """Make a request through the rate limiter with exponential-backoff retry."""
        return with_retry(
            lambda: self._send(method, url, **kwargs),
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            retry_on=retry_on,
            label=url,
        )

    def get_json(self, url: str, **kwargs) -> Any:
        """GET a URL and decode its JSON body."""
        return self.request("GET", url, **kwargs).json()

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def target_locales(self) -> List[str]:
        """Locales to collect, in order."""
        if self.locales is not None:
            return list(self.locales)
        return list(self.settings.queries_for(self.platform).keys())

    def queries(self, locale: str) -> List[str]:
        """Search queries for a locale, from the queries config."""
        return self.settings.queries_for(self.platform).get(locale, [])

    def attempt(self, result: LocaleResult, label: str, func: Callable[..., T], *args, **kwargs) -> Optional[T]:
        """
        Run one unit of work.

        Unit-level failures are logged and counted, and yield None so the
        caller can move on to the next unit.
        """
        try:
            value = func(*args, **kwargs)
        except UNIT_ERRORS as e:
            result.units_failed += 1
            logger.error(f"[{self.platform}] {label} failed: {e}")
            return None

        result.units_ok += 1
        return value

    @abstractmethod
    def iter_candidates(self, locale: str, result: LocaleResult) -> Iterator[Candidate]:
        """
        Yield candidate texts for a locale.

        Implementations wrap each network-bound unit of work in `attempt`.
        """
        ...

    def build_record(self, candidate: Candidate, fetched_at: Optional[str] = None) -> Optional[Testimonial]:
        """Qualify a candidate and shape it into a Testimonial, or None if it does not qualify."""
        content = candidate.content.strip()
        if not is_qualified(content, candidate.min_length):
            return None

        model = candidate.model
        if model is None:
            model = extract_model(f"{content} {candidate.context}".strip())

        return Testimonial(
            id=generate_id(self.platform, content),
            content=truncate(content),
            source=self.source,
            author=candidate.author,
            model=model,
            url=candidate.url,
            fetched_at=fetched_at or utc_now_iso(),
        )

    def finalize(self, records: List[Testimonial]) -> List[Testimonial]:
        """Drop duplicate ids (first occurrence wins) and cap the batch."""
        seen = set()
        unique = []
        for record in records:
            if record.id in seen:
                continue
            seen.add(record.id)
            unique.append(record)
        return unique[: self.settings.max_records]

    def collect_locale(self, locale: str) -> LocaleResult:
        """Run the whole pipeline for one locale."""
        result = LocaleResult(locale=locale)
        records = []
        for candidate in self.iter_candidates(locale, result):
            record = self.build_record(candidate)
            if record is not None:
                records.append(record)

        result.records = self.finalize(records)
        logger.info(
            f"[{self.platform}] {locale}: {len(result.records)} records "
            f"({result.units_ok} units ok, {result.units_failed} failed)"
        )
        return result

    def run(self) -> CollectorReport:
        """Collect every locale and write the raw output files."""
        report = CollectorReport(source=self.source.value)

        for locale in self.target_locales():
            logger.info(f"[{self.platform}] Collecting locale: {locale}")
            result = self.collect_locale(locale)
            report.results[locale] = result

            if not result.has_output:
                logger.warning(
                    f"[{self.platform}] {locale}: every unit failed and nothing was found; "
                    "leaving existing output untouched"
                )
                continue

            path = write_raw_output(
                self.settings.raw_dir,
                raw_filename(self.platform, locale),
                result.records,
            )
            report.written.append(path)

        return report


# ----------------------------------------------------------------------
# CLI helpers
# ----------------------------------------------------------------------

def build_parser(description: str) -> argparse.ArgumentParser:
    """Argument parser with the options every collector accepts."""
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=Settings().content_dir,
        help="Testimonials content directory (raw output goes to <dir>/raw)",
    )
    return parser


def run_collector_cli(
    collector_cls: type,
    args: argparse.Namespace,
    settings: Optional[Settings] = None,
    **kwargs,
) -> int:
    """
    Standard collector entry point body.

    Returns:
        Process exit code
    """
    setup_logging(args.verbose)
    load_env()
    settings = settings or Settings(content_dir=args.content_dir)

    print(f"{collector_cls.source.value} collector starting...")

    try:
        with collector_cls.from_env(settings=settings, **kwargs) as collector:
            report = collector.run()

        print(f"\n{collector_cls.source.value} collector done.")
        for locale, result in report.results.items():
            print(f"  {locale}: {len(result.records)} records")
        logger.info(f"Stats: {json.dumps(report.get_stats(), indent=2, ensure_ascii=False)}")
        return 0

    except MissingCredentialsError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except Exception as e:
        logger.exception(f"{collector_cls.source.value} collector failed: {e}")
        return 1
