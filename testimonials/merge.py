#!/usr/bin/env python3
"""
Merge raw collector output into the website's testimonial datasets.

Reads from: content/testimonials/raw/{platform}-{locale}.json
Merges into: content/testimonials/{locale}.json

For each locale:
- Existing published entries first (hand-written ones included), then raw
- Deduplicate by id, first occurrence wins
- Cap at --limit (default 20)
- Strip raw-only fields (url, fetchedAt)
- Replace collected authors with a per-source anonymous label

Usage:
    python -m testimonials.merge              # merge all
    python -m testimonials.merge --limit 30   # custom limit
"""

import argparse
import json
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from .config import Settings, setup_logging
from .schemas import Testimonial, TestimonialSource
from .storage import load_records, locale_from_filename, write_published

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20

DEFAULT_ANON_LABEL = "匿名車主"
ANON_LABELS: Dict[TestimonialSource, str] = {
    TestimonialSource.PTT: "匿名車主",
    TestimonialSource.REDDIT: "Reddit User",
    TestimonialSource.YOUTUBE: "YouTube User",
    TestimonialSource.THREADS: "Threads User",
    TestimonialSource.MOBILE01: "匿名車主",
    TestimonialSource.REDNOTE: "匿名用戶",
    TestimonialSource.X: "匿名車主",
    TestimonialSource.FACEBOOK: "匿名車主",
}


def anonymize_author(record: Testimonial) -> str:
    """Curated entries keep their author; collected ones get the source's label."""
    if record.is_curated:
        return record.author
    return ANON_LABELS.get(record.source, DEFAULT_ANON_LABEL)


def to_published(record: Testimonial) -> Testimonial:
    """Copy of a record in published form: provenance dropped, author anonymized."""
    return record.model_copy(
        update={
            "author": anonymize_author(record),
            "url": None,
            "fetched_at": None,
        }
    )


def dedupe(records: List[Testimonial]) -> List[Testimonial]:
    """Drop records whose id was already seen, keeping order."""
    seen = set()
    unique = []
    for record in records:
        if record.id not in seen:
            seen.add(record.id)
            unique.append(record)
    return unique


@dataclass
class LocaleMerge:
    """Counts for one locale's merge."""
    locale: str
    existing: int
    raw: int
    total: int
    path: Path


@dataclass
class MergeReport:
    """
    Outcome of a merge run.

    `skipped` is set when there was no raw directory to read; nothing is
    written in that case.
    """
    limit: int
    skipped: bool = False
    raw_files: Dict[str, int] = field(default_factory=dict)
    ignored_files: List[str] = field(default_factory=list)
    locales: List[LocaleMerge] = field(default_factory=list)

    def get_stats(self) -> Dict:
        return {
            "limit": self.limit,
            "skipped": self.skipped,
            "raw_files": dict(self.raw_files),
            "ignored_files": list(self.ignored_files),
            "locales": {m.locale: m.total for m in self.locales},
        }


def read_raw_by_locale(settings: Settings, report: MergeReport) -> Dict[str, List[Testimonial]]:
    """
    Load every raw file, grouped by the locale in its filename.

    Files are read in name order so repeated runs see the same input order.
    """
    raw_by_locale: Dict[str, List[Testimonial]] = {}

    for path in sorted(settings.raw_dir.glob("*.json")):
        locale = locale_from_filename(path.name, settings.locales)
        if locale is None:
            logger.warning(f"  Skipping {path.name} (unknown locale)")
            report.ignored_files.append(path.name)
            continue

        try:
            records = load_records(path)
        except ValueError as e:
            logger.error(f"  Skipping {path.name}: {e}")
            report.ignored_files.append(path.name)
            continue

        logger.info(f"  Read {path.name}: {len(records)} items -> {locale}")
        report.raw_files[path.name] = len(records)
        raw_by_locale.setdefault(locale, []).extend(records)

    return raw_by_locale


def merge_locale(
    existing: List[Testimonial],
    raw: List[Testimonial],
    limit: int = DEFAULT_LIMIT,
) -> List[Testimonial]:
    """
    Combine one locale's published and raw records.

    Existing entries come first, so they win id collisions and are the
    last to be cut by the limit.
    """
    return [to_published(r) for r in dedupe(existing + raw)[:limit]]


def merge_testimonials(settings: Optional[Settings] = None, limit: int = DEFAULT_LIMIT) -> MergeReport:
    """
    Merge raw output into every locale's published dataset.

    Args:
        settings: Paths and locales (defaults to Settings())
        limit: Maximum records per locale

    Returns:
        MergeReport

    Raises:
        ValueError: If limit is not positive, or an existing published
            dataset cannot be read
    """
    if limit < 1:
        raise ValueError(f"limit must be a positive integer, got {limit}")

    settings = settings or Settings()
    report = MergeReport(limit=limit)

    if not settings.raw_dir.is_dir():
        logger.warning(f"No raw/ directory found at {settings.raw_dir}. Run collectors first.")
        report.skipped = True
        return report

    raw_by_locale = read_raw_by_locale(settings, report)

    for locale in settings.locales:
        out_path = settings.published_path(locale)
        existing = load_records(out_path)
        raw = raw_by_locale.get(locale, [])

        final = merge_locale(existing, raw, limit)
        write_published(out_path, final)

        logger.info(f"  {locale}.json: {len(existing)} existing + {len(raw)} raw -> {len(final)} total")
        report.locales.append(
            LocaleMerge(locale=locale, existing=len(existing), raw=len(raw), total=len(final), path=out_path)
        )

    return report


def positive_int(value: str) -> int:
    """argparse type for --limit."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value!r}")
    return number


def main(argv=None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(
        description="Merge raw collector output into the website testimonial files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Merge everything with the default cap of 20 per locale
  python -m testimonials.merge

  # Custom cap
  python -m testimonials.merge --limit 30
        """,
    )
    parser.add_argument("--limit", type=positive_int, default=DEFAULT_LIMIT, help="Max testimonials per locale")
    parser.add_argument(
        "--content-dir",
        type=Path,
        default=Settings().content_dir,
        help="Testimonials content directory (reads <dir>/raw)",
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    settings = Settings(content_dir=args.content_dir)

    print(f"Merge testimonials (limit: {args.limit} per locale)\n")

    try:
        report = merge_testimonials(settings, limit=args.limit)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if report.skipped:
        print("No raw/ directory found. Run collectors first: python -m testimonials.collect")
        return 0

    for merged in report.locales:
        print(f"  {merged.locale}.json: {merged.existing} existing + {merged.raw} raw -> {merged.total} total")
    logger.info(f"Stats: {json.dumps(report.get_stats(), indent=2, ensure_ascii=False)}")
    print("\nDone! Website testimonials updated.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
