#!/usr/bin/env python3
"""
Run every testimonial collector, one after another.

Collectors whose credentials are missing are skipped; a collector that
fails does not stop the ones after it. The run always exits 0 and ends
with a per-collector summary.

Usage:
    python -m testimonials.collect [-v] [--content-dir DIR]
    python -m testimonials.merge   # then merge into the website files
"""

import logging
import sys
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Type

from .base import BaseCollector, build_parser
from .config import Settings, load_env, missing_env, setup_logging
from .mobile01 import Mobile01Collector
from .ptt import PTTCollector
from .reddit import RedditCollector
from .rednote import RedNoteCollector
from .threads import ThreadsCollector
from .youtube import YouTubeCollector

logger = logging.getLogger(__name__)

# (display name, collector) in run order
COLLECTORS: List[Tuple[str, Type[BaseCollector]]] = [
    ("YouTube", YouTubeCollector),
    ("Reddit", RedditCollector),
    ("PTT", PTTCollector),
    ("Threads", ThreadsCollector),
    ("Mobile01", Mobile01Collector),
    ("RedNote", RedNoteCollector),
]

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class RunStatus:
    """How one collector's run ended."""
    name: str
    status: str
    detail: str = ""

    @property
    def label(self) -> str:
        """Status as shown in the summary, e.g. 'skipped (missing env: RAPIDAPI_KEY)'."""
        return f"{self.status} ({self.detail})" if self.detail else self.status

    @property
    def marker(self) -> str:
        if self.status == STATUS_SUCCESS:
            return "[OK]"
        if self.status == STATUS_SKIPPED:
            return "[--]"
        return "[!!]"


def run_collector(name: str, collector_cls: Type[BaseCollector], settings: Settings) -> RunStatus:
    """Run one collector to completion, turning every outcome into a RunStatus."""
    missing = missing_env(collector_cls.required_env)
    if missing:
        print(f"[SKIP] {name} - missing env: {', '.join(missing)}")
        return RunStatus(name, STATUS_SKIPPED, f"missing env: {', '.join(missing)}")

    print(f"\n[RUN] {name}")
    print("-" * 40)

    try:
        with collector_cls.from_env(settings=settings) as collector:
            collector.run()
    except Exception as e:
        logger.exception(f"{name} failed: {e}")
        print(f"[ERROR] {name} failed: {e}", file=sys.stderr)
        return RunStatus(name, STATUS_FAILED)

    return RunStatus(name, STATUS_SUCCESS)


def run_all(
    settings: Optional[Settings] = None,
    collectors: Optional[Sequence[Tuple[str, Type[BaseCollector]]]] = None,
) -> List[RunStatus]:
    """
    Run collectors strictly in sequence.

    Args:
        settings: Shared run configuration (defaults to Settings())
        collectors: (name, class) pairs to run; defaults to COLLECTORS

    Returns:
        One RunStatus per collector, in run order
    """
    settings = settings or Settings()
    return [
        run_collector(name, collector_cls, settings)
        for name, collector_cls in (collectors if collectors is not None else COLLECTORS)
    ]


def print_summary(results: List[RunStatus]) -> None:
    print("\n" + "=" * 40)
    print("Summary:")
    for r in results:
        print(f"  {r.marker} {r.name}: {r.label}")


def main(argv=None) -> int:
    """Command-line entry point. Returns 0 whatever the collectors did; 130 on Ctrl-C."""
    parser = build_parser("Run all Tesla testimonial collectors sequentially")
    args = parser.parse_args(argv)

    setup_logging(args.verbose)
    load_env()

    print("=== Tesla Testimonials Fetcher ===\n")
    try:
        results = run_all(Settings(content_dir=args.content_dir))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    print_summary(results)
    return 0


if __name__ == "__main__":
    sys.exit(main())
