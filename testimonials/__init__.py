"""
Tesla Owner Testimonials Pipeline

Collects owner testimonials from forums and social platforms and merges
them into the website's per-locale testimonial datasets. It includes:
- Page-scraping collectors (PTT, Mobile01 with manual input fallback)
- API collectors (Reddit, Threads, RedNote via RapidAPI, YouTube)
- Per-source request spacing and exponential-backoff retry
- Content qualification, model detection and content-addressed ids
- A merge stage that dedupes, caps and anonymizes before publishing
- A sequential orchestrator that runs every configured collector
"""

from .errors import TestimonialsError, MissingCredentialsError, SourceAPIError, RateLimitError
from .schemas import Testimonial, TestimonialSource, VehicleModel, Candidate, ManualInput
from .config import Settings, load_env, require_env
from .rate_limiter import RateLimiter, with_retry, is_retryable_error
from .quality import is_qualified, extract_model, generate_id, truncate, clean_text
from .base import BaseCollector, CollectorReport, LocaleResult
from .ptt import PTTCollector
from .mobile01 import Mobile01Collector
from .reddit import RedditCollector
from .threads import ThreadsCollector
from .rednote import RedNoteCollector
from .youtube import YouTubeCollector
from .merge import merge_testimonials, MergeReport
from .collect import run_all, RunStatus

__all__ = [
    # Errors
    "TestimonialsError",
    "MissingCredentialsError",
    "SourceAPIError",
    "RateLimitError",
    # Schemas
    "Testimonial",
    "TestimonialSource",
    "VehicleModel",
    "Candidate",
    "ManualInput",
    # Configuration
    "Settings",
    "load_env",
    "require_env",
    # Rate limiting and retry
    "RateLimiter",
    "with_retry",
    "is_retryable_error",
    # Content quality and identity
    "is_qualified",
    "extract_model",
    "generate_id",
    "truncate",
    "clean_text",
    # Collectors
    "BaseCollector",
    "CollectorReport",
    "LocaleResult",
    "PTTCollector",
    "Mobile01Collector",
    "RedditCollector",
    "ThreadsCollector",
    "RedNoteCollector",
    "YouTubeCollector",
    # Merge and orchestration
    "merge_testimonials",
    "MergeReport",
    "run_all",
    "RunStatus",
]
