"""
Exceptions raised by the testimonial collectors and merge stage.

    TestimonialsError
    +-- MissingCredentialsError  (fatal: a collector cannot start)
    +-- SourceAPIError           (unusable response from a remote source)
        +-- RateLimitError       (explicit rate-limit signal, always retryable)
"""

from typing import List, Optional


class TestimonialsError(Exception):
    """Base exception for the testimonials pipeline."""
    pass


class MissingCredentialsError(TestimonialsError):
    """Raised when required environment values are not set."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required environment variable(s): {', '.join(self.missing)}. "
            "Set them in the environment or in .env.local"
        )


class SourceAPIError(TestimonialsError):
    """Raised when a remote source returns something we cannot use."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(SourceAPIError):
    """Raised when a source tells us to slow down (HTTP 429 or equivalent)."""

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message, status_code=429)
        self.retry_after = retry_after
