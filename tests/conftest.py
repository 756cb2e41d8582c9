"""Shared pytest fixtures for the testimonials test suite."""

from pathlib import Path
from typing import Callable, List

import httpx
import pytest

from testimonials import rate_limiter
from testimonials.config import Settings

CREDENTIAL_VARS = [
    "YOUTUBE_API_KEY",
    "REDDIT_CLIENT_ID",
    "REDDIT_CLIENT_SECRET",
    "THREADS_ACCESS_TOKEN",
    "RAPIDAPI_KEY",
]


class FakeClock:
    """Stands in for time.monotonic/time.sleep: sleeping advances the clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def clock(monkeypatch) -> FakeClock:
    """Rate limiting and retry backoff never really sleep in tests."""
    fake = FakeClock()
    monkeypatch.setattr(rate_limiter.time, "monotonic", fake.monotonic)
    monkeypatch.setattr(rate_limiter.time, "sleep", fake.sleep)
    return fake


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test with no source credentials set."""
    for name in CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    return tmp_path / "content" / "testimonials"


@pytest.fixture
def settings(content_dir: Path) -> Settings:
    """Settings pointed at a temporary content directory."""
    return Settings(content_dir=content_dir, manual_input_path=content_dir / "missing-input.json")


@pytest.fixture
def write_queries(tmp_path: Path) -> Callable[[str], Path]:
    """Write a queries YAML file and return its path."""

    def _write(text: str) -> Path:
        path = tmp_path / "queries.yml"
        path.write_text(text, encoding="utf-8")
        return path

    return _write


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.Client:
    """An httpx client whose requests are answered by `handler`."""
    return httpx.Client(transport=httpx.MockTransport(handler))


@pytest.fixture
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], httpx.Client]:
    return mock_client
