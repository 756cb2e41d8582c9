"""
Run configuration for the testimonial collectors and merge stage.

Values are resolved once per invocation and passed into collectors
explicitly; nothing here reads the environment at import time.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import MissingCredentialsError

# Default paths (relative to the website repository root)
DEFAULT_CONTENT_DIR = Path("content/testimonials")
DEFAULT_MANUAL_INPUT_PATH = Path("data/mobile01-input.json")
DEFAULT_QUERIES_PATH = Path(__file__).parent / "queries.yml"

LOCALES = ["zh-TW", "en", "ja", "ko"]
DEFAULT_LOCALE = "zh-TW"

MAX_RECORDS_PER_SOURCE = 30
DEFAULT_TIMEOUT = 30.0

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def load_queries(path: Path) -> Dict[str, Dict[str, List[str]]]:
    """
    Load per-source search queries from a YAML file.

    The file maps a source slug to either a {locale: [queries]} mapping or a
    flat list of queries (which is filed under the default locale).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Queries config not found: {path}")

    with open(path, encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError(f"Queries config must be a mapping of source -> queries: {path}")

    queries: Dict[str, Dict[str, List[str]]] = {}
    for source, entry in config.items():
        if isinstance(entry, list):
            queries[source] = {DEFAULT_LOCALE: [str(q) for q in entry]}
        elif isinstance(entry, dict):
            queries[source] = {
                str(locale): [str(q) for q in (items or [])]
                for locale, items in entry.items()
            }
        else:
            raise ValueError(f"Invalid queries for source '{source}' in {path}")
    return queries


@dataclass
class Settings:
    """
    Configuration shared by one collector or merge invocation.

    Attributes:
        content_dir: Directory holding the published {locale}.json files
        locales: Locales the website is published in
        max_records: Cap on records per source per locale in raw output
        manual_input_path: Operator-curated Mobile01 input file
        queries_path: YAML file with search queries per source
        timeout: HTTP timeout in seconds
    """
    content_dir: Path = DEFAULT_CONTENT_DIR
    locales: List[str] = field(default_factory=lambda: list(LOCALES))
    max_records: int = MAX_RECORDS_PER_SOURCE
    manual_input_path: Path = DEFAULT_MANUAL_INPUT_PATH
    queries_path: Path = DEFAULT_QUERIES_PATH
    timeout: float = DEFAULT_TIMEOUT
    _queries: Optional[Dict[str, Dict[str, List[str]]]] = field(default=None, repr=False)

    def __post_init__(self):
        self.content_dir = Path(self.content_dir)
        self.manual_input_path = Path(self.manual_input_path)
        self.queries_path = Path(self.queries_path)

    @property
    def raw_dir(self) -> Path:
        """Directory for per-source raw collector output."""
        return self.content_dir / "raw"

    def published_path(self, locale: str) -> Path:
        return self.content_dir / f"{locale}.json"

    def queries_for(self, source: str) -> Dict[str, List[str]]:
        """Get the {locale: [queries]} mapping for a source slug."""
        if self._queries is None:
            self._queries = load_queries(self.queries_path)
        return self._queries.get(source, {})


def load_env() -> None:
    """Load .env.local, then .env, without overriding the process environment."""
    load_dotenv(Path(".env.local"), override=False)
    load_dotenv(Path(".env"), override=False)


def missing_env(names) -> List[str]:
    """Return the subset of `names` that are unset or empty."""
    return [name for name in names if not os.getenv(name)]


def require_env(*names: str) -> Dict[str, str]:
    """
    Resolve required environment values.

    Raises:
        MissingCredentialsError: naming every missing variable
    """
    missing = missing_env(names)
    if missing:
        raise MissingCredentialsError(missing)
    return {name: os.environ[name] for name in names}


def setup_logging(verbose: bool = False) -> None:
    """Configure console logging for a CLI invocation."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
