"""
Reading and writing testimonial JSON files.

Two file kinds:
- Raw output: content/testimonials/raw/{platform}-{locale}.json, one per
  collector and locale, including provenance fields.
- Published dataset: content/testimonials/{locale}.json, written only by
  the merge stage, provenance stripped, trailing newline.

Both are JSON arrays, pretty-printed UTF-8, and always overwritten whole.
"""

import json
import logging
import shutil
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from .schemas import Testimonial

logger = logging.getLogger(__name__)


def raw_filename(platform: str, locale: str) -> str:
    """Raw output filename for a platform slug and locale."""
    return f"{platform}-{locale}.json"


def locale_from_filename(filename: str, locales: Iterable[str]) -> Optional[str]:
    """
    Find the locale encoded in a raw output filename.

    e.g. ptt-zh-TW.json -> zh-TW, reddit-en.json -> en
    """
    for locale in locales:
        if filename.endswith(f"-{locale}.json"):
            return locale
    return None


def _write_json_atomic(path: Path, data: list, trailing_newline: bool) -> None:
    """Write JSON to a temp file next to `path`, then move it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_suffix(".json.tmp")

    text = json.dumps(data, indent=2, ensure_ascii=False)
    if trailing_newline:
        text += "\n"

    with open(temp_path, "w", encoding="utf-8") as f:
        f.write(text)

    shutil.move(str(temp_path), str(path))


def write_raw_output(raw_dir: Path, filename: str, records: List[Testimonial]) -> Path:
    """
    Write one collector's records for one locale.

    Returns:
        Path of the written file
    """
    path = Path(raw_dir) / filename
    _write_json_atomic(path, [r.to_raw_dict() for r in records], trailing_newline=False)
    logger.info(f"Written: {path} ({len(records)} items)")
    return path


def write_published(path: Path, records: List[Testimonial]) -> Path:
    """Write a locale's published dataset (provenance fields dropped)."""
    path = Path(path)
    _write_json_atomic(path, [r.to_published_dict() for r in records], trailing_newline=True)
    return path


def load_records(path: Path) -> List[Testimonial]:
    """
    Load a JSON array of testimonials.

    Returns an empty list if the file does not exist.

    Raises:
        ValueError: If the file is not a JSON array of valid testimonials
    """
    path = Path(path)
    if not path.exists():
        return []

    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"{path} is not valid JSON: {e}") from e

    if not isinstance(data, list):
        raise ValueError(f"{path} must contain a JSON array")

    try:
        return [Testimonial.model_validate(item) for item in data]
    except ValidationError as e:
        raise ValueError(f"{path} contains an invalid testimonial: {e}") from e
