"""
Pydantic schemas for testimonial records.

A `Testimonial` is the common unit produced by every collector and consumed
by the merge stage. Raw collector output keeps the provenance fields
(`url`, `fetchedAt`); the published per-locale datasets drop them.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# Hand-written testimonial IDs look like "t1", "t2", ...
# Collected IDs are "{platform}-{hash8}", so the two never overlap.
CURATED_ID_PATTERN = re.compile(r"^t\d+$")

RAW_ONLY_FIELDS = {"url", "fetched_at"}


class TestimonialSource(str, Enum):
    """Platforms a testimonial can come from."""
    PTT = "PTT"
    X = "X"
    REDNOTE = "RedNote"
    YOUTUBE = "YouTube"
    FACEBOOK = "Facebook"
    REDDIT = "Reddit"
    THREADS = "Threads"
    MOBILE01 = "Mobile01"


class VehicleModel(str, Enum):
    """Vehicle models we recognise in testimonial text."""
    MODEL_3 = "Model 3"
    MODEL_Y = "Model Y"
    MODEL_S = "Model S"
    MODEL_X = "Model X"
    CYBERTRUCK = "Cybertruck"


class Testimonial(BaseModel):
    """
    A single owner testimonial.

    Field order here is the key order in the JSON files.
    """
    model_config = ConfigDict(populate_by_name=True, protected_namespaces=())

    id: str = Field(..., description="Stable id: '{platform}-{hash8}' or 't<n>' for curated entries")
    content: str = Field(..., description="Display text, at most 300 characters plus ellipsis")
    source: TestimonialSource
    author: str = Field(..., description="Attribution; anonymized for collected entries after merge")
    model: Optional[VehicleModel] = None
    rating: Optional[Union[int, float]] = Field(None, description="Only present on curated entries")

    # Raw-stage provenance, stripped before publication
    url: Optional[str] = None
    fetched_at: Optional[str] = Field(None, alias="fetchedAt")

    @property
    def is_curated(self) -> bool:
        """Whether this is a hand-written entry."""
        return bool(CURATED_ID_PATTERN.match(self.id))

    def to_raw_dict(self) -> Dict[str, Any]:
        """JSON form used in raw collector output."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_published_dict(self) -> Dict[str, Any]:
        """JSON form used in the published per-locale dataset."""
        return self.model_dump(
            mode="json",
            by_alias=True,
            exclude_none=True,
            exclude=RAW_ONLY_FIELDS,
        )


class ManualInput(BaseModel):
    """One entry of an operator-supplied manual input file."""
    model_config = ConfigDict(protected_namespaces=())

    content: str
    author: Optional[str] = None
    model: Optional[str] = None
    url: Optional[str] = None


@dataclass
class Candidate:
    """
    A piece of text found on a source, before qualification.

    `context` is extra text (usually the post title) that is only consulted
    when detecting the vehicle model. `model` overrides detection.
    """
    content: str
    author: str
    url: Optional[str] = None
    context: str = ""
    model: Optional[VehicleModel] = None
    min_length: int = 20
