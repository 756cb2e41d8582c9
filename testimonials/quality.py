"""
Content qualification, model detection and record identity.

Every collector runs candidate text through `is_qualified` before turning it
into a record, and derives the record id with `generate_id` so the same text
collapses to one record no matter how often or where it was seen.
"""

import hashlib
import html
import re
from typing import Optional

from .schemas import VehicleModel

# Topical relevance: brand and model names across the site's languages
TOPIC_KEYWORDS = [
    "tesla",
    "特斯拉",
    "テスラ",
    "테슬라",
    "model 3",
    "model y",
    "model s",
    "model x",
    "cybertruck",
]

SPAM_PATTERNS = [
    re.compile(r"https?://\S+\.(com|net|org)\S{20,}", re.IGNORECASE),  # long tracking URLs
    re.compile(r"免費|free giveaway|click here|訂閱.*抽獎", re.IGNORECASE),
]

# Unicode Emoji_Presentation code points (emoji that render as pictures by default)
EMOJI_PRESENTATION_RANGES = [
    (0x231A, 0x231B), (0x23E9, 0x23EC), (0x23F0, 0x23F0), (0x23F3, 0x23F3),
    (0x25FD, 0x25FE), (0x2614, 0x2615), (0x2648, 0x2653), (0x267F, 0x267F),
    (0x2693, 0x2693), (0x26A1, 0x26A1), (0x26AA, 0x26AB), (0x26BD, 0x26BE),
    (0x26C4, 0x26C5), (0x26CE, 0x26CE), (0x26D4, 0x26D4), (0x26EA, 0x26EA),
    (0x26F2, 0x26F3), (0x26F5, 0x26F5), (0x26FA, 0x26FA), (0x26FD, 0x26FD),
    (0x2705, 0x2705), (0x270A, 0x270B), (0x2728, 0x2728), (0x274C, 0x274C),
    (0x274E, 0x274E), (0x2753, 0x2755), (0x2757, 0x2757), (0x2795, 0x2797),
    (0x27B0, 0x27B0), (0x27BF, 0x27BF), (0x2B1B, 0x2B1C), (0x2B50, 0x2B50),
    (0x2B55, 0x2B55),
    (0x1F004, 0x1F004), (0x1F0CF, 0x1F0CF), (0x1F18E, 0x1F18E), (0x1F191, 0x1F19A),
    (0x1F1E6, 0x1F1FF), (0x1F201, 0x1F201), (0x1F21A, 0x1F21A), (0x1F22F, 0x1F22F),
    (0x1F232, 0x1F236), (0x1F238, 0x1F23A), (0x1F250, 0x1F251), (0x1F300, 0x1F320),
    (0x1F32D, 0x1F335), (0x1F337, 0x1F37C), (0x1F37E, 0x1F393), (0x1F3A0, 0x1F3CA),
    (0x1F3CF, 0x1F3D3), (0x1F3E0, 0x1F3F0), (0x1F3F4, 0x1F3F4), (0x1F3F8, 0x1F43E),
    (0x1F440, 0x1F440), (0x1F442, 0x1F4FC), (0x1F4FF, 0x1F53D), (0x1F54B, 0x1F54E),
    (0x1F550, 0x1F567), (0x1F57A, 0x1F57A), (0x1F595, 0x1F596), (0x1F5A4, 0x1F5A4),
    (0x1F5FB, 0x1F64F), (0x1F680, 0x1F6C5), (0x1F6CC, 0x1F6CC), (0x1F6D0, 0x1F6D2),
    (0x1F6D5, 0x1F6D7), (0x1F6DC, 0x1F6DF), (0x1F6EB, 0x1F6EC), (0x1F6F4, 0x1F6FC),
    (0x1F7E0, 0x1F7EB), (0x1F7F0, 0x1F7F0), (0x1F90C, 0x1F93A), (0x1F93C, 0x1F945),
    (0x1F947, 0x1F9FF), (0x1FA70, 0x1FA7C), (0x1FA80, 0x1FA88), (0x1FA90, 0x1FABD),
    (0x1FABF, 0x1FAC5), (0x1FACE, 0x1FADB), (0x1FAE0, 0x1FAE8), (0x1FAF0, 0x1FAF8),
]
EMOJI_RE = re.compile(
    "[" + "".join(f"{re.escape(chr(lo))}-{re.escape(chr(hi))}" for lo, hi in EMOJI_PRESENTATION_RANGES) + "]"
)
MAX_EMOJI = 4

# Order matters: first match wins
MODEL_PATTERNS = [
    (re.compile(r"model\s*3", re.IGNORECASE), VehicleModel.MODEL_3),
    (re.compile(r"model\s*y", re.IGNORECASE), VehicleModel.MODEL_Y),
    (re.compile(r"model\s*s", re.IGNORECASE), VehicleModel.MODEL_S),
    (re.compile(r"model\s*x", re.IGNORECASE), VehicleModel.MODEL_X),
    (re.compile(r"cybertruck", re.IGNORECASE), VehicleModel.CYBERTRUCK),
]

MAX_CONTENT_LENGTH = 300
ELLIPSIS = "..."
ID_HASH_LENGTH = 8

_TAG_RE = re.compile(r"<[^>]+>")
_TRAILING_PARTIAL_WORD_RE = re.compile(r"\s+\S*$")


def is_qualified(text: Optional[str], min_length: int = 20) -> bool:
    """
    Decide whether text is worth keeping as a testimonial.

    Rejects text that is shorter than `min_length`, mentions no Tesla
    keyword, or looks like spam.
    """
    if not text or len(text) < min_length:
        return False

    lower = text.lower()
    if not any(keyword in lower for keyword in TOPIC_KEYWORDS):
        return False

    if any(pattern.search(text) for pattern in SPAM_PATTERNS):
        return False

    return len(EMOJI_RE.findall(text)) <= MAX_EMOJI


def extract_model(text: Optional[str]) -> Optional[VehicleModel]:
    """Return the first vehicle model mentioned, in fixed priority order."""
    if not text:
        return None
    for pattern, model in MODEL_PATTERNS:
        if pattern.search(text):
            return model
    return None


def generate_id(platform: str, content: str) -> str:
    """
    Content-addressed id: '{platform}-{first 8 hex chars of sha256(content)}'.

    Only the content is hashed; the same text seen twice (by the same
    platform) always yields the same id.
    """
    digest = hashlib.sha256(content.encode("utf-8")).hexdigest()
    return f"{platform}-{digest[:ID_HASH_LENGTH]}"


def truncate(text: str, max_length: int = MAX_CONTENT_LENGTH) -> str:
    """Cut text at `max_length`, backing off to a word boundary, and add an ellipsis."""
    if len(text) <= max_length:
        return text
    return _TRAILING_PARTIAL_WORD_RE.sub("", text[:max_length]) + ELLIPSIS


def clean_text(text: str) -> str:
    """Replace markup tags with spaces, unescape entities and trim."""
    return html.unescape(_TAG_RE.sub(" ", text)).strip()
