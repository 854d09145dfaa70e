"""
Text Sanitizer Module

Cleans extracted statement text and transaction descriptions, and rejects
strings that look like OCR or encoding garbage.
"""

import logging
import re

from .models import Direction

logger = logging.getLogger(__name__)

# ASCII printable, Latin-1 supplement and Latin Extended, Cyrillic, the euro
# sign and typographic punctuation
_ALLOWED_CHAR = re.compile(
    r"[\x20-\x7E\u00A0-\u024F\u1E00-\u1EFF\u0400-\u04FF\u2010-\u2027\u20AC\s]"
)
_DISALLOWED_RUN = re.compile(
    r"[^\x20-\x7E\u00A0-\u024F\u1E00-\u1EFF\u0400-\u04FF\u2010-\u2027\u20AC\s]{4,}"
)
_CONTROL_RUN = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]{2,}")
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F-\x9F]")
_INVISIBLE_CHARS = re.compile(r"[\uFEFF\u200B\u200C\u200D\u2060]")

DESCRIPTION_PLACEHOLDERS = {
    Direction.INCOME: "Transfer",
    Direction.EXPENSE: "Payment",
}

# Fragments that carry no meaning for a description
NOISE_PATTERNS = [
    # Card masks: 5354 **** **** 1234, XXXX1234, •••• 1234
    re.compile(r"\b\d{4,6}[\s\-]*[*Xx•]{2,}[\s\-*Xx•]*\d{4}\b"),
    re.compile(r"[*Xx•]{4,}[\s\-]*\d{4}\b"),
    # Fee and rate annotations
    re.compile(
        r"\b(?:fee|такса|комисиона)\s*[:\-]?\s*(?:[€$£]|eur|bgn)?\s*\d+(?:[.,]\d+)?"
        r"\s*(?:eur|bgn|лв\.?|€)?",
        re.IGNORECASE,
    ),
    re.compile(
        r"\b(?:exchange\s+rate|rate|курс)\s*[:\-]?\s*(?:1\s*(?:eur|bgn|€)\s*=\s*)?"
        r"\d+(?:[.,]\d+)?\s*(?:eur|bgn|лв\.?|€)?",
        re.IGNORECASE,
    ),
    # Reference-number boilerplate
    re.compile(
        r"\b(?:ref(?:erence)?(?:\s*(?:no\.?|number|#))?|референция|реф\.?)\b"
        r"\s*[:.#№]?\s*(?=[A-Za-z\-/]*\d)[A-Za-z0-9\-/]{4,}",
        re.IGNORECASE,
    ),
]

MERCHANT_STOP_WORDS = {
    "в", "на", "от", "до", "за", "с", "при",
    "at", "in", "on", "for", "with", "from", "to",
    "card", "карта", "payment", "плащане", "transaction", "транзакция",
}


def strip_control_characters(text: str) -> str:
    """Remove control characters, BOMs and zero-width characters."""
    if not text:
        return ""
    text = _CONTROL_CHARS.sub("", text)
    return _INVISIBLE_CHARS.sub("", text)


def clean_document_text(text: str) -> str:
    """Normalize raw extracted document text line by line.

    Control characters are removed, whitespace inside each line is collapsed
    and empty lines are dropped.

    Args:
        text: Raw text recovered from a statement

    Returns:
        Cleaned text, one non-empty line per row
    """
    if not text:
        return ""

    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = strip_control_characters(text)

    lines = [" ".join(line.split()) for line in text.split("\n")]
    return "\n".join(line for line in lines if line)


def is_valid_text(text: str, min_ratio: float = 0.8) -> bool:
    """Check that a string is plausible human text.

    Args:
        text: String to check
        min_ratio: Minimum share of characters from the allowed set

    Returns:
        True if the text passes the validity check
    """
    if not text:
        return False

    valid_count = sum(1 for ch in text if _ALLOWED_CHAR.match(ch))
    if valid_count / len(text) < min_ratio:
        return False

    if _CONTROL_RUN.search(text) or _DISALLOWED_RUN.search(text):
        return False

    return True


def strip_noise(text: str) -> str:
    """Remove card masks, fee/rate annotations and reference numbers."""
    for pattern in NOISE_PATTERNS:
        text = pattern.sub(" ", text)
    return text


def clean_description(text: str, max_length: int = 200) -> str:
    """Clean a transaction description.

    Args:
        text: Raw description text
        max_length: Maximum length of the result

    Returns:
        Cleaned description, or "" if the text fails the validity check
    """
    if not text:
        return ""

    cleaned = strip_control_characters(str(text))
    cleaned = strip_noise(cleaned)
    cleaned = " ".join(cleaned.split()).strip(" -,;:|/")

    if not is_valid_text(cleaned):
        return ""

    return cleaned[:max_length].rstrip()


def sanitize_description(
    text: str,
    direction: Direction,
    max_length: int = 200
) -> str:
    """Clean a description, falling back to a direction placeholder.

    Args:
        text: Raw description text
        direction: Transaction direction, used for the placeholder
        max_length: Maximum length of the result

    Returns:
        A description of 2 to max_length characters
    """
    cleaned = clean_description(text, max_length)
    if len(cleaned) < 2:
        if text:
            logger.debug(f"Rejected description {text[:40]!r}, using placeholder")
        return DESCRIPTION_PLACEHOLDERS[direction]
    return cleaned


def extract_merchant_name(description: str) -> str | None:
    """Pick a short merchant name out of a description.

    Args:
        description: Transaction description

    Returns:
        Up to three meaningful words, or None if nothing usable remains
    """
    text = clean_description(description)
    if not text:
        return None

    # Drop the first number-like fragment (amounts, store numbers)
    without_numbers = re.sub(r"[\d.,]+", "", text, count=1).strip()
    words = [w for w in without_numbers.split() if is_valid_text(w)]
    meaningful = [w for w in words if w.lower() not in MERCHANT_STOP_WORDS]

    if meaningful:
        result = " ".join(meaningful[:3])
    elif words:
        result = " ".join(words[:3])
    else:
        result = text[:30]

    if len(result) < 2:
        result = text[:30]

    result = clean_description(result)
    return result if len(result) >= 2 else None
