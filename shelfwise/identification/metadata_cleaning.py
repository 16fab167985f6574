"""
Metadata Cleaning

Post-processing for metadata returned by external catalogues:
- ISBN normalization
- Tag cleanup
- Synopsis cleanup (drops non-English trailing sections)
- Author comparison tolerant of "Last, First" ordering
- Series name/position parsing
"""

import re
from typing import Optional

MAX_TAG_LENGTH = 25

# Goodreads wraps identifiers as ="0060590297"
GOODREADS_WRAPPER = re.compile(r'^="?(.*?)"?$')

NON_ENGLISH_LABELS = (
    r"En\s+Fran[çc]ais",
    r"In\s+French",
    r"En\s+Espa[ñn]ol",
    r"In\s+Spanish",
    r"En\s+Allemand",
    r"In\s+German",
    r"Auf\s+Deutsch",
    r"In\s+Italiano",
    r"In\s+Italian",
    r"Em\s+Portugu[êe]s",
    r"In\s+Portuguese",
)

ENGLISH_SECTION = re.compile(
    r"[«\"]?\s*In\s+English\s*:\s*([\s\S]*?)(?:\s*[«\"]?\s*(?:"
    + "|".join(NON_ENGLISH_LABELS)
    + r")\s*:)",
    re.IGNORECASE,
)

NON_ENGLISH_TAILS = [
    re.compile(r"\n\s*[«\"]?\s*" + label + r"\s*:.*$", re.IGNORECASE | re.DOTALL)
    for label in NON_ENGLISH_LABELS
]

SERIES_PATTERNS = [
    re.compile(r"^(.+?)\s*[-–—]+\s*(?:bk\.?|book|vol\.?|volume)\s*\.?\s*(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
    re.compile(r"^(.+?),?\s*#(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
    re.compile(r"^(.+?),?\s*(?:book|vol\.?|volume)\s*(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
    re.compile(r"^(.+?)\s*\((?:book|vol\.?|volume)?\s*#?(\d+(?:\.\d+)?)\)\s*$", re.IGNORECASE),
    re.compile(r"^(.+?)\s+(\d+(?:\.\d+)?)\s*$", re.IGNORECASE),
]


def normalize_isbn(value) -> Optional[str]:
    """
    Normalize an ISBN for storage and comparison.

    Strips the Goodreads ="..." wrapper, dashes and whitespace. Spreadsheet
    cells holding an ISBN as a number come back as floats, so a trailing
    ".0" is dropped too.

    Returns:
        Cleaned ISBN, or None if nothing usable remains
    """
    if value is None:
        return None

    if isinstance(value, float) and value.is_integer():
        value = int(value)

    text = str(value).strip()
    match = GOODREADS_WRAPPER.match(text)
    if match:
        text = match.group(1)

    text = re.sub(r"[-\s]", "", text).upper()
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]

    return text or None


def clean_tags(tags) -> list[str]:
    """
    Clean and de-duplicate tags.

    - Keeps only letters, digits, spaces and hyphens
    - Drops tags longer than MAX_TAG_LENGTH
    - Case-insensitive de-duplication, first spelling wins
    """
    if not isinstance(tags, (list, tuple)):
        return []

    seen = set()
    cleaned = []

    for tag in tags:
        if not isinstance(tag, str):
            continue

        tag = re.sub(r"[^a-zA-Z0-9\s\-]", "", tag)
        tag = re.sub(r"\s+", " ", tag).strip()

        if not tag or len(tag) > MAX_TAG_LENGTH:
            continue

        key = tag.lower()
        if key in seen:
            continue

        seen.add(key)
        cleaned.append(tag)

    return cleaned


def clean_synopsis(synopsis: Optional[str]) -> str:
    """Remove non-English sections from bilingual descriptions."""
    if not synopsis or not isinstance(synopsis, str):
        return ""

    cleaned = synopsis

    english = ENGLISH_SECTION.search(cleaned)
    if english:
        cleaned = english.group(1)
    else:
        for pattern in NON_ENGLISH_TAILS:
            cleaned = pattern.sub("", cleaned)

    cleaned = re.sub(r"^\s*[«\"]?\s*In\s+English\s*:\s*", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"^[\s«\"]+", "", cleaned)
    cleaned = re.sub(r"[\s»\"]+$", "", cleaned)

    return cleaned.strip()


def _normalize_author(name: str) -> str:
    name = re.sub(r"[.,]", " ", name.lower())
    return re.sub(r"\s+", " ", name).strip()


def authors_match(requested: Optional[str], found: Optional[str]) -> bool:
    """
    Check whether two author strings refer to the same person.

    Handles "J.K. Rowling" vs "Rowling, J.K." and a bare surname
    ("Rowling") against a full name.
    """
    if not requested or not found:
        return False

    req = _normalize_author(requested)
    fnd = _normalize_author(found)

    if req == fnd:
        return True

    req_parts = [p for p in re.split(r"[\s,]+", req) if p]
    fnd_parts = [p for p in re.split(r"[\s,]+", fnd) if p]

    if req_parts and all(
        any(f in r or r in f for f in fnd_parts) for r in req_parts
    ):
        return True

    def last_name(parts: list[str], original: str) -> Optional[str]:
        if not parts:
            return None
        return parts[0] if "," in original else parts[-1]

    req_last = last_name(req_parts, requested)
    fnd_last = last_name(fnd_parts, found)

    if req_last and fnd_last:
        return req_last == fnd_last or req_last in fnd_last or fnd_last in req_last

    return False


def normalize_series_name(name: Optional[str]) -> Optional[str]:
    """Strip "Series"/"Book" suffixes and title-case a series name."""
    if not name:
        return None

    name = re.sub(r"\s*[-–—]\s*(bk\.?|book|vol\.?|volume|series|novels?)\.?\s*$", "", name, flags=re.IGNORECASE)
    name = re.sub(r"\s+(series|novels?)\s*$", "", name, flags=re.IGNORECASE)
    name = re.sub(r"[,;:.\-–—]+\s*$", "", name)
    name = re.sub(r"\s+", " ", name).strip()

    if not name:
        return None

    return " ".join(word.capitalize() for word in name.lower().split(" "))


def parse_series_string(value: Optional[str]) -> tuple[Optional[str], Optional[float]]:
    """
    Split a series label into (name, position).

    Examples:
        "Harry Potter #1"             -> ("Harry Potter", 1.0)
        "The Hunger Games, Book 2"    -> ("The Hunger Games", 2.0)
        "The lunar chronicles -- bk. 3" -> ("The Lunar Chronicles", 3.0)
    """
    if not value:
        return None, None

    for pattern in SERIES_PATTERNS:
        match = pattern.match(value.strip())
        if match:
            return normalize_series_name(match.group(1)), float(match.group(2))

    return normalize_series_name(value), None


def series_from_subjects(subjects) -> Optional[str]:
    """Find an Open Library "series:Name" subject."""
    for subject in subjects or []:
        text = subject if isinstance(subject, str) else (subject or {}).get("name")
        if not text:
            continue

        lowered = text.lower()
        for prefix in ("series:", "serie:"):
            if lowered.startswith(prefix):
                return normalize_series_name(text[len(prefix):].replace("_", " ").strip())

    return None
