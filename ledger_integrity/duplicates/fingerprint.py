"""
Content fingerprints for duplicate detection.

The same bank message often arrives more than once (multipart SMS,
a notification mirroring the SMS). Normalizing whitespace before
hashing makes those copies produce the same fingerprint.
"""

import hashlib
import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")


def normalize_for_hash(text: str) -> str:
    """Trim and collapse runs of whitespace and line breaks to single spaces."""
    return _WHITESPACE.sub(" ", text.strip())


def compute_fingerprint(text: Optional[str]) -> Optional[str]:
    """
    SHA-256 hex digest of the normalized source text.

    Returns None for missing or blank text: manual entries have no
    source text and therefore no fingerprint.
    """
    if text is None:
        return None
    normalized = normalize_for_hash(text)
    if not normalized:
        return None
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()
