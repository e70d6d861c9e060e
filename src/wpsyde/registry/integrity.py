"""Integrity digest tags.

Format: ``sha256-<base64>`` where the payload is the standard-alphabet,
padded base64 encoding of the raw SHA256 digest (subresource-integrity style).
"""

from __future__ import annotations

import base64
import hashlib
import hmac
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

INTEGRITY_ALGORITHM = "sha256"
INTEGRITY_PREFIX = f"{INTEGRITY_ALGORITHM}-"


def compute_integrity(data: bytes) -> str:
    """Compute the integrity tag of a byte string.

    Args:
        data: Raw content.

    Returns:
        Tag like ``sha256-uU0nuZNNPgilLlLX2n2r+sSE7+N6U4DukIj3rOLvzek=``.
    """
    digest = hashlib.sha256(data).digest()
    return INTEGRITY_PREFIX + base64.b64encode(digest).decode("ascii")


def compute_file_integrity(filepath: Path) -> str:
    """Compute the integrity tag of a file, reading it in chunks.

    Raises:
        FileNotFoundError: If file doesn't exist.
    """
    hasher = hashlib.sha256()
    with filepath.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            hasher.update(chunk)
    return INTEGRITY_PREFIX + base64.b64encode(hasher.digest()).decode("ascii")


def is_integrity_tag(value: str) -> bool:
    """Check that a string is a well-formed sha256 integrity tag."""
    if not value.startswith(INTEGRITY_PREFIX):
        return False
    payload = value[len(INTEGRITY_PREFIX) :]
    try:
        raw = base64.b64decode(payload, validate=True)
    except ValueError:
        return False
    return len(raw) == hashlib.sha256().digest_size


def integrity_matches(data: bytes, expected: str) -> bool:
    """Recompute the tag of ``data`` and compare it to ``expected``."""
    return hmac.compare_digest(compute_integrity(data), expected)
