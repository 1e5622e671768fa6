"""Content fingerprinting for change detection.

This module provides:
- fingerprint: SHA-256 hex digest of note content
- is_fingerprint: validation of the 64-character hex form the server expects
"""

import hashlib
import re

FINGERPRINT_LENGTH = 64

_FINGERPRINT_RE = re.compile(r"^[0-9a-f]{64}$")


def fingerprint(content: str) -> str:
    """Compute the fingerprint of note content.

    Args:
        content: Note text. Encoded as UTF-8 before hashing.

    Returns:
        64-character lowercase hex SHA-256 digest.
    """
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def is_fingerprint(value: str) -> bool:
    """Check whether a string has the fingerprint format."""
    return bool(_FINGERPRINT_RE.match(value))
