"""Content normalisation and hashing.

Every text body comparison and every text ledger hash goes through
``normalize_content`` first, so line-ending and whitespace noise never
registers as a content change.  Binary assets use ``file_hash``.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

HASH_PREFIX = "sha256:"

_BLANK_RUN = re.compile(r"\n{3,}")


def normalize_content(text: str) -> str:
    """Canonicalise *text* for comparison.

    Steps (applied in order):

    1. Replace ``\\r\\n`` and lone ``\\r`` with ``\\n``.
    2. Right-strip each line.
    3. Collapse runs of two or more blank lines to one.
    4. Strip leading and trailing whitespace.

    Non-whitespace Unicode is passed through untouched.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    text = _BLANK_RUN.sub("\n\n", text)
    return text.strip()


def content_hash(text: str) -> str:
    """Return ``sha256:<hex>`` of the normalised *text*."""
    digest = hashlib.sha256(
        normalize_content(text).encode("utf-8")
    ).hexdigest()
    return HASH_PREFIX + digest


def file_hash(path: Path) -> str:
    """Return ``sha256:<hex>`` of the raw bytes of *path*.

    Binary assets are compared byte for byte; no normalisation applies.
    """
    with open(path, "rb") as fh:
        digest = hashlib.file_digest(fh, "sha256").hexdigest()
    return HASH_PREFIX + digest


def short_hash(value: str | None) -> str:
    """First 8 hex characters of a hash, for display."""
    if not value:
        return "-"
    return value.removeprefix(HASH_PREFIX)[:8]
