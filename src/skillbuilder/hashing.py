"""Content-addressing primitive used for cache keys."""

from __future__ import annotations

import hashlib


def digest(text: str) -> str:
    """Return the SHA-256 hex digest of ``text``.

    Always 64 lowercase hexadecimal characters regardless of input size.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
