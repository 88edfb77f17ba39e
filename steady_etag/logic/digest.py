"""Content digest and weak ETag formatting.

The digest covers the normalised body followed by the session marker:
nothing when the request has no session, otherwise a NUL separator and the
session identifier. SHA-256 is truncated to 128 bits (32 hex chars).
"""

from __future__ import annotations

import hashlib
from typing import Optional, Union

__all__ = ["DIGEST_HEX_LENGTH", "compute_digest", "session_marker", "weak_etag"]

DIGEST_HEX_LENGTH = 32

SessionId = Union[str, bytes, None]


def session_marker(session_id: SessionId) -> bytes:
    if session_id is None:
        return b""
    raw = session_id if isinstance(session_id, bytes) else str(session_id).encode("utf-8")
    if not raw:
        return b""
    return b"\x00" + raw


def compute_digest(normalized: bytes, session_id: SessionId = None) -> str:
    """Return the hex digest for a normalised body and optional session id."""
    hasher = hashlib.sha256()
    hasher.update(normalized)
    hasher.update(session_marker(session_id))
    return hasher.hexdigest()[:DIGEST_HEX_LENGTH]


def weak_etag(digest: str) -> str:
    """Format a digest as a weak entity tag: W/"<hex>"."""
    return f'W/"{digest}"'
