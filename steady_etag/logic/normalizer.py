"""Volatile-token normalisation applied before digesting a response body.

Rendered pages carry values that change on every request even when the
page itself does not: CSRF meta tags, form authenticity tokens, CSP nonce
meta tags and ``nonce`` attributes. These are stripped from a copy of the
body so equal pages digest equally.

This is a heuristic text scan over raw bytes, not an HTML parser. Patterns
tolerate attribute order, either quote style and letter case.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Pattern

__all__ = [
    "NormalizationRule",
    "RULES",
    "is_text_like",
    "normalize_body",
]


@dataclass(frozen=True)
class NormalizationRule:
    name: str
    pattern: Pattern[bytes]
    replacement: bytes = b""

    def apply(self, data: bytes) -> bytes:
        return self.pattern.sub(self.replacement, data)


def _element_with_name(tag: bytes, name: bytes) -> Pattern[bytes]:
    # <tag ... name="value" ...> with the name attribute anywhere in the tag.
    # [^<>] keeps each match attempt inside a single tag.
    return re.compile(
        rb"<" + tag + rb"\b[^<>]*?\bname\s*=\s*([\"'])" + re.escape(name) + rb"\1[^<>]*>",
        re.IGNORECASE,
    )


# Order matters: whole elements go first so the nonce attribute rule does
# not leave half-stripped meta tags behind.
RULES: tuple[NormalizationRule, ...] = (
    NormalizationRule("csrf_meta", _element_with_name(rb"meta", b"csrf-token")),
    NormalizationRule("authenticity_input", _element_with_name(rb"input", b"authenticity_token")),
    NormalizationRule("csp_nonce_meta", _element_with_name(rb"meta", b"csp-nonce")),
    NormalizationRule(
        "nonce_attribute",
        re.compile(rb"\bnonce\s*=\s*([\"'])[^\"']*\1", re.IGNORECASE),
    ),
)

_TEXT_MARKERS = ("html", "xml", "json", "javascript")


def is_text_like(content_type: Optional[str]) -> bool:
    """Return True when a body of this media type should be normalised.

    A missing Content-Type is treated as text, matching how handlers that
    render markup often omit it.
    """
    if not content_type:
        return True
    media = content_type.split(";", 1)[0].strip().lower()
    if media.startswith("text/"):
        return True
    return any(marker in media for marker in _TEXT_MARKERS)


def normalize_body(data: bytes, content_type: Optional[str] = None) -> bytes:
    """Return ``data`` with volatile tokens removed.

    Binary media types are returned unchanged.
    """
    if not data or not is_text_like(content_type):
        return data
    for rule in RULES:
        data = rule.apply(data)
    return data
