"""Steady ETag response tagger.

Framework-neutral core: ``ResponseTagger.process(request, response)`` labels
successful responses with a weak ETag digested from the body (minus volatile
per-request tokens, plus the session identity) and applies a default
Cache-Control when none is set.

Decision order:
1. Status must be one of the digest statuses (200, 201 by default).
2. No ETag and no Last-Modified may already be present.
3. Zero-copy file bodies are never buffered.
4. The buffered body must be non-empty.

Cache-Control is evaluated for every response and never overrides an
existing header: ``cache_control`` applies when a tag was computed,
``no_digest_cache_control`` when it was not.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

from steady_etag.http.body import ChunkedBody, FileBody, ReplayBody, ResponseBody, buffer_body
from steady_etag.http.headers import CACHE_CONTROL, CONTENT_TYPE, ETAG, LAST_MODIFIED, HeaderMap
from steady_etag.logic.digest import compute_digest, weak_etag
from steady_etag.logic.normalizer import normalize_body

if TYPE_CHECKING:  # pragma: no cover
    from steady_etag.config import TaggerConfig

logger = logging.getLogger(__name__)

DEFAULT_CACHE_CONTROL = "max-age=0, private, must-revalidate"
DIGEST_STATUSES = (200, 201)
SESSION_SCOPE_KEY = "session"
DEFAULT_SESSION_KEY = "session_id"


class _Default:
    """Marker for "not configured": use the built-in Cache-Control."""

    def __repr__(self) -> str:
        return "DEFAULT"


DEFAULT = _Default()

# Three states: DEFAULT (built-in value), None (omit), or a literal directive.
CacheControlSetting = Union[str, None, _Default]


def resolve_cache_control(setting: CacheControlSetting) -> Optional[str]:
    if isinstance(setting, _Default):
        return DEFAULT_CACHE_CONTROL
    return setting


@dataclass
class Response:
    """Status, headers and body as produced by the upstream handler."""

    status: int
    headers: HeaderMap = field(default_factory=HeaderMap)
    body: ResponseBody = field(default_factory=lambda: ChunkedBody([]))

    def __post_init__(self) -> None:
        if not isinstance(self.headers, HeaderMap):
            self.headers = HeaderMap(self.headers)
        if isinstance(self.body, (bytes, bytearray, str)):
            self.body = ChunkedBody([self.body])
        elif not isinstance(self.body, (ChunkedBody, FileBody, ReplayBody)):
            self.body = ChunkedBody(self.body)

    def read(self) -> bytes:
        return b"".join(self.body)


RequestContext = Optional[Mapping[str, Any]]


class ResponseTagger:
    """Compute steady weak ETags and default Cache-Control headers.

    Positional arguments follow the established call shape:
    ``ResponseTagger("no-store")`` sets the Cache-Control used when no tag
    could be computed; ``ResponseTagger(None, "public")`` sets the one used
    when a tag was computed; ``ResponseTagger(None, None)`` disables
    Cache-Control handling.
    """

    def __init__(
        self,
        no_digest_cache_control: Optional[str] = None,
        cache_control: CacheControlSetting = DEFAULT,
        *,
        digest_statuses: Iterable[int] = DIGEST_STATUSES,
        session_key: str = DEFAULT_SESSION_KEY,
    ) -> None:
        self.no_digest_cache_control = no_digest_cache_control
        self.cache_control = resolve_cache_control(cache_control)
        self.digest_statuses = frozenset(int(s) for s in digest_statuses)
        self.session_key = session_key

    @classmethod
    def from_config(cls, config: "TaggerConfig") -> "ResponseTagger":
        return cls(
            config.no_digest_cache_control,
            config.cache_control,
            digest_statuses=config.digest_statuses,
            session_key=config.session_key,
        )

    def session_id(self, request: RequestContext) -> Optional[Union[str, bytes]]:
        """Return the session identifier carried by ``request``, if any."""
        if not isinstance(request, Mapping):
            return None
        session = request.get(SESSION_SCOPE_KEY)
        if not isinstance(session, Mapping):
            return None
        value = session.get(self.session_key)
        if value is None or value == "" or value == b"":
            return None
        return value if isinstance(value, (str, bytes)) else str(value)

    def skip_reason(self, response: Response) -> Optional[str]:
        """Return why ``response`` cannot be digested, or None when it can."""
        if response.status not in self.digest_statuses:
            return "status"
        if ETAG in response.headers:
            return "etag_present"
        if LAST_MODIFIED in response.headers:
            return "last_modified_present"
        if isinstance(response.body, FileBody):
            return "zero_copy_body"
        return None

    def process(self, request: RequestContext, response: Response) -> Response:
        digest: Optional[str] = None
        reason = self.skip_reason(response)
        if reason is None:
            original = response.body
            data = buffer_body(original)
            response.body = ReplayBody(data, original)
            if data:
                normalized = normalize_body(data, response.headers.get(CONTENT_TYPE))
                digest = compute_digest(normalized, self.session_id(request))
                response.headers[ETAG] = weak_etag(digest)
                logger.debug(
                    "steady_etag.digest",
                    extra={"status": response.status, "etag": response.headers[ETAG]},
                )
            else:
                reason = "empty_body"
        if reason is not None:
            logger.debug("steady_etag.skip", extra={"status": response.status, "reason": reason})

        self.apply_cache_control(response.headers, digested=digest is not None)
        return response

    def apply_cache_control(self, headers: HeaderMap, *, digested: bool) -> bool:
        """Set the configured Cache-Control unless one is already present."""
        directive = self.cache_control if digested else self.no_digest_cache_control
        return headers.set_if_absent(CACHE_CONTROL, directive)


__all__ = [
    "DEFAULT",
    "DEFAULT_CACHE_CONTROL",
    "DIGEST_STATUSES",
    "CacheControlSetting",
    "RequestContext",
    "Response",
    "ResponseTagger",
    "resolve_cache_control",
]
