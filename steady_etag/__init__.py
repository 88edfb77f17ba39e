"""Steady ETag middleware package.

Labels successful responses with a weak ETag digested from the rendered
body, ignoring per-request tokens (CSRF tokens, nonces) so identical pages
keep identical tags, and applies a default Cache-Control. The core lives in
`steady_etag.middleware.tagger`; `steady_etag.middleware.asgi` adapts it to
ASGI applications.
"""

from __future__ import annotations

from steady_etag.middleware.asgi import SteadyETagMiddleware
from steady_etag.middleware.tagger import (
    DEFAULT,
    DEFAULT_CACHE_CONTROL,
    Response,
    ResponseTagger,
)

__all__ = [
    "DEFAULT",
    "DEFAULT_CACHE_CONTROL",
    "Response",
    "ResponseTagger",
    "SteadyETagMiddleware",
]
