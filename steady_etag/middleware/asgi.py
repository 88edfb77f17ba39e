"""ASGI adapter for the steady ETag tagger.

Collects the upstream app's ``http.response.start`` and body messages,
hands them to ``ResponseTagger`` as a single response and replays the
result downstream. Responses that can be classified from the start message
alone (non-digest status, ETag or Last-Modified already set, trailers)
stream through without buffering. Zero-copy messages
(``http.response.zerocopysend`` / ``http.response.pathsend``) are never
buffered either.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from steady_etag.http.body import ChunkedBody, FileBody
from steady_etag.http.headers import HeaderMap
from steady_etag.middleware.tagger import DEFAULT, CacheControlSetting, Response, ResponseTagger

logger = logging.getLogger(__name__)

ZERO_COPY_MESSAGES = frozenset({"http.response.zerocopysend", "http.response.pathsend"})


class SteadyETagMiddleware:
    """ASGI middleware labelling responses with steady weak ETags.

    Accepts the same two positional Cache-Control settings as
    ``ResponseTagger``; ``config`` (a ``TaggerConfig``) takes precedence
    when given.
    """

    def __init__(
        self,
        app,  # type: ignore[no-untyped-def]
        no_digest_cache_control: Optional[str] = None,
        cache_control: CacheControlSetting = DEFAULT,
        *,
        config=None,  # type: ignore[no-untyped-def]
    ) -> None:
        self.app = app
        if config is not None:
            self.tagger = ResponseTagger.from_config(config)
        else:
            self.tagger = ResponseTagger(no_digest_cache_control, cache_control)

    async def __call__(self, scope, receive, send):  # type: ignore[no-untyped-def]
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        tagger = self.tagger
        start: Optional[dict[str, Any]] = None
        headers: Optional[HeaderMap] = None
        chunks: list[bytes] = []
        streaming = False

        async def send_wrapper(message):  # type: ignore[no-untyped-def]
            nonlocal start, headers, streaming
            if streaming:
                await send(message)
                return

            mtype = message.get("type")
            if mtype == "http.response.start":
                start = message
                headers = HeaderMap.from_raw(message.get("headers"))
                probe = Response(int(message.get("status", 200)), headers)
                reason = tagger.skip_reason(probe)
                if reason is None and message.get("trailers"):
                    reason = "trailers"
                if reason is not None:
                    logger.debug("steady_etag.skip", extra={"status": probe.status, "reason": reason})
                    streaming = True
                    tagger.apply_cache_control(headers, digested=False)
                    await send({**start, "headers": headers.to_raw()})
                return

            if mtype in ZERO_COPY_MESSAGES or mtype == "http.response.body":
                if start is None or headers is None:
                    raise RuntimeError(f"ASGI message {mtype!r} sent before http.response.start")

            if mtype in ZERO_COPY_MESSAGES:
                zero_copy = Response(int(start.get("status", 200)), headers, FileBody(path=message.get("path", "")))
                tagger.process(scope, zero_copy)
                streaming = True
                await send({**start, "headers": headers.to_raw()})
                if chunks:
                    await send({"type": "http.response.body", "body": b"".join(chunks), "more_body": True})
                await send(message)
                return

            if mtype == "http.response.body":
                chunks.append(bytes(message.get("body", b"")))
                if message.get("more_body", False):
                    return
                response = Response(int(start.get("status", 200)), headers, ChunkedBody(chunks))
                tagger.process(scope, response)
                try:
                    await send({**start, "headers": response.headers.to_raw()})
                    await send({"type": "http.response.body", "body": response.read(), "more_body": False})
                finally:
                    response.body.close()
                return

            await send(message)

        await self.app(scope, receive, send_wrapper)


__all__ = ["SteadyETagMiddleware", "ZERO_COPY_MESSAGES"]
