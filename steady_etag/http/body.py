"""Response body shapes.

Two source shapes come from upstream handlers:

- ``ChunkedBody``: an in-memory or streamed sequence of byte chunks.
- ``FileBody``: a filesystem-backed body meant for zero-copy transfer
  (sendfile). It is never buffered.

``ReplayBody`` replaces a ``ChunkedBody`` once its bytes have been captured;
closing it closes the body it replaced, exactly once.
"""

from __future__ import annotations

import logging
import os
from typing import IO, Any, Callable, Iterable, Iterator, Optional, Union

logger = logging.getLogger(__name__)

Chunk = Union[bytes, bytearray, memoryview, str]


def _as_bytes(chunk: Chunk) -> bytes:
    if isinstance(chunk, str):
        return chunk.encode("utf-8")
    return bytes(chunk)


class ChunkedBody:
    """Iterable of byte chunks with a ``close()`` hook.

    ``source`` may be any iterable of chunks; when it has a ``close``
    method (generators, file-like objects, ``io.BytesIO``) that method is
    called on close. ``on_close`` callbacks run after it.
    """

    def __init__(self, source: Iterable[Chunk], on_close: Optional[Callable[[], Any]] = None) -> None:
        self.source = source
        self._on_close = on_close
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        for chunk in self.source:
            yield _as_bytes(chunk)

    def close(self) -> None:
        self.closed = True
        close = getattr(self.source, "close", None)
        if callable(close):
            close()
        if self._on_close is not None:
            self._on_close()


class FileBody:
    """Zero-copy body backed by a file handle or a file path.

    ``path`` is exposed for transports that can send a file by name.
    Iterating reads the file in ``chunk_size`` blocks, for transports
    without a zero-copy path; a path-only body opens the file on first
    iteration.
    """

    def __init__(
        self,
        handle: Optional[IO[bytes]] = None,
        *,
        path: Optional[Union[str, "os.PathLike[str]"]] = None,
        chunk_size: int = 64 * 1024,
    ) -> None:
        if handle is None and path is None:
            raise ValueError("FileBody needs a handle or a path")
        self.handle = handle
        self._path = os.fspath(path) if path is not None else None
        self.chunk_size = chunk_size
        self._closed = False

    @classmethod
    def open(cls, path: Union[str, "os.PathLike[str]"], chunk_size: int = 64 * 1024) -> "FileBody":
        return cls(open(path, "rb"), path=path, chunk_size=chunk_size)

    @property
    def path(self) -> Optional[str]:
        if self._path is not None:
            return self._path
        name = getattr(self.handle, "name", None)
        return os.fspath(name) if isinstance(name, (str, os.PathLike)) else None

    @property
    def closed(self) -> bool:
        if self.handle is not None:
            return bool(getattr(self.handle, "closed", False))
        return self._closed

    def __iter__(self) -> Iterator[bytes]:
        if self.handle is None:
            self.handle = open(self._path, "rb")  # type: ignore[arg-type]
        while True:
            block = self.handle.read(self.chunk_size)
            if not block:
                return
            yield block

    def close(self) -> None:
        self._closed = True
        if self.handle is not None:
            self.handle.close()


class ReplayBody:
    """Replays captured bytes and forwards ``close()`` to the original body."""

    def __init__(self, data: bytes, original: Any) -> None:
        self.data = data
        self.original = original
        self.closed = False

    def __iter__(self) -> Iterator[bytes]:
        if self.data:
            yield self.data

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        close = getattr(self.original, "close", None)
        if callable(close):
            close()


ResponseBody = Union[ChunkedBody, FileBody, ReplayBody]


def buffer_body(body: ChunkedBody) -> bytes:
    """Drain ``body`` into a single bytes object.

    The body is left open on success; the caller owns closing it. When
    reading fails part way, the body is closed before the error propagates.
    """
    parts: list[bytes] = []
    try:
        for chunk in body:
            parts.append(chunk)
    except Exception:
        logger.warning("steady_etag.buffer_failed", exc_info=True)
        body.close()
        raise
    return b"".join(parts)


__all__ = ["ChunkedBody", "FileBody", "ReplayBody", "ResponseBody", "buffer_body"]
