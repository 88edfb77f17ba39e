from __future__ import annotations

"""Functional test bootstrap for the steady ETag middleware.

Clears any ``STEADY_ETAG_*`` environment overrides so configuration-driven
tests start from built-in defaults, and provides small body doubles that
record how often they are closed.
"""

import os
from typing import Iterable, Iterator

import pytest


class CountingBody:
    """Chunk source recording close() calls; can fail mid-read or on close."""

    def __init__(self, chunks: Iterable[bytes], fail_after: int | None = None, fail_close: bool = False) -> None:
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.fail_close = fail_close
        self.close_calls = 0

    def __iter__(self) -> Iterator[bytes]:
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise OSError("upstream body read failed")
            yield chunk

    def close(self) -> None:
        self.close_calls += 1
        if self.fail_close:
            raise OSError("upstream body close failed")

    @property
    def closed(self) -> bool:
        return self.close_calls > 0


@pytest.fixture(autouse=True)
def clean_steady_etag_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in list(os.environ):
        if key.startswith("STEADY_ETAG_"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def counting_body():
    return CountingBody
