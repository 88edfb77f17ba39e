"""Case-insensitive response header bag.

Keeps header names in their original spelling and insertion order while
comparing them case-insensitively. Mutation follows the "already set wins"
rule through ``set_if_absent``. Converts to and from ASGI raw header lists
(``list[tuple[bytes, bytes]]``, latin-1 encoded) without losing repeated
fields such as ``Set-Cookie``.
"""

from __future__ import annotations

from collections.abc import Mapping, MutableMapping
from typing import Iterable, Iterator, Optional, Tuple, Union

ETAG = "ETag"
LAST_MODIFIED = "Last-Modified"
CACHE_CONTROL = "Cache-Control"
CONTENT_TYPE = "Content-Type"

RawHeaders = Iterable[Tuple[Union[bytes, str], Union[bytes, str]]]


def _text(value: Union[bytes, bytearray, str]) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("latin-1")
    return str(value)


class HeaderMap(MutableMapping):
    """Ordered header fields with case-insensitive name lookup.

    Item access works on the first field carrying a name; assignment
    replaces every field of that name with a single one. ``add`` appends a
    repeated field.
    """

    def __init__(self, initial: Optional[Union[Mapping[str, str], RawHeaders]] = None) -> None:
        self._fields: list[Tuple[str, str]] = []
        if initial is None:
            return
        pairs = initial.items() if isinstance(initial, Mapping) else initial
        for name, value in pairs:
            self.add(_text(name), _text(value))

    @classmethod
    def from_raw(cls, raw: Optional[RawHeaders]) -> "HeaderMap":
        """Build from an ASGI ``headers`` list."""
        return cls(list(raw or []))

    def to_raw(self) -> list[Tuple[bytes, bytes]]:
        """Return an ASGI ``headers`` list with lower-cased names."""
        return [
            (name.lower().encode("latin-1"), value.encode("latin-1"))
            for name, value in self._fields
        ]

    def add(self, name: str, value: str) -> None:
        self._fields.append((name, str(value)))

    def get_all(self, name: str) -> list[str]:
        key = name.lower()
        return [v for n, v in self._fields if n.lower() == key]

    def __getitem__(self, name: str) -> str:
        key = name.lower()
        for n, v in self._fields:
            if n.lower() == key:
                return v
        raise KeyError(name)

    def __setitem__(self, name: str, value: str) -> None:
        key = name.lower()
        for index, (n, _) in enumerate(self._fields):
            if n.lower() == key:
                self._fields[index] = (n, str(value))
                self._fields = self._fields[: index + 1] + [
                    f for f in self._fields[index + 1 :] if f[0].lower() != key
                ]
                return
        self._fields.append((name, str(value)))

    def __delitem__(self, name: str) -> None:
        key = name.lower()
        kept = [f for f in self._fields if f[0].lower() != key]
        if len(kept) == len(self._fields):
            raise KeyError(name)
        self._fields = kept

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        key = name.lower()
        return any(n.lower() == key for n, _ in self._fields)

    def __iter__(self) -> Iterator[str]:
        seen: set[str] = set()
        for n, _ in self._fields:
            if n.lower() not in seen:
                seen.add(n.lower())
                yield n

    def __len__(self) -> int:
        return len({n.lower() for n, _ in self._fields})

    def __repr__(self) -> str:
        return f"HeaderMap({self._fields!r})"

    def set_if_absent(self, name: str, value: Optional[str]) -> bool:
        """Set ``name`` only when it is missing and ``value`` is not None.

        Returns True when the header was written.
        """
        if value is None or name in self:
            return False
        self.add(name, value)
        return True


__all__ = [
    "HeaderMap",
    "ETAG",
    "LAST_MODIFIED",
    "CACHE_CONTROL",
    "CONTENT_TYPE",
]
