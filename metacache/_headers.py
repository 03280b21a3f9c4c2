from __future__ import annotations

import re
from typing import Any, Iterator, List, Mapping, MutableMapping, Optional

__all__ = (
    "Headers",
    "Vary",
    "environ_key",
    "requests_match",
)

PROTOCOL_PREFIX = "HTTP_"

_VARY_SEPARATORS = re.compile(r"[\s,]+")


class Headers(MutableMapping[str, str]):
    """
    Case-insensitive header mapping holding exactly one string value per name.

    Names are stored lower-cased, so `dict(headers)` is the flat
    representation that gets persisted by the meta store.
    """

    def __init__(self, headers: Optional[Mapping[str, str]] = None) -> None:
        self._headers = {k.lower(): v for k, v in (headers or {}).items()}

    def __getitem__(self, key: str) -> str:
        return self._headers[key.lower()]

    def __setitem__(self, key: str, value: str) -> None:
        self._headers[key.lower()] = value

    def __delitem__(self, key: str) -> None:
        del self._headers[key.lower()]

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.lower() in self._headers

    def __iter__(self) -> Iterator[str]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __repr__(self) -> str:
        return f"Headers({self._headers!r})"

    def __eq__(self, other_headers: Any) -> bool:
        if isinstance(other_headers, Headers):
            return self._headers == other_headers._headers
        if isinstance(other_headers, Mapping):
            return self._headers == {k.lower(): v for k, v in other_headers.items()}
        return False


class Vary:
    def __init__(self, values: List[str]) -> None:
        self.values = values

    @classmethod
    def from_value(cls, vary_value: str) -> "Vary":
        return Vary([field_name for field_name in _VARY_SEPARATORS.split(vary_value) if field_name])


def environ_key(header_name: str) -> str:
    """
    Protocol key under which a request header is stored.

    Examples:
        >>> environ_key("Accept-Encoding")
        'HTTP_ACCEPT_ENCODING'
    """
    return PROTOCOL_PREFIX + header_name.upper().replace("-", "_")


def requests_match(
    vary: Optional[str],
    candidate: Mapping[str, str],
    reference: Mapping[str, str],
) -> bool:
    """
    Determines whether two stored request snapshots are the same variant.

    Every header nominated by `vary` must have exactly the same value in
    both snapshots, where "absent in both" also counts as the same value.
    No `vary` value means the resource does not vary, so anything matches.

    Examples:
        >>> requests_match(None, {"HTTP_ACCEPT": "a"}, {"HTTP_ACCEPT": "b"})
        True
        >>> requests_match("Accept", {"HTTP_ACCEPT": "a"}, {"HTTP_ACCEPT": "b"})
        False
        >>> requests_match("Accept, Accept-Language", {}, {})
        True
    """
    if not vary:
        return True

    for header in Vary.from_value(vary).values:
        key = environ_key(header)
        if candidate.get(key) != reference.get(key):
            return False
    return True
