from __future__ import annotations

import re
import time
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Tuple,
    TypedDict,
)
from wsgiref.util import request_uri

from typing_extensions import TypeAlias

from metacache._headers import PROTOCOL_PREFIX, Headers, environ_key
from metacache._utils import parse_date

VariantEntry: TypeAlias = Tuple[Dict[str, str], Dict[str, str]]
"""A stored (request protocol headers, response headers) pair."""

MetaRecord: TypeAlias = List[VariantEntry]

_PROTOCOL_KEY = re.compile(r"[0-9A-Z_]+")
_ENVIRON_HEADERS = ("CONTENT_TYPE", "CONTENT_LENGTH")


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "metacache_" to avoid collisions with user data
    metacache_key_generator: Callable[["Request"], str]
    """Overrides the meta store's cache key generator for this request."""

    metacache_use_native_ttl: bool
    """
    When True, fresh responses are written with their time-to-live so that
    storages with native expiry can drop them on their own.
    """


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_environ(cls, environ: Mapping[str, Any]) -> "Request":
        """
        Builds a request out of a WSGI environ.
        """
        headers = Headers()
        for key, value in environ.items():
            if key.startswith(PROTOCOL_PREFIX):
                headers[key[len(PROTOCOL_PREFIX) :].replace("_", "-")] = value
            elif key in _ENVIRON_HEADERS and value:
                headers[key.replace("_", "-")] = value

        return cls(
            method=environ.get("REQUEST_METHOD", "GET"),
            url=request_uri(dict(environ), include_query=True),
            headers=headers,
        )

    def protocol_headers(self) -> Dict[str, str]:
        """
        The persistable snapshot of the request headers.

        Only keys made of upper-case letters, digits and underscores with
        textual values survive, everything else cannot be matched by
        `Vary` anyway.
        """
        snapshot = {}
        for name, value in self.headers.items():
            key = environ_key(name)
            if _PROTOCOL_KEY.fullmatch(key) and isinstance(value, str):
                snapshot[key] = value
        return snapshot


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    stream: Iterable[bytes] = field(default_factory=list)

    @property
    def vary(self) -> Optional[str]:
        return self.headers.get("vary")

    @property
    def date(self) -> float:
        """
        The `date` header as a timestamp.

        A missing header is set to the current time on first access, so the
        response keeps that date once it is stored. An invalid header reads
        as the current time.
        """
        if "date" not in self.headers:
            self.headers["date"] = formatdate(usegmt=True)
        date = parse_date(self.headers["date"])
        return time.time() if date is None else date

    @property
    def age(self) -> int:
        if "age" in self.headers:
            try:
                return int(self.headers["age"])
            except ValueError:
                pass
        return max(int(time.time() - self.date), 0)

    @property
    def max_age(self) -> Optional[int]:
        """
        Number of seconds after which the response is no longer fresh.

        `s-maxage` wins over `max-age`, which wins over `expires`.
        """
        for directive in ("s-maxage", "max-age"):
            value = self._cache_control_value(directive)
            if value is not None:
                return value

        if "expires" in self.headers:
            expires = parse_date(self.headers["expires"])
            if expires is not None:
                return int(expires - self.date)
        return None

    @property
    def ttl(self) -> Optional[int]:
        max_age = self.max_age
        if max_age is None:
            return None
        return max_age - self.age

    def is_fresh(self) -> bool:
        ttl = self.ttl
        return ttl is not None and ttl > 0

    def expire(self) -> None:
        """
        Marks a fresh response as stale by aging it up to its max age.
        """
        if self.is_fresh():
            self.headers["age"] = str(self.max_age)

    def read(self) -> bytes:
        collected = b"".join(self.stream)
        self.stream = [collected]
        return collected

    def _cache_control_value(self, directive: str) -> Optional[int]:
        for part in self.headers.get("cache-control", "").split(","):
            name, _, value = part.strip().partition("=")
            if name.lower() == directive and value:
                try:
                    return int(value.strip('"'))
                except ValueError:
                    return None
        return None
