from __future__ import annotations

import calendar
import hashlib
import typing as tp
from email.utils import parsedate_tz
from pathlib import Path
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

if tp.TYPE_CHECKING:  # pragma: no cover
    from metacache._models import Request

T = tp.TypeVar("T")

DEFAULT_PORTS = {"http": 80, "https": 443}


def parse_date(date: str) -> tp.Optional[int]:
    expires = parsedate_tz(date)
    if expires is None:
        return None
    timestamp = calendar.timegm(expires[:6])
    return timestamp


def hexdigest(data: str) -> str:
    """
    SHA-1 hex digest of a string key.

    Storages use it wherever the logical cache key cannot be used as is
    (file names, memcached's 250 byte key limit, object names).
    """
    return hashlib.sha1(data.encode("utf-8")).hexdigest()


def filter_mapping(mapping: tp.Mapping[str, T], keys_to_exclude: tp.Iterable[str]) -> tp.Dict[str, T]:
    """
    Filter out specified keys from a string-keyed mapping using case-insensitive comparison.

    Args:
        mapping: The input mapping with string keys to filter.
        keys_to_exclude: An iterable of string keys to exclude (case-insensitive).

    Returns:
        A new dictionary with the specified keys excluded.

    Example:
        ```python
        original = {'a': 1, 'B': 2, 'c': 3}
        filtered = filter_mapping(original, ['b'])
        # filtered will be {'a': 1, 'c': 3}
        ```
    """
    exclude_set = {k.lower() for k in keys_to_exclude}
    return {k: v for k, v in mapping.items() if k.lower() not in exclude_set}


def normalized_url(url: str) -> str:
    """
    Canonical form of a URL for cache key purposes.

    The scheme and host are lower-cased, the default port is dropped,
    an empty path becomes `/` and query parameters are sorted.

    Examples:
        >>> normalized_url("HTTP://Example.com:80/a?b=2&a=1")
        'http://example.com/a?a=1&b=2'
        >>> normalized_url("https://example.com:8443")
        'https://example.com:8443/'
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()

    netloc = host
    if parts.port is not None and DEFAULT_PORTS.get(scheme) != parts.port:
        netloc = f"{host}:{parts.port}"

    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    return urlunsplit((scheme, netloc, parts.path or "/", query, ""))


def generate_key(request: "Request") -> str:
    return f"{request.method.upper()} {normalized_url(request.url)}"


def ensure_cache_dir(base_path: Path | None = None) -> Path:
    _base_path = Path(base_path) if base_path is not None else Path(".cache/metacache/meta")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by metacache\n*")
    return _base_path
