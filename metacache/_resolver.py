from __future__ import annotations

import logging
import typing as tp
from dataclasses import dataclass, field, replace
from urllib.parse import parse_qsl, urlsplit

from ._exceptions import ResolveError
from ._storages import (
    BaseStorage,
    FileStorage,
    InMemoryStorage,
    MemcachedStorage,
    RedisStorage,
    S3Storage,
)

logger = logging.getLogger("metacache.resolver")

__all__ = ("StorageURI", "register_storage", "resolve_storage")

_STORAGES: tp.Dict[str, tp.Type[BaseStorage]] = {}


def coerce_option(value: str) -> tp.Union[bool, int, float, str]:
    """
    Light type coercion for query string options.

    Examples:
        >>> coerce_option("true"), coerce_option("5"), coerce_option("0.5"), coerce_option("ascii")
        (True, 5, 0.5, 'ascii')
    """
    lowered = value.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    for number_type in (int, float):
        try:
            return number_type(value)  # type: ignore[no-any-return]
        except ValueError:
            pass
    return value


@dataclass
class StorageURI:
    """
    A parsed connection descriptor, e.g. `memcached://cache.local:11211/app?timeout=2`.
    """

    scheme: str
    host: tp.Optional[str] = None
    port: tp.Optional[int] = None
    path: str = ""
    options: tp.Dict[str, tp.Any] = field(default_factory=dict)

    @classmethod
    def parse(cls, uri: str) -> "StorageURI":
        parts = urlsplit(uri)
        if not parts.scheme:
            raise ResolveError(f"The storage URI `{uri}` has no scheme.")

        try:
            port = parts.port
        except ValueError as exc:
            raise ResolveError(f"The storage URI `{uri}` has an invalid port.") from exc

        return cls(
            scheme=parts.scheme.lower(),
            host=parts.hostname,
            port=port,
            path=parts.path,
            options={name: coerce_option(value) for name, value in parse_qsl(parts.query)},
        )


def register_storage(storage_class: tp.Type[BaseStorage], *schemes: str) -> None:
    """
    Makes a storage class reachable through the given URI schemes.

    Registering a scheme again replaces the previous storage class.
    """
    for scheme in schemes:
        _STORAGES[scheme.lower()] = storage_class


def resolve_storage(uri: tp.Union[str, StorageURI, BaseStorage], **options: tp.Any) -> BaseStorage:
    """
    Creates the storage described by a connection descriptor.

    Args:
        uri: A URI such as `file:///var/cache/meta` or `redis://localhost/app`.
            Ready storage instances are returned untouched.
        options: Extra options merged over the ones from the query string.

    Raises:
        ResolveError: The URI is malformed or its scheme is not registered.
    """
    if isinstance(uri, BaseStorage):
        return uri

    storage_uri = StorageURI.parse(uri) if isinstance(uri, str) else uri
    if options:
        storage_uri = replace(storage_uri, options={**storage_uri.options, **options})

    try:
        storage_class = _STORAGES[storage_uri.scheme]
    except KeyError:
        raise ResolveError(
            f"No storage is registered for the `{storage_uri.scheme}` scheme. "
            f"Known schemes: {', '.join(sorted(_STORAGES))}."
        ) from None

    logger.debug(f"Resolved the `{storage_uri.scheme}` scheme to {storage_class.__name__}.")
    return storage_class.from_uri(storage_uri)


register_storage(InMemoryStorage, "heap", "mem", "memory")
register_storage(FileStorage, "file", "disk")
register_storage(MemcachedStorage, "memcached", "memcache")
register_storage(RedisStorage, "redis")
register_storage(S3Storage, "s3")
