from __future__ import annotations

import enum
import logging
import typing as tp
from pathlib import Path

try:
    import boto3

    from ._s3 import S3Manager
except ImportError:  # pragma: no cover
    boto3 = None  # type: ignore

try:
    import redis
except ImportError:  # pragma: no cover
    redis = None  # type: ignore

try:
    from pymemcache.client.base import Client as MemcacheClient
except ImportError:  # pragma: no cover
    MemcacheClient = None  # type: ignore

from ._exceptions import ResolveError
from ._files import FileManager
from ._models import MetaRecord
from ._packing import pack, unpack
from ._synchronization import Lock
from ._utils import ensure_cache_dir, hexdigest

if tp.TYPE_CHECKING:  # pragma: no cover
    from ._resolver import StorageURI

logger = logging.getLogger("metacache.storages")

__all__ = (
    "PurgeResult",
    "BaseStorage",
    "InMemoryStorage",
    "FileStorage",
    "MemcachedStorage",
    "RedisStorage",
    "S3Storage",
)

NEVER_EXPIRE = 0

TStorage = tp.TypeVar("TStorage", bound="BaseStorage")


class PurgeResult(enum.Enum):
    PURGED = "purged"
    UNSUPPORTED = "unsupported"
    FAILED = "failed"


class BaseStorage:
    """
    Persists meta records, the lists of variant entries stored under a cache key.

    Storages are deliberately dumb: they must not filter, merge or reorder
    the entries they are given. Reading a key that was never written
    returns an empty list, never an error.
    """

    def read(self, key: str) -> MetaRecord:
        raise NotImplementedError()

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        raise NotImplementedError()

    def purge(self, key: str) -> PurgeResult:
        """
        Removes everything stored under the key.

        Missing keys are not an error. Storages that cannot delete keep this
        default and report `PurgeResult.UNSUPPORTED`.
        """
        return PurgeResult.UNSUPPORTED

    @classmethod
    def from_uri(cls: tp.Type[TStorage], uri: "StorageURI") -> TStorage:
        raise NotImplementedError()


class InMemoryStorage(BaseStorage):
    """
    A simple in-memory storage.

    Records are kept packed, exactly as the remote storages would see them.

    :param data: The mapping used to hold packed records, defaults to a new dictionary
    :type data: tp.Optional[tp.MutableMapping[str, bytes]], optional
    """

    def __init__(self, data: tp.Optional[tp.MutableMapping[str, bytes]] = None) -> None:
        self._data: tp.MutableMapping[str, bytes] = {} if data is None else data
        self._lock = Lock()

    def read(self, key: str) -> MetaRecord:
        with self._lock:
            packed = self._data.get(key)
        return unpack(packed)

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        packed = pack(entries)
        with self._lock:
            self._data[key] = packed

    def purge(self, key: str) -> PurgeResult:
        with self._lock:
            self._data.pop(key, None)
        return PurgeResult.PURGED

    def to_dict(self) -> tp.MutableMapping[str, bytes]:
        return self._data

    @classmethod
    def from_uri(cls, uri: "StorageURI") -> "InMemoryStorage":
        return cls()


class FileStorage(BaseStorage):
    """
    A simple file storage.

    Every record lives in its own file named after the SHA-1 digest of the
    cache key, spread over sub directories named after the first two digest
    characters. Concurrent writers of the same key race, the last one wins.

    :param base_path: A storage base path where the records should be saved, defaults to None
    :type base_path: tp.Optional[tp.Union[str, Path]], optional
    :param spread: How many leading digest characters name the sub directory, defaults to 2
    :type spread: int
    """

    def __init__(self, base_path: tp.Optional[tp.Union[str, Path]] = None, spread: int = 2) -> None:
        self._base_path = ensure_cache_dir(Path(base_path).expanduser() if base_path is not None else None)
        self._file_manager = FileManager(self._base_path, spread=spread)

    @property
    def base_path(self) -> Path:
        return self._base_path

    def read(self, key: str) -> MetaRecord:
        path = self._file_manager.path_for(key)
        try:
            return unpack(self._file_manager.read_from(path))
        except FileNotFoundError:
            return []

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        path = self._file_manager.path_for(key)
        data = pack(entries)
        try:
            self._file_manager.write_to(path, data)
        except FileNotFoundError:
            logger.debug(f"Creating the missing directory {path.parent} and retrying the write.")
            path.parent.mkdir(mode=0o755, exist_ok=True)
            self._file_manager.write_to(path, data)

    def purge(self, key: str) -> PurgeResult:
        self._file_manager.path_for(key).unlink(missing_ok=True)
        return PurgeResult.PURGED

    @classmethod
    def from_uri(cls, uri: "StorageURI") -> "FileStorage":
        path = (uri.host or "") + uri.path
        options = dict(uri.options)
        spread = options.pop("spread", 2)
        if options:
            raise ResolveError(f"Unknown file storage options: {', '.join(sorted(options))}.")
        return cls(base_path=path or None, spread=spread)


class MemcachedStorage(BaseStorage):
    """
    A memcached storage.

    Memcached limits keys to 250 bytes, so the SHA-1 digest of the cache key
    is used instead of the key itself. Records are written without an
    expiration time unless a TTL is supplied.

    :param client: A pymemcache client, defaults to None
    :type client: tp.Optional[tp.Any], optional
    :param server: The `host:port` of the memcached daemon, used when no client is given
    :type server: str
    :param namespace: Prefix applied to every key, defaults to None
    :type namespace: tp.Optional[str], optional
    """

    def __init__(
        self,
        client: tp.Optional[tp.Any] = None,
        server: str = "localhost:11211",
        namespace: tp.Optional[str] = None,
        **options: tp.Any,
    ) -> None:
        self._namespace = namespace
        if client is not None:
            self._client = client
            return

        if MemcacheClient is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `metacache` installed with the `memcached` extension as shown.\n"
                "```pip install metacache[memcached]```"
            )
        self._client = MemcacheClient(server, **options)

    def _key(self, key: str) -> str:
        digest = hexdigest(key)
        return f"{self._namespace}:{digest}" if self._namespace else digest

    def read(self, key: str) -> MetaRecord:
        return unpack(self._client.get(self._key(key)))

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        self._client.set(self._key(key), pack(entries), expire=ttl or NEVER_EXPIRE, noreply=False)

    def purge(self, key: str) -> PurgeResult:
        # False only means the key was already gone
        self._client.delete(self._key(key), noreply=False)
        return PurgeResult.PURGED

    @classmethod
    def from_uri(cls, uri: "StorageURI") -> "MemcachedStorage":
        server = f"{uri.host or 'localhost'}:{uri.port or 11211}"
        return cls(server=server, namespace=uri.path.lstrip("/") or None, **uri.options)


class RedisStorage(BaseStorage):
    """
    A simple redis storage.

    Works like the memcached storage: keys are SHA-1 digests, optionally
    scoped by a namespace, and a supplied TTL becomes the redis expiry.

    :param client: A client for redis, defaults to None
    :type client: tp.Optional["redis.Redis"], optional
    :param namespace: Prefix applied to every key, defaults to None
    :type namespace: tp.Optional[str], optional
    """

    def __init__(
        self,
        client: tp.Optional[redis.Redis] = None,  # type: ignore
        namespace: tp.Optional[str] = None,
    ) -> None:
        if client is None:
            if redis is None:  # pragma: no cover
                raise RuntimeError(
                    f"The `{type(self).__name__}` was used, but the required packages were not found. "
                    "Check that you have `metacache` installed with the `redis` extension as shown.\n"
                    "```pip install metacache[redis]```"
                )
            self._client = redis.Redis()  # type: ignore
        else:
            self._client = client
        self._namespace = namespace

    def _key(self, key: str) -> str:
        digest = hexdigest(key)
        return f"{self._namespace}:{digest}" if self._namespace else digest

    def read(self, key: str) -> MetaRecord:
        return unpack(self._client.get(self._key(key)))

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        self._client.set(self._key(key), pack(entries), ex=ttl or None)

    def purge(self, key: str) -> PurgeResult:
        self._client.delete(self._key(key))
        return PurgeResult.PURGED

    @classmethod
    def from_uri(cls, uri: "StorageURI") -> "RedisStorage":
        if redis is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{cls.__name__}` was used, but the required packages were not found. "
                "Check that you have `metacache` installed with the `redis` extension as shown.\n"
                "```pip install metacache[redis]```"
            )
        client = redis.Redis(host=uri.host or "localhost", port=uri.port or 6379, **uri.options)
        return cls(client=client, namespace=uri.path.lstrip("/") or None)


class S3Storage(BaseStorage):
    """
    AWS S3 storage.

    Objects are named after the SHA-1 digest of the cache key, below a
    `metacache/<namespace>/` prefix. S3 has no per-object expiry, so TTLs
    are ignored; use bucket lifecycle rules for cleanup.

    :param bucket_name: The name of the bucket to store the records in
    :type bucket_name: str
    :param namespace: Scopes all objects of this storage, defaults to None
    :type namespace: tp.Optional[str], optional
    :param client: A client for S3, defaults to None
    :type client: tp.Optional[tp.Any], optional
    """

    def __init__(
        self,
        bucket_name: str,
        namespace: tp.Optional[str] = None,
        client: tp.Optional[tp.Any] = None,
    ) -> None:
        if boto3 is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{type(self).__name__}` was used, but the required packages were not found. "
                "Check that you have `metacache` installed with the `s3` extension as shown.\n"
                "```pip install metacache[s3]```"
            )

        self._bucket_name = bucket_name
        self._s3_manager = S3Manager(
            client=client or boto3.client("s3"),
            bucket_name=bucket_name,
            namespace=namespace,
        )

    def read(self, key: str) -> MetaRecord:
        return unpack(self._s3_manager.read_from(hexdigest(key)))

    def write(self, key: str, entries: MetaRecord, ttl: tp.Optional[int] = None) -> None:
        self._s3_manager.write_to(hexdigest(key), pack(entries))

    def purge(self, key: str) -> PurgeResult:
        self._s3_manager.remove_entry(hexdigest(key))
        return PurgeResult.PURGED

    @classmethod
    def from_uri(cls, uri: "StorageURI") -> "S3Storage":
        if not uri.host:
            raise ResolveError("The S3 storage needs a bucket name, e.g. `s3://bucket/namespace`.")
        if boto3 is None:  # pragma: no cover
            raise RuntimeError(
                f"The `{cls.__name__}` was used, but the required packages were not found. "
                "Check that you have `metacache` installed with the `s3` extension as shown.\n"
                "```pip install metacache[s3]```"
            )
        client = boto3.client("s3", **uri.options)
        return cls(bucket_name=uri.host, namespace=uri.path.strip("/") or None, client=client)
