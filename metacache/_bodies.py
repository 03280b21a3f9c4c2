from __future__ import annotations

import hashlib
import typing as tp

from metacache._synchronization import Lock

__all__ = ("BaseBodyStore", "InMemoryBodyStore", "NoopBodyStore")


def _close(stream: tp.Iterable[bytes]) -> None:
    close = getattr(stream, "close", None)
    if close is not None:
        close()


class BaseBodyStore:
    """
    Content addressable storage for response bodies.

    The meta store only ever references bodies by their digest; it never
    deletes them.
    """

    def open(self, digest: str) -> tp.Optional[tp.Iterable[bytes]]:
        raise NotImplementedError()

    def write(self, stream: tp.Iterable[bytes], ttl: tp.Optional[float] = None) -> tp.Tuple[str, int]:
        raise NotImplementedError()


class InMemoryBodyStore(BaseBodyStore):
    """
    Keeps bodies in a dictionary keyed by their SHA-1 digest.

    :param data: The mapping used to hold the bodies, defaults to a new dictionary
    :type data: tp.Optional[tp.MutableMapping[str, bytes]], optional
    """

    def __init__(self, data: tp.Optional[tp.MutableMapping[str, bytes]] = None) -> None:
        self._data: tp.MutableMapping[str, bytes] = {} if data is None else data
        self._lock = Lock()

    def open(self, digest: str) -> tp.Optional[tp.Iterable[bytes]]:
        with self._lock:
            content = self._data.get(digest)
        if content is None:
            return None
        return [content]

    def write(self, stream: tp.Iterable[bytes], ttl: tp.Optional[float] = None) -> tp.Tuple[str, int]:
        sha = hashlib.sha1()
        chunks = []
        for chunk in stream:
            sha.update(chunk)
            chunks.append(chunk)
        _close(stream)

        content = b"".join(chunks)
        digest = sha.hexdigest()
        with self._lock:
            self._data[digest] = content
        return digest, len(content)

    def purge(self, digest: str) -> None:
        with self._lock:
            self._data.pop(digest, None)


class NoopBodyStore(BaseBodyStore):
    """
    Computes digests without keeping anything.

    Opening any digest yields an empty body.
    """

    def open(self, digest: str) -> tp.Optional[tp.Iterable[bytes]]:
        return []

    def write(self, stream: tp.Iterable[bytes], ttl: tp.Optional[float] = None) -> tp.Tuple[str, int]:
        sha = hashlib.sha1()
        size = 0
        for chunk in stream:
            sha.update(chunk)
            size += len(chunk)
        _close(stream)
        return sha.hexdigest(), size
