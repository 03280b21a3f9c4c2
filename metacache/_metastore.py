from __future__ import annotations

import logging
import typing as tp

from ._bodies import BaseBodyStore, NoopBodyStore
from ._exceptions import ValidationError
from ._headers import Headers, requests_match
from ._models import MetaRecord, Request, Response, VariantEntry
from ._resolver import StorageURI, resolve_storage
from ._storages import BaseStorage, PurgeResult
from ._synchronization import OnceFlags
from ._utils import filter_mapping, generate_key

logger = logging.getLogger("metacache.metastore")

__all__ = ("MetaStore",)

STATUS_FIELD = "x-status"
DIGEST_FIELD = "x-content-digest"

_warnings = OnceFlags()


def restore_response(headers: tp.Mapping[str, str], stream: tp.Optional[tp.Iterable[bytes]] = None) -> Response:
    """
    Converts stored response headers back into a response.

    The caller is responsible for passing the body when it is needed.
    """
    headers = dict(headers)
    status = int(headers.pop(STATUS_FIELD, "200"))
    return Response(status_code=status, headers=Headers(headers), stream=[] if stream is None else stream)


def persist_response(response: Response) -> tp.Dict[str, str]:
    headers = dict(response.headers)
    for name, value in headers.items():
        if not isinstance(value, str):
            raise ValidationError(
                f"The `{name}` response header holds a {type(value).__name__}, only strings can be stored."
            )
    headers.pop(STATUS_FIELD, None)
    headers[STATUS_FIELD] = str(response.status_code)
    return headers


class MetaStore:
    """
    Keeps track of which stored responses may answer which requests.

    Every cache key maps to a list of variant entries, each one a pair of the
    request headers seen when the response was stored and the response
    headers themselves. Bodies live in a separate body store and are only
    referenced through the `x-content-digest` header.

    The meta store does no locking of its own. Two writers storing under the
    same key at once race on the read-modify-write of the entry list and the
    last write wins.

    Args:
        storage: Where meta records are persisted.
        key_generator: Turns a request into its cache key, defaults to the
            request method followed by its normalized URL.
        use_native_ttl: Pass the time-to-live of fresh responses down to the
            storage and body store so they can expire on their own.
    """

    def __init__(
        self,
        storage: BaseStorage,
        key_generator: tp.Optional[tp.Callable[[Request], str]] = None,
        use_native_ttl: bool = False,
    ) -> None:
        self._storage = storage
        self._key_generator = key_generator or generate_key
        self._use_native_ttl = use_native_ttl

    @classmethod
    def from_uri(cls, uri: tp.Union[str, StorageURI, BaseStorage], **kwargs: tp.Any) -> "MetaStore":
        return cls(resolve_storage(uri), **kwargs)

    @property
    def storage(self) -> BaseStorage:
        return self._storage

    def cache_key(self, request: Request) -> str:
        key_generator = request.metadata.get("metacache_key_generator") or self._key_generator
        return tp.cast(str, key_generator(request))

    def lookup(self, request: Request, body_store: BaseBodyStore) -> tp.Optional[Response]:
        """
        Finds a stored response that may answer the request.

        Returns `None` on a miss. When the matching entry references a body
        that the body store no longer has, the whole record for the key is
        purged so later lookups don't trip over it again.
        """
        key = self.cache_key(request)
        entries = self._storage.read(key)

        if not entries:
            logger.debug(f"Nothing is stored under the `{key}` key.")
            return None

        request_headers = request.protocol_headers()
        match = next(
            (
                (stored_request, stored_response)
                for stored_request, stored_response in entries
                if requests_match(stored_response.get("vary"), stored_request, request_headers)
            ),
            None,
        )
        if match is None:
            logger.debug(f"None of the {len(entries)} variants stored under the `{key}` key match the request.")
            return None

        _, stored_response = match
        body = body_store.open(stored_response.get(DIGEST_FIELD, ""))
        if body is not None:
            logger.debug(f"Found a stored response for the `{key}` key.")
            return restore_response(stored_response, body)

        logger.debug(f"The body referenced under the `{key}` key is gone, purging its meta record.")
        self._purge_dangling(key)
        return None

    def store(
        self,
        request: Request,
        response: Response,
        body_store: BaseBodyStore,
        non_cached_headers: tp.Iterable[str] = (),
    ) -> str:
        """
        Stores the response as a variant of the request's cache key.

        The response is updated in place and the caller should keep using it:
        for an original response (one without an `x-content-digest` header)
        the body is written to the body store, the digest and
        `content-length` headers are attached and `response.stream` is
        replaced by the body re-opened from the body store, since the
        original stream has been consumed by the write. A response without
        a `date` header is dated with the current time.

        Existing entries of the same variant, meaning the same `vary` value
        and matching request headers, are replaced. The new entry goes first.

        Returns:
            The cache key the entry was stored under.
        """
        key = self.cache_key(request)
        stored_request = request.protocol_headers()
        # an undated response gets dated now, so its age grows once stored
        response.date
        ttl = self._native_ttl(request, response)

        if DIGEST_FIELD not in response.headers:
            digest, size = body_store.write(response.stream, ttl) if ttl else body_store.write(response.stream)
            response.headers[DIGEST_FIELD] = digest
            if "transfer-encoding" not in response.headers:
                response.headers["content-length"] = str(size)

            if not isinstance(body_store, NoopBodyStore):
                reopened = body_store.open(digest)
                if reopened is not None:
                    response.stream = reopened

        vary = response.vary
        entries = [
            (stored_env, stored_headers)
            for stored_env, stored_headers in self._storage.read(key)
            if not (vary == stored_headers.get("vary") and requests_match(vary, stored_env, stored_request))
        ]

        headers = persist_response(response)
        headers.pop("age", None)
        headers = filter_mapping(headers, non_cached_headers)

        entries.insert(0, (stored_request, headers))
        if ttl:
            self._storage.write(key, entries, ttl)
        else:
            self._storage.write(key, entries)
        logger.debug(f"Stored a variant under the `{key}` key, {len(entries)} variants in total.")
        return key

    def invalidate(self, request: Request, body_store: BaseBodyStore) -> None:
        """
        Marks every fresh response stored for the request as stale.

        Nothing is written back when no entry was fresh.
        """
        key = self.cache_key(request)
        modified = False
        entries: MetaRecord = []

        for stored_request, stored_response in self._storage.read(key):
            response = restore_response(stored_response)
            entry: VariantEntry = (stored_request, stored_response)
            if response.is_fresh():
                response.expire()
                modified = True
                entry = (stored_request, persist_response(response))
            entries.append(entry)

        if modified:
            logger.debug(f"Invalidated the fresh variants stored under the `{key}` key.")
            self._storage.write(key, entries)

    def _native_ttl(self, request: Request, response: Response) -> tp.Optional[int]:
        use_native_ttl = request.metadata.get("metacache_use_native_ttl", self._use_native_ttl)
        if use_native_ttl and response.is_fresh():
            return response.ttl
        return None

    def _purge_dangling(self, key: str) -> None:
        result = self._storage.purge(key)

        if result is PurgeResult.UNSUPPORTED:
            storage_class = type(self._storage)
            if _warnings.first_time(("purge", storage_class)):
                logger.warning(
                    f"The `{storage_class.__name__}` storage does not support purging, "
                    "meta records that reference missing bodies will be kept."
                )
        elif result is PurgeResult.FAILED:
            logger.warning(f"Could not purge the meta record stored under the `{key}` key.")
