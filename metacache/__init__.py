from metacache._bodies import (
    BaseBodyStore as BaseBodyStore,
    InMemoryBodyStore as InMemoryBodyStore,
    NoopBodyStore as NoopBodyStore,
)
from metacache._exceptions import (
    MetaCacheError as MetaCacheError,
    ResolveError as ResolveError,
    ValidationError as ValidationError,
)
from metacache._headers import Headers as Headers, requests_match as requests_match
from metacache._metastore import MetaStore as MetaStore
from metacache._models import (
    MetaRecord as MetaRecord,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    VariantEntry as VariantEntry,
)
from metacache._resolver import (
    StorageURI as StorageURI,
    register_storage as register_storage,
    resolve_storage as resolve_storage,
)
from metacache._storages import (
    BaseStorage as BaseStorage,
    FileStorage as FileStorage,
    InMemoryStorage as InMemoryStorage,
    MemcachedStorage as MemcachedStorage,
    PurgeResult as PurgeResult,
    RedisStorage as RedisStorage,
    S3Storage as S3Storage,
)
from metacache._utils import generate_key as generate_key

__all__ = (
    # Meta store
    "MetaStore",
    ## Models
    "Request",
    "RequestMetadata",
    "Response",
    "Headers",
    "VariantEntry",
    "MetaRecord",
    ## Matching
    "requests_match",
    "generate_key",
    # Storages
    "BaseStorage",
    "InMemoryStorage",
    "FileStorage",
    "MemcachedStorage",
    "RedisStorage",
    "S3Storage",
    "PurgeResult",
    ## Resolver
    "StorageURI",
    "register_storage",
    "resolve_storage",
    # Body stores
    "BaseBodyStore",
    "InMemoryBodyStore",
    "NoopBodyStore",
    # Exceptions
    "MetaCacheError",
    "ResolveError",
    "ValidationError",
)
