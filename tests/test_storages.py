import pytest
from botocore.exceptions import ClientError

from metacache import (
    BaseStorage,
    FileStorage,
    InMemoryStorage,
    MemcachedStorage,
    PurgeResult,
    RedisStorage,
    S3Storage,
)
from metacache._utils import hexdigest

ENTRIES = [
    (
        {"HTTP_ACCEPT_ENCODING": "gzip"},
        {"content-type": "text/html", "vary": "accept-encoding", "x-content-digest": "abc", "x-status": "200"},
    ),
    (
        {"HTTP_ACCEPT_ENCODING": "identity", "HTTP_USER_AGENT": "curl/8.0"},
        {"content-type": "text/plain", "x-content-digest": "def", "x-status": "404"},
    ),
]


@pytest.fixture(params=["memory", "file", "memcached", "redis", "s3"])
def storage(request, tmp_path, fake_memcache, fake_redis, fake_s3) -> BaseStorage:
    if request.param == "memory":
        return InMemoryStorage()
    if request.param == "file":
        return FileStorage(base_path=tmp_path / "meta")
    if request.param == "memcached":
        return MemcachedStorage(client=fake_memcache)
    if request.param == "redis":
        return RedisStorage(client=fake_redis)
    return S3Storage(bucket_name="cache", client=fake_s3)


def test_read_missing_key(storage):
    assert storage.read("GET https://example.com/") == []


def test_write_then_read(storage):
    storage.write("GET https://example.com/", ENTRIES)

    assert storage.read("GET https://example.com/") == ENTRIES


def test_write_empty_record(storage):
    storage.write("GET https://example.com/", ENTRIES)
    storage.write("GET https://example.com/", [])

    assert storage.read("GET https://example.com/") == []


def test_write_keeps_field_order(storage):
    storage.write("GET https://example.com/", ENTRIES)

    _, response_headers = storage.read("GET https://example.com/")[0]
    assert list(response_headers)[-1] == "x-status"


def test_purge_existing_key(storage):
    storage.write("GET https://example.com/", ENTRIES)

    assert storage.purge("GET https://example.com/") is PurgeResult.PURGED
    assert storage.read("GET https://example.com/") == []


def test_purge_missing_key(storage):
    assert storage.purge("GET https://example.com/never") is PurgeResult.PURGED
    assert storage.read("GET https://example.com/never") == []


def test_keys_are_independent(storage):
    storage.write("GET https://example.com/a", ENTRIES[:1])
    storage.write("GET https://example.com/b", ENTRIES[1:])
    storage.purge("GET https://example.com/a")

    assert storage.read("GET https://example.com/a") == []
    assert storage.read("GET https://example.com/b") == ENTRIES[1:]


def test_base_storage_purge_is_unsupported():
    assert BaseStorage().purge("key") is PurgeResult.UNSUPPORTED


def test_inmemory_storage_uses_supplied_mapping():
    data = {}
    storage = InMemoryStorage(data)

    storage.write("GET https://example.com/", ENTRIES)

    assert list(data) == ["GET https://example.com/"]
    assert isinstance(data["GET https://example.com/"], bytes)
    assert storage.to_dict() is data


def test_filestorage_spreads_keys(tmp_path):
    storage = FileStorage(base_path=tmp_path)
    digest = hexdigest("GET https://example.com/")

    storage.write("GET https://example.com/", ENTRIES)

    assert (tmp_path / digest[:2] / digest[2:]).is_file()
    assert (tmp_path / ".gitignore").is_file()


def test_filestorage_default_path(use_temp_dir):
    storage = FileStorage()

    storage.write("GET https://example.com/", ENTRIES)

    assert storage.base_path.as_posix() == ".cache/metacache/meta"
    assert storage.read("GET https://example.com/") == ENTRIES


def test_filestorage_recreates_missing_directory(tmp_path):
    storage = FileStorage(base_path=tmp_path)
    digest = hexdigest("GET https://example.com/")
    storage.write("GET https://example.com/", ENTRIES)

    (tmp_path / digest[:2] / digest[2:]).unlink()
    (tmp_path / digest[:2]).rmdir()
    storage.write("GET https://example.com/", ENTRIES[:1])

    assert storage.read("GET https://example.com/") == ENTRIES[:1]


def test_filestorage_gives_up_after_one_retry(tmp_path):
    storage = FileStorage(base_path=tmp_path / "meta")
    (tmp_path / "meta" / ".gitignore").unlink()
    (tmp_path / "meta").rmdir()

    with pytest.raises(FileNotFoundError):
        storage.write("GET https://example.com/", ENTRIES)


def test_filestorage_custom_spread(tmp_path):
    storage = FileStorage(base_path=tmp_path, spread=4)
    digest = hexdigest("GET https://example.com/")

    storage.write("GET https://example.com/", ENTRIES)

    assert (tmp_path / digest[:4] / digest[4:]).is_file()


def test_memcached_hashes_keys(fake_memcache):
    storage = MemcachedStorage(client=fake_memcache)
    long_key = "GET https://example.com/" + "a" * 500

    storage.write(long_key, ENTRIES)

    assert list(fake_memcache.data) == [hexdigest(long_key)]
    assert storage.read(long_key) == ENTRIES


def test_memcached_never_expires_by_default(fake_memcache):
    storage = MemcachedStorage(client=fake_memcache)

    storage.write("a", ENTRIES)
    storage.write("b", ENTRIES, ttl=30)

    assert fake_memcache.expiry == {hexdigest("a"): 0, hexdigest("b"): 30}


def test_memcached_namespace_with_client(fake_memcache):
    storage = MemcachedStorage(client=fake_memcache, namespace="app")

    storage.write("a", ENTRIES)

    assert list(fake_memcache.data) == [f"app:{hexdigest('a')}"]
    assert storage.read("a") == ENTRIES
    assert storage.purge("a") is PurgeResult.PURGED
    assert fake_memcache.data == {}


def test_redis_ttl_and_namespace(fake_redis):
    storage = RedisStorage(client=fake_redis, namespace="app")

    storage.write("a", ENTRIES)
    storage.write("b", ENTRIES, ttl=30)

    assert fake_redis.expiry == {f"app:{hexdigest('a')}": None, f"app:{hexdigest('b')}": 30}


def test_s3_namespace(fake_s3):
    storage = S3Storage(bucket_name="cache", namespace="app", client=fake_s3)

    storage.write("a", ENTRIES)

    assert list(fake_s3.objects) == [("cache", f"metacache/app/{hexdigest('a')}")]


def test_s3_propagates_other_errors(fake_s3):
    def denied(**kwargs):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "Access Denied"}}, "GetObject")

    fake_s3.get_object = denied
    storage = S3Storage(bucket_name="cache", client=fake_s3)

    with pytest.raises(ClientError):
        storage.read("a")
