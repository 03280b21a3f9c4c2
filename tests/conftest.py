import io
import os
import typing as tp

import pytest
from botocore.exceptions import ClientError


class FakeRedis:
    def __init__(self) -> None:
        self.data: tp.Dict[str, bytes] = {}
        self.expiry: tp.Dict[str, tp.Optional[int]] = {}

    def get(self, key: str) -> tp.Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes, ex: tp.Optional[int] = None) -> bool:
        self.data[key] = value
        self.expiry[key] = ex
        return True

    def delete(self, *keys: str) -> int:
        return sum(self.data.pop(key, None) is not None for key in keys)


class FakeMemcache:
    def __init__(self) -> None:
        self.data: tp.Dict[str, bytes] = {}
        self.expiry: tp.Dict[str, int] = {}

    def get(self, key: str) -> tp.Optional[bytes]:
        return self.data.get(key)

    def set(self, key: str, value: bytes, expire: int = 0, noreply: tp.Optional[bool] = None) -> bool:
        assert len(key) <= 250
        self.data[key] = value
        self.expiry[key] = expire
        return True

    def delete(self, key: str, noreply: tp.Optional[bool] = None) -> bool:
        return self.data.pop(key, None) is not None


class FakeS3:
    def __init__(self) -> None:
        self.objects: tp.Dict[tp.Tuple[str, str], bytes] = {}

    def put_object(self, Bucket: str, Key: str, Body: bytes) -> tp.Dict[str, tp.Any]:
        self.objects[(Bucket, Key)] = Body
        return {}

    def get_object(self, Bucket: str, Key: str) -> tp.Dict[str, tp.Any]:
        try:
            return {"Body": io.BytesIO(self.objects[(Bucket, Key)])}
        except KeyError:
            raise ClientError(
                {"Error": {"Code": "NoSuchKey", "Message": "The specified key does not exist."}},
                "GetObject",
            ) from None

    def delete_object(self, Bucket: str, Key: str) -> tp.Dict[str, tp.Any]:
        self.objects.pop((Bucket, Key), None)
        return {}


@pytest.fixture()
def use_temp_dir(tmpdir):
    cur_dir = os.getcwd()
    os.chdir(tmpdir)
    yield
    os.chdir(cur_dir)


@pytest.fixture()
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture()
def fake_memcache() -> FakeMemcache:
    return FakeMemcache()


@pytest.fixture()
def fake_s3() -> FakeS3:
    return FakeS3()
