import typing as tp

from botocore.exceptions import ClientError

MISSING_OBJECT_CODES = ("NoSuchKey", "404")


class S3Manager:
    def __init__(self, client: tp.Any, bucket_name: str, namespace: tp.Optional[str] = None):
        self._client = client
        self._bucket_name = bucket_name
        self._prefix = f"metacache/{namespace}/" if namespace else "metacache/"

    def object_key(self, key: str) -> str:
        return self._prefix + key

    def write_to(self, key: str, data: bytes) -> None:
        self._client.put_object(
            Bucket=self._bucket_name,
            Key=self.object_key(key),
            Body=data,
        )

    def read_from(self, key: str) -> tp.Optional[bytes]:
        try:
            response = self._client.get_object(
                Bucket=self._bucket_name,
                Key=self.object_key(key),
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in MISSING_OBJECT_CODES:
                return None
            raise e

        return tp.cast(bytes, response["Body"].read())

    def remove_entry(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket_name, Key=self.object_key(key))
        except ClientError as e:
            if e.response["Error"]["Code"] in MISSING_OBJECT_CODES:
                return
            raise e
