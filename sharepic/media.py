"""
Object storage for uploaded image bytes: S3-compatible and in-memory.
"""

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from sharepic.errors import StorageError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = "bin"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_EXTENSION_PATTERN = re.compile(r"^[a-z0-9]{1,10}$")


class MediaStore(Protocol):
    """Defines the operations the services need from object storage."""

    def ensure_container(self) -> None:
        ...

    def store(
        self, data: bytes, original_name: str | None, content_type: str | None
    ) -> str:
        ...

    def delete(self, locator: str) -> None:
        ...


def new_object_key(original_name: str | None) -> str:
    """Random key that keeps the upload's file extension."""
    ext = DEFAULT_EXTENSION
    if original_name and "." in original_name:
        candidate = original_name.rsplit(".", 1)[1].strip().lower()
        if _EXTENSION_PATTERN.match(candidate):
            ext = candidate
    return f"{uuid.uuid4()}.{ext}"


def _key_from_locator(locator: str) -> str:
    return locator.split("?", 1)[0].rstrip("/").rsplit("/", 1)[-1]


@dataclass
class StoredObject:
    data: bytes
    content_type: str


@dataclass
class InMemoryMediaStore:
    """Test double for object storage."""

    base_url: str = "https://example.test/media"
    objects: dict = field(default_factory=dict)
    container_ready: bool = False

    def ensure_container(self) -> None:
        self.container_ready = True

    def store(
        self, data: bytes, original_name: str | None, content_type: str | None
    ) -> str:
        self.ensure_container()
        key = new_object_key(original_name)
        self.objects[key] = StoredObject(
            data=bytes(data), content_type=content_type or DEFAULT_CONTENT_TYPE
        )
        return f"{self.base_url}/{key}"

    def delete(self, locator: str) -> None:
        self.objects.pop(_key_from_locator(locator), None)

    def get(self, locator: str) -> Optional[StoredObject]:
        return self.objects.get(_key_from_locator(locator))


@dataclass
class S3MediaStore:
    """
    S3-compatible storage client (AWS S3, MinIO, Tencent COS, ...).
    """

    bucket: str
    region: str | None = None
    endpoint: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    public_base_url: str | None = None
    public_read: bool = True
    timeout_seconds: float = 10.0

    def __post_init__(self):
        config = Config(
            signature_version="s3v4",
            connect_timeout=self.timeout_seconds,
            read_timeout=self.timeout_seconds,
            retries={"max_attempts": 1, "mode": "standard"},
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint or None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id or None,
            aws_secret_access_key=self.secret_access_key or None,
            config=config,
        )
        self._container_ready = False

    def ensure_container(self) -> None:
        if self._container_ready:
            return
        try:
            self._client.head_bucket(Bucket=self.bucket)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in ("404", "NoSuchBucket", "NotFound"):
                raise StorageError(
                    f"cannot access bucket {self.bucket}: {exc}"
                ) from exc
            self._create_bucket()
        except BotoCoreError as exc:
            raise StorageError(f"cannot access bucket {self.bucket}: {exc}") from exc
        self._container_ready = True

    def _create_bucket(self) -> None:
        params = {"Bucket": self.bucket}
        # us-east-1 rejects an explicit location constraint.
        if self.region and self.region != "us-east-1":
            params["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        try:
            self._client.create_bucket(**params)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise StorageError(
                    f"cannot create bucket {self.bucket}: {exc}"
                ) from exc
        except BotoCoreError as exc:
            raise StorageError(f"cannot create bucket {self.bucket}: {exc}") from exc
        logger.info("Created media bucket %s", self.bucket)

    def store(
        self, data: bytes, original_name: str | None, content_type: str | None
    ) -> str:
        self.ensure_container()
        key = new_object_key(original_name)
        params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type or DEFAULT_CONTENT_TYPE,
        }
        if self.public_read:
            params["ACL"] = "public-read"
        try:
            self._client.put_object(**params)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"upload of {key} failed: {exc}") from exc
        return self.locator_for(key)

    def delete(self, locator: str) -> None:
        key = _key_from_locator(locator)
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"delete of {key} failed: {exc}") from exc

    def locator_for(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url.rstrip('/')}/{key}"
        if self.endpoint:
            return f"{self.endpoint.rstrip('/')}/{self.bucket}/{key}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"
