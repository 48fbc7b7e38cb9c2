"""
Object storage for user uploads (avatars, id cards, licenses, package images).

Tencent COS is reached through boto3's S3 client; buckets are mapped to key
prefixes inside the single configured COS bucket. The Supabase storage
client lives in ``tripmarket.rest``.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Optional, Protocol

import boto3
from botocore.config import Config

from shared import constants
from shared.utils import file_extension, random_suffix
from shared.validation import check_upload, is_valid_uuid
from tripmarket.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Defines the operations the API needs from object storage."""

    def upload_bytes(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        """Stores the object and returns its public URL."""
        ...

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        ...

    def delete(self, bucket: str, path: str) -> None:
        ...


@dataclass
class InMemoryStorageClient:
    """Test double for storage interactions."""

    base_url: str = "https://example.test/storage"
    stored_objects: dict = field(default_factory=dict)

    def upload_bytes(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        self.stored_objects[(bucket, path)] = (bytes(data), content_type)
        return f"{self.base_url}/{bucket}/{path}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        if (bucket, path) not in self.stored_objects:
            raise NotFoundError(f"Object {bucket}/{path} not found")
        return f"{self.base_url}/{bucket}/{path}?op=get&expires={expires_in}"

    def delete(self, bucket: str, path: str) -> None:
        self.stored_objects.pop((bucket, path), None)

    def get_bytes(self, bucket: str, path: str) -> bytes:
        stored = self.stored_objects.get((bucket, path))
        if stored is None:
            raise NotFoundError(f"Object {bucket}/{path} not found")
        return stored[0]


@dataclass
class CosStorageClient:
    """
    S3-compatible storage client for Tencent COS.
    """

    bucket: str
    region: str
    endpoint: str
    access_key_id: str
    secret_access_key: str
    public_base_url: Optional[str] = None

    def __post_init__(self):
        # Use virtual-hosted style addressing to satisfy COS requirements.
        config = Config(
            s3={"addressing_style": "virtual"},
            signature_version="s3v4",
        )
        self._client = boto3.client(
            "s3",
            endpoint_url=self.endpoint,
            region_name=self.region,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
            config=config,
        )

    @staticmethod
    def _key(bucket: str, path: str) -> str:
        return f"{bucket}/{path.lstrip('/')}"

    def upload_bytes(self, bucket: str, path: str, data: bytes, content_type: str) -> str:
        key = self._key(bucket, path)
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
        )
        base = self.public_base_url or f"{self.endpoint.rstrip('/')}/{self.bucket}"
        return f"{base.rstrip('/')}/{key}"

    def presign_get(self, bucket: str, path: str, expires_in: int = 3600) -> str:
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": self._key(bucket, path)},
            ExpiresIn=expires_in,
        )

    def delete(self, bucket: str, path: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=self._key(bucket, path))


def _timestamp_ms() -> int:
    return int(time.time() * 1000)


def avatar_path(user_id: str, filename: str) -> str:
    return f"{user_id}/{_timestamp_ms()}_{random_suffix()}.{file_extension(filename)}"


def id_card_path(user_id: str, order_id: str, filename: str) -> str:
    return f"{user_id}/{order_id}/{_timestamp_ms()}.{file_extension(filename)}"


def license_path(user_id: str, filename: str) -> str:
    return f"{user_id}/{_timestamp_ms()}.{file_extension(filename)}"


def package_image_path(user_id: str, filename: str) -> str:
    return f"{user_id}/cover_{random_suffix()}.{file_extension(filename)}"


UPLOAD_KINDS = {
    "avatar": constants.AVATARS_BUCKET,
    "id_card": constants.ID_CARDS_BUCKET,
    "license": constants.LICENSES_BUCKET,
    "package_image": constants.PACKAGE_IMAGES_BUCKET,
}

# Buckets whose objects are only reachable through signed URLs.
PRIVATE_BUCKETS = {constants.ID_CARDS_BUCKET, constants.LICENSES_BUCKET}


def build_path(kind: str, user_id: str, filename: str, order_id: Optional[str] = None) -> str:
    if kind == "avatar":
        return avatar_path(user_id, filename)
    if kind == "id_card":
        if not order_id:
            raise ValidationError("order_id is required for id card uploads")
        if not is_valid_uuid(order_id):
            raise ValidationError("order_id must be a UUID")
        return id_card_path(user_id, order_id, filename)
    if kind == "license":
        return license_path(user_id, filename)
    if kind == "package_image":
        return package_image_path(user_id, filename)
    raise ValidationError(f"Unknown upload kind {kind}")


def upload(
    storage: StorageClient,
    *,
    kind: str,
    user_id: str,
    filename: str,
    data: bytes,
    content_type: str,
    order_id: Optional[str] = None,
    allowed_types=constants.DEFAULT_ALLOWED_IMAGE_TYPES,
    max_size_mb: float = constants.DEFAULT_MAX_UPLOAD_MB,
) -> dict:
    """Validates and stores an upload. Returns bucket, path and url."""
    problem = check_upload(content_type, len(data), allowed_types, max_size_mb)
    if problem:
        raise ValidationError(problem)
    bucket = UPLOAD_KINDS.get(kind)
    if bucket is None:
        raise ValidationError(f"Unknown upload kind {kind}")
    path = build_path(kind, user_id, filename, order_id)
    url = storage.upload_bytes(bucket, path, data, content_type)
    logger.info("Stored %s upload at %s/%s", kind, bucket, path)
    return {"bucket": bucket, "path": path, "url": url}


def is_safe_path(path: str) -> bool:
    """Relative object key with no empty, `.` or `..` segments."""
    if not path or path.startswith("/") or "\\" in path:
        return False
    return all(segment not in ("", ".", "..") for segment in path.split("/"))


def owns_path(user_id: str, path: str) -> bool:
    return is_safe_path(path) and path.split("/", 1)[0] == user_id
