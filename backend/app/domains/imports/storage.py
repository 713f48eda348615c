"""
File storage backends for uploaded documents.

Uploads are stored under keys of the form {category}/{pet_id}/{random}{ext};
the key is what gets persisted on the Upload row.
"""
import logging
import os
import uuid
from functools import lru_cache
from pathlib import Path
from typing import Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.core.exceptions import StorageError

logger = logging.getLogger(__name__)

MIME_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
}


def build_storage_key(category: str, pet_id: int, original_filename: str, mime_type: str) -> str:
    """Generate a unique key namespaced by upload category and pet."""
    ext = os.path.splitext(original_filename or "")[1].lower()
    if not ext or len(ext) > 10:
        ext = MIME_EXTENSIONS.get(mime_type, "")
    return f"{category}/{pet_id}/{uuid.uuid4().hex}{ext}"


class StorageBackend(Protocol):
    def save(self, data: bytes, key: str, content_type: str) -> str: ...

    def load(self, key: str) -> bytes: ...

    def delete(self, key: str) -> None: ...


class LocalStorage:
    """Stores files on local disk under a base directory."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).resolve()

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if self.base_dir not in path.parents:
            raise StorageError(f"Invalid storage key: {key}")
        return path

    def save(self, data: bytes, key: str, content_type: str) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            logger.error(f"Failed to write {key} to local storage: {e}")
            raise StorageError(f"Failed to store file: {e}") from e
        logger.info(f"Stored {len(data)} bytes at {key}")
        return key

    def load(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except OSError as e:
            logger.error(f"Failed to read {key} from local storage: {e}")
            raise StorageError(f"Failed to read stored file: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error(f"Failed to delete {key} from local storage: {e}")
            raise StorageError(f"Failed to delete stored file: {e}") from e


class S3Storage:
    """Stores files in an S3 bucket."""

    def __init__(self, bucket: str, s3_client=None):
        self.bucket = bucket
        self.s3_client = s3_client or boto3.client(
            "s3",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )

    def save(self, data: bytes, key: str, content_type: str) -> str:
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload {key} to S3: {e}")
            raise StorageError(f"Failed to store file: {e}") from e
        logger.info(f"Uploaded {len(data)} bytes to s3://{self.bucket}/{key}")
        return key

    def load(self, key: str) -> bytes:
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to download {key} from S3: {e}")
            raise StorageError(f"Failed to read stored file: {e}") from e

    def delete(self, key: str) -> None:
        try:
            self.s3_client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to delete {key} from S3: {e}")
            raise StorageError(f"Failed to delete stored file: {e}") from e


@lru_cache
def get_storage() -> StorageBackend:
    """Storage backend selected by STORAGE_PROVIDER, built once per process."""
    if settings.STORAGE_PROVIDER == "s3":
        if not settings.S3_BUCKET:
            raise StorageError("S3_BUCKET must be set when STORAGE_PROVIDER is 's3'")
        return S3Storage(settings.S3_BUCKET)
    return LocalStorage(settings.UPLOAD_BASE_DIR)
