"""
File storage abstraction. S3 OR local filesystem. Controlled by FF_USE_S3 flag.

The upload transport itself lives elsewhere; this module only copies files that
already exist into the secondary location used by advanced spreadsheet mode.
"""

import logging
import mimetypes
import shutil
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import httpx

from .config import get_settings
from .flags import get_flags
from ..models.document import DocumentStorageType

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    @abstractmethod
    async def copy_to_advanced_bucket(
        self, file_path: str, storage_type: DocumentStorageType, team_id: str
    ) -> str:
        """Copy a stored document file for advanced processing. Returns the new key/path."""
        ...


class S3Storage(StorageBackend):
    def __init__(self):
        self._client = None

    def _get_client(self):
        if self._client is None:
            import boto3

            settings = get_settings()
            kwargs = {"region_name": settings.aws_region}
            if settings.aws_access_key_id:
                kwargs["aws_access_key_id"] = settings.aws_access_key_id
                kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
            self._client = boto3.client("s3", **kwargs)
        return self._client

    async def copy_to_advanced_bucket(
        self, file_path: str, storage_type: DocumentStorageType, team_id: str
    ) -> str:
        settings = get_settings()
        client = self._get_client()
        key = _advanced_key(file_path, team_id)

        if storage_type == DocumentStorageType.S3_PATH:
            client.copy_object(
                Bucket=settings.s3_advanced_bucket_name,
                Key=key,
                CopySource={"Bucket": settings.s3_bucket_name, "Key": file_path},
            )
        else:
            body = await _download(file_path)
            client.put_object(
                Bucket=settings.s3_advanced_bucket_name,
                Key=key,
                Body=body,
                ContentType=_guess_content_type(key),
            )

        logger.info("Copied %s to s3://%s/%s", file_path, settings.s3_advanced_bucket_name, key)
        return key


class LocalStorage(StorageBackend):
    def __init__(self, base_path: str = "./local_storage"):
        self.base_path = Path(base_path)

    async def copy_to_advanced_bucket(
        self, file_path: str, storage_type: DocumentStorageType, team_id: str
    ) -> str:
        target = self.base_path / "advanced" / _advanced_key(file_path, team_id)
        target.parent.mkdir(parents=True, exist_ok=True)

        if storage_type == DocumentStorageType.S3_PATH:
            shutil.copyfile(self.base_path / file_path, target)
        else:
            target.write_bytes(await _download(file_path))

        logger.info("Copied %s locally → %s", file_path, target)
        return str(target)


def get_storage() -> StorageBackend:
    """Return the active storage backend based on feature flags."""
    flags = get_flags()
    if flags.use_s3:
        return S3Storage()
    return LocalStorage()


def _advanced_key(file_path: str, team_id: str) -> str:
    name = PurePosixPath(urlsplit(file_path).path).name or "document"
    return f"{team_id}/{name}"


async def _download(url: str) -> bytes:
    async with httpx.AsyncClient(timeout=60, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.content


def _guess_content_type(filename: str) -> str:
    ct, _ = mimetypes.guess_type(filename)
    return ct or "application/octet-stream"
