"""
Photo storage backends.

`S3Storage` wraps boto3 (works with AWS S3 and compatible services such as
MinIO or Supabase storage); `LocalStorage` writes under a local directory that
the API serves at `/storage`. Both return a public URL for the stored object.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import logging
import mimetypes

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from .config import Settings

logger = logging.getLogger("reporta.storage")


class StorageError(RuntimeError):
    """Raised when storage operations fail."""


class S3Storage:
    """Wrapper over boto3 with sane defaults for public report photos."""

    def __init__(self, settings: Settings) -> None:
        session_kwargs: Dict[str, Any] = {}
        if settings.s3_access_key_id and settings.s3_secret_access_key:
            session_kwargs.update(
                aws_access_key_id=settings.s3_access_key_id,
                aws_secret_access_key=settings.s3_secret_access_key,
            )
        session = boto3.session.Session(**session_kwargs)

        client_kwargs: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": settings.s3_region,
            "config": Config(
                signature_version="s3v4",
                connect_timeout=min(5.0, settings.http_timeout_seconds),
                read_timeout=settings.http_timeout_seconds,
                retries={"max_attempts": 2, "mode": "standard"},
            ),
        }
        if settings.s3_endpoint:
            client_kwargs["endpoint_url"] = settings.s3_endpoint

        self._client = session.client(**client_kwargs)
        self._bucket = settings.s3_bucket
        self._region = settings.s3_region
        self._endpoint = settings.s3_endpoint
        self._public_base_url = settings.s3_public_base_url

    def public_url(self, key: str) -> str:
        if self._public_base_url:
            return f"{self._public_base_url.rstrip('/')}/{key}"
        if self._endpoint:
            return f"{self._endpoint.rstrip('/')}/{self._bucket}/{key}"
        return f"https://{self._bucket}.s3.{self._region}.amazonaws.com/{key}"

    def _put_object(self, key: str, data: bytes, content_type: Optional[str]) -> None:
        extra = {}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client.put_object(Bucket=self._bucket, Key=key, Body=data, **extra)
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"put_object failed for {key}: {exc}") from exc

    async def save(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        # boto3 is blocking; keep it off the event loop
        await run_in_threadpool(self._put_object, key, data, content_type)
        logger.info("Stored photo in S3: %s", key)
        return self.public_url(key)


class LocalStorage:
    """Filesystem storage for local development."""

    def __init__(self, root: Path, public_base_url: str) -> None:
        self.root = Path(root)
        self._public_base_url = public_base_url.rstrip("/")

    def _write(self, key: str, data: bytes) -> None:
        path = self.root / key
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc

    async def save(self, key: str, data: bytes, content_type: Optional[str] = None) -> str:
        await run_in_threadpool(self._write, key, data)
        logger.info("Stored photo locally: %s", self.root / key)
        return f"{self._public_base_url}/storage/{key}"


def build_storage(settings: Settings):
    if settings.storage_provider == "s3":
        return S3Storage(settings)
    return LocalStorage(Path(settings.local_storage_dir), settings.public_base_url)


def guess_extension(content_type: Optional[str]) -> str:
    if not content_type:
        return "jpg"
    # mimetypes maps image/jpeg to .jpg on current interpreters, older ones say .jpe
    mapped = mimetypes.guess_extension(content_type.split(";")[0].strip()) or ".jpg"
    mapped = mapped.lstrip(".")
    return "jpg" if mapped in ("jpe", "jpeg") else mapped


__all__ = ["S3Storage", "LocalStorage", "StorageError", "build_storage", "guess_extension"]
