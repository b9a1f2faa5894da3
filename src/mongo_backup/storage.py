from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import StorageConfig
from .errors import StorageError

LOG = logging.getLogger(__name__)


class ObjectStore(Protocol):
    scheme: str

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        ...

    def delete(self, bucket: str, key: str) -> None:
        ...


class S3ObjectStore:
    """Stores objects in S3. Transient failures are retried by botocore."""

    scheme = "s3"

    def __init__(
        self,
        region: str,
        *,
        max_attempts: int = 3,
        endpoint_url: Optional[str] = None,
        client: Any = None,
    ) -> None:
        if client is None:
            LOG.info("Initializing S3 client with region %s", region)
            client = boto3.client(
                "s3",
                region_name=region,
                endpoint_url=endpoint_url,
                config=Config(retries={"mode": "standard", "max_attempts": max_attempts}),
            )
        self._client = client

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        LOG.info("Uploading to S3 bucket %s, key %s", bucket, key)
        try:
            response = self._client.put_object(Bucket=bucket, Key=key, Body=body, ContentType=content_type)
        except (ClientError, BotoCoreError) as exc:
            LOG.error("Error saving object to S3: %s", exc)
            raise StorageError(
                f"Failed to save data to S3: {exc}",
                details={"bucket": bucket, "key": key},
                cause=exc,
            ) from exc
        LOG.debug("S3 upload response: %s", response)
        return response

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            LOG.error("Error deleting object from S3: %s", exc)
            raise StorageError(
                f"Failed to delete data from S3: {exc}",
                details={"bucket": bucket, "key": key},
                cause=exc,
            ) from exc


@dataclass
class FilesystemObjectStore:
    """Stores objects under a host-mounted directory, one folder per bucket."""

    base_path: Path
    scheme: str = "file"

    def put(self, bucket: str, key: str, body: bytes, content_type: str) -> Dict[str, Any]:
        target = self._resolve(bucket, key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(body)
        except OSError as exc:
            raise StorageError(
                f"Failed to write object to {target}: {exc}",
                details={"bucket": bucket, "key": key},
                cause=exc,
            ) from exc
        LOG.info("Stored %s bytes at %s (%s)", len(body), target, content_type)
        return {"path": str(target), "content_type": content_type}

    def delete(self, bucket: str, key: str) -> None:
        target = self._resolve(bucket, key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(
                f"Failed to delete object {target}: {exc}",
                details={"bucket": bucket, "key": key},
                cause=exc,
            ) from exc

    def _resolve(self, bucket: str, key: str) -> Path:
        root = (self.base_path / bucket).resolve()
        target = (root / key).resolve()
        if root != target and root not in target.parents:
            raise StorageError(
                f"Object key escapes bucket directory: {key}",
                details={"bucket": bucket, "key": key},
            )
        return target


def build_object_store(config: StorageConfig) -> ObjectStore:
    if config.type == "s3":
        return S3ObjectStore(
            region=config.region,
            max_attempts=config.max_attempts,
            endpoint_url=config.endpoint_url,
        )
    if config.type == "filesystem":
        base_path = config.base_path
        base_path.mkdir(parents=True, exist_ok=True)
        return FilesystemObjectStore(base_path=base_path)
    raise ValueError(f"Unsupported storage type '{config.type}'")
