from __future__ import annotations

import io
import logging
import tarfile

from mongo_backup.errors import StorageError
from mongo_backup.models import BackupArtifact, UploadReceipt, derive_object_key
from mongo_backup.storage import ObjectStore

LOG = logging.getLogger(__name__)

GZIP_CONTENT_TYPE = "application/gzip"
BINARY_CONTENT_TYPE = "application/octet-stream"


def content_type_for(compressed: bool) -> str:
    return GZIP_CONTENT_TYPE if compressed else BINARY_CONTENT_TYPE


def read_artifact(artifact: BackupArtifact) -> bytes:
    """Return the artifact bytes; directories become an uncompressed tar of the folder."""
    if not artifact.is_directory:
        return artifact.path.read_bytes()

    buffer = io.BytesIO()
    with tarfile.open(fileobj=buffer, mode="w") as tar:
        tar.add(artifact.path, arcname=artifact.name)
    return buffer.getvalue()


def upload_artifact(
    store: ObjectStore,
    bucket: str,
    artifact: BackupArtifact,
    compressed: bool,
) -> UploadReceipt:
    LOG.info("Reading backup artifact %s for upload", artifact.path)
    body = read_artifact(artifact)
    key = derive_object_key(artifact.path)

    LOG.info("Uploading %s bytes to bucket %s as %s", len(body), bucket, key)
    try:
        store.put(bucket, key, body, content_type_for(compressed))
    except StorageError:
        raise
    except Exception as exc:  # noqa: BLE001
        raise StorageError(
            f"Failed to upload backup: {exc}",
            details={"bucket": bucket, "key": key},
            cause=exc,
        ) from exc

    return UploadReceipt(
        key=key,
        size=len(body),
        location=f"{store.scheme}://{bucket}/{key}",
    )
