from .cleanup import cleanup_artifacts
from .compress import ARCHIVE_SUFFIX, compress_dump
from .dump import create_dump
from .upload import BINARY_CONTENT_TYPE, GZIP_CONTENT_TYPE, content_type_for, read_artifact, upload_artifact

__all__ = [
    "ARCHIVE_SUFFIX",
    "BINARY_CONTENT_TYPE",
    "GZIP_CONTENT_TYPE",
    "cleanup_artifacts",
    "compress_dump",
    "content_type_for",
    "create_dump",
    "read_artifact",
    "upload_artifact",
]
