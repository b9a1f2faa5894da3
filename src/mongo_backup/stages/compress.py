from __future__ import annotations

import logging
from typing import Optional

from mongo_backup.errors import BackupError
from mongo_backup.models import BackupArtifact
from mongo_backup.process import CommandRunner

LOG = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.gz"


def compress_dump(
    runner: CommandRunner,
    artifact: BackupArtifact,
    compress: bool = True,
    *,
    command: str = "tar",
    timeout: Optional[float] = None,
) -> BackupArtifact:
    if not compress:
        LOG.info("Skipping compression as requested")
        return artifact

    source = artifact.path
    archive_path = source.with_name(artifact.name + ARCHIVE_SUFFIX)
    LOG.info("Compressing %s into %s", source, archive_path)

    # Relative member names keep the archive restorable on another host.
    outcome = runner.execute(
        command,
        ["-czf", archive_path.name, artifact.name],
        cwd=source.parent,
        timeout=timeout,
    )

    if not outcome.success:
        LOG.error("Failed to compress backup: %s", outcome.stderr)
        raise BackupError(
            f"Failed to compress backup: {outcome.stderr}",
            details={"exit_code": outcome.exit_code, "source": str(source)},
        )
    if not archive_path.is_file():
        raise BackupError(
            f"Failed to compress backup: archive {archive_path} was not created",
            details={"source": str(source)},
        )

    return BackupArtifact(path=archive_path, is_directory=False)
