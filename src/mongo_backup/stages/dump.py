from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Optional

from mongo_backup.errors import BackupError
from mongo_backup.models import BackupArtifact
from mongo_backup.process import TIMEOUT_EXIT_CODE, CommandRunner

LOG = logging.getLogger(__name__)


def create_dump(
    runner: CommandRunner,
    uri: str,
    target: Path,
    *,
    command: str = "mongodump",
    timeout: Optional[float] = None,
) -> BackupArtifact:
    """Dump the database at ``uri`` into ``target``.

    The dump tool sometimes exits non-zero on warnings while still writing a
    complete dump, and can exit zero without writing anything. The output
    directory is therefore the success criterion: it must exist and hold at
    least one entry. The one exception is a run killed on timeout, whose
    output is incomplete by definition.
    """
    if _has_entries(target):
        raise BackupError(
            f"Dump directory {target} already exists and is not empty",
            details={"path": str(target)},
        )

    LOG.info("Executing %s into %s", command, target)
    outcome = runner.execute(
        command,
        [f"--uri={uri}", f"--out={target}"],
        timeout=timeout,
    )

    # A killed process leaves a truncated dump behind.
    if outcome.exit_code == TIMEOUT_EXIT_CODE:
        LOG.error("%s timed out after %ss: %s", command, timeout, outcome.stderr)
        shutil.rmtree(target, ignore_errors=True)
        raise BackupError(
            f"MongoDB backup timed out: {outcome.stderr.strip()}",
            details={"exit_code": outcome.exit_code, "timeout": timeout},
        )

    if not _has_entries(target):
        LOG.error("MongoDB dump produced no output (exit code %s): %s", outcome.exit_code, outcome.stderr)
        shutil.rmtree(target, ignore_errors=True)
        raise BackupError(
            f"MongoDB backup failed: {outcome.stderr}",
            details={"exit_code": outcome.exit_code},
        )

    if not outcome.success:
        LOG.warning(
            "%s exited with %s but produced output; keeping dump. stderr: %s",
            command,
            outcome.exit_code,
            outcome.stderr,
        )

    return BackupArtifact(path=target, is_directory=True)


def _has_entries(path: Path) -> bool:
    if not path.is_dir():
        return False
    return any(path.iterdir())
