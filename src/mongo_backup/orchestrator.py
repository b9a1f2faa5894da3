from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, FrozenSet, List, Optional

from .dependencies import BackupDependencies
from .models import BackupRequest, BackupResult, default_backup_name, format_timestamp
from .stages import cleanup_artifacts, compress_dump, create_dump, upload_artifact

LOG = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class PipelineState(str, enum.Enum):
    IDLE = "idle"
    DUMPING = "dumping"
    COMPRESSING = "compressing"
    UPLOADING = "uploading"
    CLEANING_UP = "cleaning_up"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.IDLE: frozenset({PipelineState.DUMPING}),
    PipelineState.DUMPING: frozenset({PipelineState.COMPRESSING, PipelineState.FAILED}),
    PipelineState.COMPRESSING: frozenset({PipelineState.UPLOADING, PipelineState.FAILED}),
    PipelineState.UPLOADING: frozenset({PipelineState.CLEANING_UP, PipelineState.FAILED}),
    PipelineState.CLEANING_UP: frozenset({PipelineState.DONE}),
    PipelineState.DONE: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class PipelineRun:
    request: BackupRequest
    started_at: datetime
    timestamp: str
    backup_name: str
    state: PipelineState = PipelineState.IDLE
    history: List[PipelineState] = field(default_factory=lambda: [PipelineState.IDLE])
    error: Optional[str] = None

    def transition(self, target: PipelineState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition {self.state.value} -> {target.value}")
        LOG.debug("Backup %s: %s -> %s", self.backup_name, self.state.value, target.value)
        self.state = target
        self.history.append(target)

    def fail(self, error: str) -> None:
        if PipelineState.FAILED not in _TRANSITIONS[self.state]:
            LOG.warning("Backup %s failed outside an active stage (%s)", self.backup_name, self.state.value)
        self.error = error
        self.state = PipelineState.FAILED
        self.history.append(PipelineState.FAILED)


class BackupOrchestrator:
    """Runs dump, compress, upload and cleanup in order for one backup.

    ``run`` never raises: every stage failure becomes a failed
    ``BackupResult`` stamped with the run's timestamp.
    """

    def __init__(self, dependencies: BackupDependencies, clock: Optional[Clock] = None) -> None:
        self._deps = dependencies
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.last_run: Optional[PipelineRun] = None

    def run(self, request: Optional[BackupRequest] = None) -> BackupResult:
        request = request or BackupRequest()
        run = self._start_run(request)
        self.last_run = run

        try:
            result = self._execute(run)
        except Exception as exc:  # noqa: BLE001
            LOG.exception("Error during backup %s", run.backup_name)
            run.fail(str(exc) or exc.__class__.__name__)
            return BackupResult.failed(timestamp=run.timestamp, error=run.error)

        run.transition(PipelineState.DONE)
        return result

    def _start_run(self, request: BackupRequest) -> PipelineRun:
        started_at = self._clock()
        timestamp = request.timestamp or format_timestamp(started_at)
        return PipelineRun(
            request=request,
            started_at=started_at,
            timestamp=timestamp,
            backup_name=request.name or default_backup_name(timestamp),
        )

    def _execute(self, run: PipelineRun) -> BackupResult:
        config = self._deps.config
        request = run.request
        compress = config.backup.compress if request.compress is None else request.compress
        LOG.info(
            "Starting MongoDB backup %s (compress=%s, destination=%s)",
            run.backup_name,
            compress,
            request.destination,
        )

        run.transition(PipelineState.DUMPING)
        uri = config.database.uri.decode("MongoDB URI")
        bucket = config.storage.bucket.decode("S3 bucket name")

        scratch_root = config.backup.scratch_dir
        scratch_root.mkdir(parents=True, exist_ok=True)
        dump_path: Path = scratch_root / run.backup_name
        dump = create_dump(
            self._deps.runner,
            uri,
            dump_path,
            command=config.database.dump_command,
            timeout=config.database.dump_timeout_seconds,
        )
        LOG.info("MongoDB dump created at %s", dump.path)

        run.transition(PipelineState.COMPRESSING)
        artifact = compress_dump(
            self._deps.runner,
            dump,
            compress,
            command=config.backup.archive_command,
            timeout=config.backup.archive_timeout_seconds,
        )

        run.transition(PipelineState.UPLOADING)
        receipt = upload_artifact(self._deps.store, bucket, artifact, compress)
        LOG.info("Backup uploaded to %s (%s bytes)", receipt.location, receipt.size)

        run.transition(PipelineState.CLEANING_UP)
        cleanup_artifacts(dump.path, artifact.path, compress)

        return BackupResult.succeeded(
            backup_id=receipt.key,
            timestamp=run.timestamp,
            size=receipt.size,
            location=receipt.location,
        )
