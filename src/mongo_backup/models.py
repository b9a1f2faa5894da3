from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePath
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, field_validator

BACKUP_KEY_PREFIX = "backups"
BACKUP_NAME_PREFIX = "mongodb-backup"


class BackupRequest(BaseModel):
    """Options for a single backup run. Every field is optional."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    timestamp: Optional[str] = None
    compress: Optional[bool] = None
    destination: Optional[str] = None

    @field_validator("name", "timestamp")
    def _no_path_components(cls, value: Optional[str]) -> Optional[str]:  # noqa: N805
        # Both end up in the scratch directory name.
        if value is not None and (not value.strip() or "/" in value or "\\" in value or value in {".", ".."}):
            raise ValueError("must be non-empty and must not contain path separators")
        return value

    @field_validator("timestamp")
    def _iso_timestamp(cls, value: Optional[str]) -> Optional[str]:  # noqa: N805
        if value is not None:
            try:
                datetime.fromisoformat(value.replace("Z", "+00:00"))
            except ValueError as exc:
                raise ValueError("must be an ISO-8601 timestamp") from exc
        return value


@dataclass
class BackupArtifact:
    path: Path
    is_directory: bool

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class CommandOutcome:
    stdout: str
    stderr: str
    exit_code: int

    @property
    def success(self) -> bool:
        return self.exit_code == 0


@dataclass(frozen=True)
class UploadReceipt:
    key: str
    size: int
    location: str


@dataclass(frozen=True)
class BackupResult:
    """Outcome of one pipeline run; exactly one of the variants is populated."""

    success: bool
    backup_id: str
    timestamp: str
    size: Optional[int] = None
    location: Optional[str] = None
    error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.success:
            if not self.backup_id or self.size is None or not self.location:
                raise ValueError("Successful result requires backup_id, size and location")
            if self.error is not None:
                raise ValueError("Successful result must not carry an error")
        else:
            if not self.error:
                raise ValueError("Failed result requires an error message")
            if self.backup_id or self.size is not None or self.location is not None:
                raise ValueError("Failed result must not carry backup_id, size or location")

    @classmethod
    def succeeded(cls, backup_id: str, timestamp: str, size: int, location: str) -> "BackupResult":
        return cls(success=True, backup_id=backup_id, timestamp=timestamp, size=size, location=location)

    @classmethod
    def failed(cls, timestamp: str, error: str) -> "BackupResult":
        return cls(success=False, backup_id="", timestamp=timestamp, error=error or "Unknown error during backup")

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in dataclasses.asdict(self).items() if value is not None}


# Reserved for list/restore operations, which are not implemented.
@dataclass(frozen=True)
class BackupInfo:
    backup_id: str
    timestamp: str
    size: int
    name: str
    location: str


@dataclass(frozen=True)
class RestoreResult:
    success: bool
    backup_id: str
    timestamp: str
    error: Optional[str] = None


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def file_safe_timestamp(timestamp: str) -> str:
    return timestamp.replace(":", "-").replace(".", "-")


def default_backup_name(timestamp: str) -> str:
    return f"{BACKUP_NAME_PREFIX}-{file_safe_timestamp(timestamp)}"


def derive_object_key(artifact_path: Union[str, PurePath]) -> str:
    return f"{BACKUP_KEY_PREFIX}/{PurePath(artifact_path).name}"
