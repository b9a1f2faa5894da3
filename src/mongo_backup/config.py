from __future__ import annotations

import base64
import binascii
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic import ValidationError as SchemaError

from .errors import ConfigurationError, ValidationError


class SecretRef(BaseModel):
    """Reference to a setting stored inline, in an environment variable or in a file.

    Values are base64 encoded by default to stay compatible with existing
    deployments. Base64 is an encoding, not a protection mechanism.
    """

    value: Optional[str] = Field(default=None, exclude=True, description="Inline value (discouraged).")
    env: Optional[str] = Field(default=None, description="Environment variable name.")
    file: Optional[Path] = Field(default=None, description="Path to a file containing the value.")
    encoding: Literal["base64", "plain"] = "base64"

    def resolve(self) -> Optional[str]:
        if self.value:
            return self.value
        if self.env:
            value = os.getenv(self.env)
            if value:
                return value
        if self.file:
            file_path = Path(self.file)
            if file_path.exists():
                return file_path.read_text(encoding="utf-8").strip()
        return None

    def decode(self, name: str) -> str:
        raw = self.resolve()
        if not raw:
            raise ConfigurationError(f"{name} is not configured")
        if self.encoding == "plain":
            return raw
        try:
            decoded = base64.b64decode(raw, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise ConfigurationError(f"{name} is not valid base64", cause=exc) from exc
        if not decoded:
            raise ConfigurationError(f"{name} is not configured")
        return decoded


class DatabaseConfig(BaseModel):
    uri: SecretRef = Field(default_factory=lambda: SecretRef(env="MONGO_URI"))
    dump_command: str = "mongodump"
    dump_timeout_seconds: Optional[float] = 3600

    @field_validator("dump_timeout_seconds")
    def _positive_timeout(cls, value: Optional[float]) -> Optional[float]:  # noqa: N805
        if value is not None and value <= 0:
            raise ValueError("dump_timeout_seconds must be positive")
        return value


class StorageConfig(BaseModel):
    type: Literal["s3", "filesystem"] = "s3"
    bucket: SecretRef = Field(default_factory=lambda: SecretRef(env="AWS_S3_BUCKET_NAME"))
    region: str = "us-east-1"
    endpoint_url: Optional[str] = None
    base_path: Optional[Path] = None
    max_attempts: int = 3

    @field_validator("base_path")
    def _expand_base_path(cls, value: Optional[Path]) -> Optional[Path]:  # noqa: N805
        return value.expanduser() if value else value

    @field_validator("max_attempts")
    def _require_attempts(cls, value: int) -> int:  # noqa: N805
        if value < 1:
            raise ValueError("max_attempts must be at least 1")
        return value

    @model_validator(mode="after")
    def _require_base_path(self) -> "StorageConfig":
        if self.type == "filesystem" and not self.base_path:
            raise ValueError("Filesystem storage requires base_path.")
        return self


class BackupSettings(BaseModel):
    scratch_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()))
    compress: bool = True
    archive_command: str = "tar"
    archive_timeout_seconds: Optional[float] = 1800

    @field_validator("scratch_dir")
    def _expand_scratch_dir(cls, value: Path) -> Path:  # noqa: N805
        return value.expanduser()


class NotificationsConfig(BaseModel):
    enabled: bool = True
    sender: SecretRef = Field(default_factory=lambda: SecretRef(env="NOTIFICATION_SENDER_EMAIL"))
    recipients: SecretRef = Field(default_factory=lambda: SecretRef(env="NOTIFICATION_RECIPIENTS"))

    def resolve_recipients(self) -> List[str]:
        raw = self.recipients.decode("Notification recipients")
        return [address.strip() for address in raw.split(",") if address.strip()]


class LoggingConfig(BaseModel):
    level: Optional[str] = None

    @field_validator("level")
    def _upper_level(cls, value: Optional[str]) -> Optional[str]:  # noqa: N805
        return value.upper() if value else value


class AppConfig(BaseModel):
    environment: Literal["development", "production", "test"] = "development"
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    backup: BackupSettings = Field(default_factory=BackupSettings)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def default_log_level(self) -> str:
        if self.logging.level:
            return self.logging.level
        if self.environment == "production":
            return "INFO"
        if self.environment == "test":
            return "ERROR"
        return "DEBUG"


def load_config(path: Optional[Path] = None) -> AppConfig:
    """Load settings from ``path`` (YAML) or, without a path, from defaults and environment.

    Schema problems are startup failures and raise ``ValidationError``.
    """
    raw: Dict[str, Any] = {}
    if path is not None:
        if not path.exists():
            raise ValidationError(f"Configuration file not found: {path}")
        try:
            with path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ValidationError(f"Configuration file {path} is not valid YAML: {exc}", cause=exc) from exc
        if not isinstance(raw, dict):
            raise ValidationError(f"Configuration file {path} must contain a mapping")

    _apply_environment(raw)

    try:
        return AppConfig.model_validate(raw)
    except SchemaError as exc:
        raise ValidationError(f"Configuration validation failed: {exc}", cause=exc) from exc


def _apply_environment(raw: Dict[str, Any]) -> None:
    app_env = os.getenv("APP_ENV")
    if app_env:
        raw["environment"] = app_env

    region = os.getenv("AWS_REGION")
    if region:
        raw.setdefault("storage", {})["region"] = region

    notifications_enabled = os.getenv("NOTIFICATIONS_ENABLED")
    if notifications_enabled:
        raw.setdefault("notifications", {})["enabled"] = notifications_enabled.strip().lower() != "false"
