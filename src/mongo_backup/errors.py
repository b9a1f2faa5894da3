from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, Dict, Optional

LOG = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ApplicationError(Exception):
    """Base class for errors that map onto an HTTP status and error code."""

    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
        timestamp: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.cause = cause
        self.timestamp = timestamp or utc_now_iso()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "timestamp": self.timestamp,
                "details": self.details,
            }
        }


class ConfigurationError(ApplicationError):
    """Raised when a required setting is missing or cannot be decoded."""

    code = "CONFIGURATION_ERROR"


class BackupError(ApplicationError):
    """Raised when the dump or archive step does not produce a usable artifact."""

    code = "BACKUP_ERROR"


class StorageError(ApplicationError):
    """Raised when the object store rejects or fails an operation."""

    code = "STORAGE_ERROR"


class ValidationError(ApplicationError):
    """Raised for malformed configuration or request input."""

    status_code = HTTPStatus.BAD_REQUEST
    code = "VALIDATION_ERROR"


class CommandExecutionError(ApplicationError):
    code = "COMMAND_EXECUTION_ERROR"


class NotificationError(ApplicationError):
    code = "NOTIFICATION_ERROR"


class NotFoundError(ApplicationError):
    status_code = HTTPStatus.NOT_FOUND
    code = "NOT_FOUND"


def error_response(error: BaseException) -> Dict[str, Any]:
    """Build the JSON error response for ``error``.

    Causes and tracebacks are logged here and never serialized.
    """
    if isinstance(error, ApplicationError):
        app_error = error
    else:
        app_error = ApplicationError(str(error) or "An unexpected error occurred", cause=error)

    LOG.error("Request failed with %s: %s", app_error.code, app_error.message, exc_info=app_error.cause or error)
    return {
        "statusCode": int(app_error.status_code),
        "headers": dict(JSON_HEADERS),
        "body": json.dumps(app_error.to_dict(), default=str),
    }
