from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError as SchemaError

from .errors import JSON_HEADERS, BackupError, ValidationError, error_response
from .models import BackupRequest, BackupResult
from .notification import Notifier
from .orchestrator import BackupOrchestrator

LOG = logging.getLogger(__name__)

Response = Dict[str, Any]


def parse_request(event: Optional[Mapping[str, Any]]) -> BackupRequest:
    """Extract backup options from an invocation event.

    Options travel in ``event["body"]`` as a JSON string or mapping; events
    without a body run with defaults.
    """
    if not event:
        return BackupRequest()

    body = event.get("body")
    if body is None or body == "":
        return BackupRequest()
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except ValueError as exc:
            raise ValidationError(f"Request body is not valid JSON: {exc}", cause=exc) from exc
    if not isinstance(body, Mapping):
        raise ValidationError("Request body must be a JSON object")

    try:
        return BackupRequest.model_validate(dict(body))
    except SchemaError as exc:
        raise ValidationError(
            "Invalid backup options",
            details={"errors": exc.errors(include_url=False, include_context=False)},
            cause=exc,
        ) from exc


class BackupHandler:
    """Maps one invocation onto a backup run and the run onto a response."""

    def __init__(self, orchestrator: BackupOrchestrator, notifier: Notifier) -> None:
        self._orchestrator = orchestrator
        self._notifier = notifier

    def handle(self, event: Optional[Mapping[str, Any]] = None) -> Response:
        try:
            request = parse_request(event)
            LOG.info("Creating backup")
            result = self._orchestrator.run(request)
            LOG.info("Backup completed (success=%s)", result.success)
            if not result.success:
                return self._failed_response(result)
            self._notify_success(result)
            return self._success_response(result)
        except ValidationError as exc:
            return error_response(exc)
        except Exception as exc:  # noqa: BLE001
            self._notify_failure(str(exc) or "Unknown error", {"error_type": exc.__class__.__name__})
            return error_response(exc)

    def _failed_response(self, result: BackupResult) -> Response:
        error = result.error or "Backup operation failed"
        self._notify_failure(error, {"backup_result": result.to_dict()})
        return error_response(
            BackupError(error, details={"backup_result": result.to_dict()}, timestamp=result.timestamp)
        )

    def _success_response(self, result: BackupResult) -> Response:
        return {
            "statusCode": int(HTTPStatus.OK),
            "headers": dict(JSON_HEADERS),
            "body": json.dumps(
                {
                    "message": "Backup created successfully",
                    "backup_result": result.to_dict(),
                }
            ),
        }

    def _notify_success(self, result: BackupResult) -> None:
        if not self._notifier.enabled:
            return
        try:
            self._notifier.notify_success(result)
        except Exception as exc:  # noqa: BLE001
            LOG.error("Failed to send success notification: %s", exc)

    def _notify_failure(self, error: str, details: Dict[str, Any]) -> None:
        if not self._notifier.enabled:
            return
        try:
            self._notifier.notify_failure(error, details)
        except Exception as exc:  # noqa: BLE001
            LOG.error("Failed to send failure notification: %s", exc)
