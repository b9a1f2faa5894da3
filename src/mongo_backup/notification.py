"""Backup outcome notifications.

Notifications are fire-and-forget: a delivery problem is logged and reported
in the returned ``NotificationResult`` but never raised to the caller.
"""
from __future__ import annotations

import html
import json
import logging
from dataclasses import dataclass
from string import Template
from typing import Any, Dict, List, Optional, Protocol

import boto3
from botocore.config import Config

from .config import NotificationsConfig
from .errors import ApplicationError, NotificationError, utc_now_iso
from .models import BackupResult

LOG = logging.getLogger(__name__)

CHARSET = "UTF-8"

_SUCCESS_TEXT = Template(
    """Backup completed successfully

Backup ID: $backup_id
Timestamp: $timestamp
Size: $size
Location: $location

This is an automated message from mongo-backup."""
)

_FAILURE_TEXT = Template(
    """Backup Failed

Error: $error
Timestamp: $timestamp
$details
This is an automated message from mongo-backup."""
)

_SUCCESS_HTML = Template(
    """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="background-color: #4CAF50; color: white; padding: 10px;">Backup Completed Successfully</h2>
  <p>The MongoDB backup has been completed and stored.</p>
  <table>
    <tr><th align="left">Backup ID</th><td>$backup_id</td></tr>
    <tr><th align="left">Timestamp</th><td>$timestamp</td></tr>
    <tr><th align="left">Size</th><td>$size</td></tr>
    <tr><th align="left">Location</th><td>$location</td></tr>
  </table>
  <p style="font-size: 12px; color: #777;">This is an automated message from mongo-backup.</p>
</body>
</html>"""
)

_FAILURE_HTML = Template(
    """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; color: #333;">
  <h2 style="background-color: #f44336; color: white; padding: 10px;">Backup Failed</h2>
  <p><strong>Error:</strong> $error</p>
  <p><strong>Timestamp:</strong> $timestamp</p>
  <pre>$details</pre>
  <p>Please check the logs for more information.</p>
  <p style="font-size: 12px; color: #777;">This is an automated message from mongo-backup.</p>
</body>
</html>"""
)


@dataclass
class NotificationMessage:
    subject: str
    text: str
    html: str


@dataclass
class NotificationResult:
    success: bool
    timestamp: str
    message_id: Optional[str] = None
    error: Optional[str] = None


class Notifier(Protocol):
    enabled: bool

    def notify_success(self, result: BackupResult) -> NotificationResult:
        ...

    def notify_failure(self, error: str, details: Optional[Dict[str, Any]] = None) -> NotificationResult:
        ...


def format_size(size: Optional[int]) -> str:
    if not size:
        return "Unknown"
    return f"{size / (1024 * 1024):.2f} MB"


def _escaped(values: Dict[str, str]) -> Dict[str, str]:
    # Error text and details carry raw stderr.
    return {key: html.escape(value) for key, value in values.items()}


def build_success_message(result: BackupResult) -> NotificationMessage:
    values = {
        "backup_id": result.backup_id,
        "timestamp": result.timestamp,
        "size": format_size(result.size),
        "location": result.location or "Unknown",
    }
    return NotificationMessage(
        subject=f"Backup Successful: {result.backup_id}",
        text=_SUCCESS_TEXT.substitute(values),
        html=_SUCCESS_HTML.substitute(_escaped(values)),
    )


def build_failure_message(error: str, details: Optional[Dict[str, Any]] = None) -> NotificationMessage:
    rendered_details = json.dumps(details, indent=2, default=str) if details else ""
    values = {
        "error": error,
        "timestamp": utc_now_iso(),
        "details": f"Details: {rendered_details}\n" if rendered_details else "",
    }
    html_values = dict(values, details=rendered_details)
    return NotificationMessage(
        subject="Backup Failed",
        text=_FAILURE_TEXT.substitute(values),
        html=_FAILURE_HTML.substitute(_escaped(html_values)),
    )


class NullNotifier:
    """Used when notifications are disabled."""

    enabled = False

    def notify_success(self, result: BackupResult) -> NotificationResult:  # noqa: ARG002
        LOG.info("Notifications are disabled, skipping")
        return NotificationResult(success=True, timestamp=utc_now_iso(), message_id="notification-disabled")

    def notify_failure(self, error: str, details: Optional[Dict[str, Any]] = None) -> NotificationResult:  # noqa: ARG002
        LOG.info("Notifications are disabled, skipping")
        return NotificationResult(success=True, timestamp=utc_now_iso(), message_id="notification-disabled")


class SesNotifier:
    """Sends plain text and HTML email through Amazon SES."""

    enabled = True

    def __init__(self, config: NotificationsConfig, region: str, client: Any = None) -> None:
        self._config = config
        if client is None:
            LOG.info("Initializing SES client with region %s", region)
            client = boto3.client("ses", region_name=region, config=Config(retries={"max_attempts": 3}))
        self._client = client

    def notify_success(self, result: BackupResult) -> NotificationResult:
        LOG.info("Sending backup success notification for %s", result.backup_id)
        return self.send(build_success_message(result))

    def notify_failure(self, error: str, details: Optional[Dict[str, Any]] = None) -> NotificationResult:
        LOG.info("Sending backup failure notification")
        return self.send(build_failure_message(error, details))

    def send(self, message: NotificationMessage) -> NotificationResult:
        try:
            sender = self._sender()
            recipients = self._recipients()
            if not recipients:
                LOG.warning("No notification recipients configured; skipping %r", message.subject)
                return NotificationResult(success=False, timestamp=utc_now_iso(), error="No recipients configured")

            response = self._client.send_email(
                Source=sender,
                Destination={"ToAddresses": recipients},
                Message={
                    "Subject": {"Data": message.subject, "Charset": CHARSET},
                    "Body": {
                        "Text": {"Data": message.text, "Charset": CHARSET},
                        "Html": {"Data": message.html, "Charset": CHARSET},
                    },
                },
            )
        except Exception as exc:  # noqa: BLE001
            LOG.error("Failed to send notification %r: %s", message.subject, exc)
            return NotificationResult(success=False, timestamp=utc_now_iso(), error=str(exc))

        message_id = response.get("MessageId")
        LOG.info("Notification sent (message id %s)", message_id)
        return NotificationResult(success=True, timestamp=utc_now_iso(), message_id=message_id)

    def _sender(self) -> str:
        try:
            return self._config.sender.decode("Notification sender email")
        except ApplicationError as exc:
            raise NotificationError(exc.message, cause=exc) from exc

    def _recipients(self) -> List[str]:
        if not self._config.recipients.resolve():
            return []
        try:
            return self._config.resolve_recipients()
        except ApplicationError as exc:
            raise NotificationError(exc.message, cause=exc) from exc


def build_notifier(config: NotificationsConfig, region: str) -> Notifier:
    if not config.enabled:
        return NullNotifier()
    return SesNotifier(config, region=region)
