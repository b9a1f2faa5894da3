"""MongoDB backup pipeline package."""

from __future__ import annotations

from .config import AppConfig, load_config  # noqa: F401
from .models import BackupRequest, BackupResult  # noqa: F401
from .orchestrator import BackupOrchestrator  # noqa: F401
