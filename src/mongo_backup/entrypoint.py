from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .config import load_config
from .dependencies import build_dependencies
from .handler import BackupHandler
from .logger import configure_logging, get_logger
from .orchestrator import BackupOrchestrator

LOG = get_logger(__name__)


@lru_cache(maxsize=1)
def get_handler() -> BackupHandler:
    """Build configuration and collaborators once per process.

    Configuration errors propagate: a misconfigured process must not run.
    """
    config_path = os.getenv("MONGO_BACKUP_CONFIG")
    config = load_config(Path(config_path) if config_path else None)
    configure_logging(os.getenv("LOG_LEVEL") or config.default_log_level())
    LOG.info("Backup handler starting in %s mode", config.environment)

    dependencies = build_dependencies(config)
    return BackupHandler(BackupOrchestrator(dependencies), dependencies.notifier)


def lambda_handler(event: Optional[Mapping[str, Any]] = None, context: Any = None) -> Dict[str, Any]:  # noqa: ARG001
    return get_handler().handle(event)
