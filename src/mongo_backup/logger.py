from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = "INFO") -> None:
    """Send all records to stderr at ``level``; unknown names fall back to INFO."""
    resolved = logging.getLevelName((level or "INFO").upper())
    if not isinstance(resolved, int):
        resolved = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(resolved)

    # botocore is chatty at DEBUG.
    logging.getLogger("botocore").setLevel(max(resolved, logging.INFO))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
