from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .config import AppConfig, load_config
from .dependencies import build_dependencies
from .errors import ValidationError
from .handler import BackupHandler
from .logger import configure_logging
from .orchestrator import BackupOrchestrator


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Back up a MongoDB database to object storage.")
    parser.add_argument(
        "--config",
        default=os.getenv("MONGO_BACKUP_CONFIG"),
        help="Path to configuration YAML file. Settings come from the environment when omitted.",
    )
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL"),
        help="Log level (defaults depend on the configured environment).",
    )
    parser.add_argument("--name", help="Override the backup name.")
    parser.add_argument("--timestamp", help="Explicit ISO-8601 timestamp for the backup.")
    parser.add_argument(
        "--no-compress",
        action="store_true",
        help="Upload the dump without creating a .tar.gz archive.",
    )
    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Print the effective configuration (secret references only) and exit.",
    )
    return parser.parse_args(argv)


def load_configuration(path: Optional[str]) -> AppConfig:
    try:
        return load_config(Path(path).expanduser() if path else None)
    except ValidationError as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc


def build_event(args: argparse.Namespace) -> Dict[str, Any]:
    body: Dict[str, Any] = {}
    if args.no_compress:
        body["compress"] = False
    if args.name:
        body["name"] = args.name
    if args.timestamp:
        body["timestamp"] = args.timestamp
    return {"body": body}


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    config = load_configuration(args.config)
    configure_logging(args.log_level or config.default_log_level())

    if args.show_config:
        print(config.model_dump_json(indent=2))
        return 0

    dependencies = build_dependencies(config)
    handler = BackupHandler(BackupOrchestrator(dependencies), dependencies.notifier)
    response = handler.handle(build_event(args))

    print(json.dumps(json.loads(response["body"]), indent=2))
    if response["statusCode"] == 200:
        logging.info("Backup succeeded")
        return 0
    logging.error("Backup failed with status %s", response["statusCode"])
    return 1


if __name__ == "__main__":
    sys.exit(main())
