from __future__ import annotations

from dataclasses import dataclass

from .config import AppConfig
from .notification import Notifier, build_notifier
from .process import CommandRunner, SubprocessRunner
from .storage import ObjectStore, build_object_store


@dataclass
class BackupDependencies:
    """Collaborators of the backup pipeline, built once per process."""

    config: AppConfig
    runner: CommandRunner
    store: ObjectStore
    notifier: Notifier


def build_dependencies(config: AppConfig) -> BackupDependencies:
    return BackupDependencies(
        config=config,
        runner=SubprocessRunner(),
        store=build_object_store(config.storage),
        notifier=build_notifier(config.notifications, region=config.storage.region),
    )
