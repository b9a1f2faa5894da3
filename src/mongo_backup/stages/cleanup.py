from __future__ import annotations

import logging
import shutil
from pathlib import Path

LOG = logging.getLogger(__name__)


def cleanup_artifacts(dump_path: Path, final_path: Path, compressed: bool) -> bool:
    """Remove scratch artifacts after a successful upload.

    Never raises; returns ``False`` when something could not be removed.
    """
    LOG.info("Cleaning up temporary files")
    clean = True
    targets = [dump_path, final_path] if compressed else [final_path]
    for target in targets:
        try:
            _remove_path(target)
        except Exception as exc:  # noqa: BLE001
            clean = False
            LOG.warning("Failed to remove temporary path %s: %s", target, exc)

    if clean:
        LOG.info("Temporary files cleaned up")
    return clean


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        LOG.debug("Removing directory %s", path)
        shutil.rmtree(path)
    else:
        LOG.debug("Removing file %s", path)
        path.unlink(missing_ok=True)
