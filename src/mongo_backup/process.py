from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, Optional, Protocol, Sequence

from .models import CommandOutcome

LOG = logging.getLogger(__name__)

TIMEOUT_EXIT_CODE = 124


class CommandRunner(Protocol):
    def execute(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandOutcome:
        ...


class SubprocessRunner:
    """Runs external commands and reports their outcome instead of raising."""

    def execute(
        self,
        command: str,
        args: Sequence[str] = (),
        *,
        cwd: Optional[Path] = None,
        timeout: Optional[float] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandOutcome:
        cmd = [command, *args]
        run_env = {**os.environ, **env} if env else None
        LOG.debug("Executing %s (cwd=%s, timeout=%s)", command, cwd, timeout)
        try:
            completed = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                env=run_env,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            LOG.error("%s timed out after %ss", command, timeout)
            return CommandOutcome(
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr) + "\nCommand execution timed out",
                exit_code=TIMEOUT_EXIT_CODE,
            )
        except OSError as exc:
            LOG.error("Unable to start %s: %s", command, exc)
            return CommandOutcome(stdout="", stderr=str(exc), exit_code=1)

        outcome = CommandOutcome(
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            exit_code=completed.returncode,
        )
        LOG.debug("%s exited with %s", command, outcome.exit_code)
        return outcome


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    if isinstance(data, str):
        return data
    return data.decode("utf-8", "ignore")
