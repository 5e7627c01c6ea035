"""
Command runner — the SINGLE PLACE where external processes are started.

Every component that shells out (installer, service restorer,
configuration applier) goes through this runner, so the orchestrator
never depends on a specific process-invocation mechanism and tests can
swap the runner for a recording double.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import sys
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

logger = logging.getLogger(__name__)

# Output kept per stream; installer and winget logs can be very long.
_OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class CommandResult:
    """Outcome of a completed command."""

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""
    elapsed_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def output(self) -> str:
        """stdout and stderr combined, for error classification."""
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def format_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


class CommandRunner:
    """Run external commands with consistent logging.

    Args:
        dry_run: Log commands instead of executing them.
    """

    def __init__(self, dry_run: bool = False):
        self._dry_run = dry_run

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run a command to completion and capture its output.

        A non-zero exit is returned, not raised.

        Raises:
            OSError: The executable could not be started.
            subprocess.TimeoutExpired: ``timeout`` elapsed first.
        """
        argv_list = [str(a) for a in argv]

        if self._dry_run:
            logger.info("[dry-run] would run: %s", format_argv(argv_list))
            return CommandResult(argv=argv_list, returncode=0)

        logger.info("CMD %s", format_argv(argv_list))
        start = time.monotonic()
        proc = subprocess.run(
            argv_list,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            env=dict(env) if env is not None else None,
            stdin=subprocess.DEVNULL,
        )
        elapsed_ms = int((time.monotonic() - start) * 1000)

        stdout = (proc.stdout or "")[-_OUTPUT_TAIL:]
        stderr = (proc.stderr or "")[-_OUTPUT_TAIL:]
        if stdout:
            logger.debug("STDOUT %s", stdout.strip())
        if stderr:
            logger.debug("STDERR %s", stderr.strip())
        logger.info("CMD exit %d after %d ms", proc.returncode, elapsed_ms)

        return CommandResult(
            argv=argv_list,
            returncode=proc.returncode,
            stdout=stdout,
            stderr=stderr,
            elapsed_ms=elapsed_ms,
        )

    def spawn(
        self,
        argv: Sequence[str],
        *,
        env: Mapping[str, str] | None = None,
    ) -> int:
        """Start a command without waiting for it (fire-and-forget).

        The child is detached from this process and its output is
        discarded.

        Returns:
            The child's pid (0 in dry-run mode).

        Raises:
            OSError: The executable could not be started.
        """
        argv_list = [str(a) for a in argv]

        if self._dry_run:
            logger.info("[dry-run] would spawn: %s", format_argv(argv_list))
            return 0

        logger.info("SPAWN %s", format_argv(argv_list))
        kwargs: dict = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
            )
        else:
            kwargs["start_new_session"] = True

        proc = subprocess.Popen(
            argv_list,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            env=dict(env) if env is not None else None,
            close_fds=True,
            **kwargs,
        )
        logger.debug("Spawned pid %d", proc.pid)
        return proc.pid

