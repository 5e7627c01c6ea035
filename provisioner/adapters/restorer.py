"""
Service restorer — fire the trigger that reinitializes an OS service.

The trigger (by default ``wsreset.exe -i``, which reinstalls the store
service) completes asynchronously and exposes no readiness signal, so
this only starts it. Waiting is the orchestrator's settle delay.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from provisioner.adapters.shell.command import CommandRunner
from provisioner.core.errors import RestoreError
from provisioner.core.models.config import DEFAULT_RESTORE_COMMAND

logger = logging.getLogger(__name__)


class ServiceRestorer:
    def __init__(
        self,
        runner: CommandRunner,
        trigger: Sequence[str] = DEFAULT_RESTORE_COMMAND,
    ):
        self._runner = runner
        self._trigger = list(trigger)

    def restore(self, trigger: Sequence[str] | None = None) -> int:
        """Issue the restore trigger without waiting for completion.

        Returns:
            pid of the spawned trigger process.

        Raises:
            RestoreError: The trigger command could not be started.
        """
        argv = list(trigger) if trigger is not None else self._trigger
        if not argv:
            raise RestoreError("Empty restore trigger", trigger=argv)

        try:
            pid = self._runner.spawn(argv)
        except OSError as e:
            raise RestoreError(f"Cannot start '{argv[0]}': {e}", trigger=argv) from e

        logger.info("Restore trigger issued (pid %d)", pid)
        return pid
