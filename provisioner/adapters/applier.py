"""
Configuration applier — run the package manager's configure subcommand.

    <exe> configure -f <document> --accept-configuration-agreements --accept-source-agreements

The agreement flags are what make the call unattended: without them the
package manager prompts for license and telemetry consent and blocks.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from provisioner.adapters.shell.command import CommandRunner
from provisioner.core.errors import ApplyError, ApplyErrorKind
from provisioner.core.models.resolution import Resolution

logger = logging.getLogger(__name__)

AGREEMENT_FLAGS = (
    "--accept-configuration-agreements",
    "--accept-source-agreements",
)


def build_configure_command(
    executable: str,
    config_document: Path | str,
    accept_agreements: bool = True,
) -> list[str]:
    argv = [executable, "configure", "-f", str(config_document)]
    if accept_agreements:
        argv.extend(AGREEMENT_FLAGS)
    return argv


class ConfigurationApplier:
    """Apply a configuration document with the package manager.

    Args:
        runner: Command runner used for the invocation.
        timeout: Optional bound (seconds) on the configure call.
    """

    def __init__(self, runner: CommandRunner, timeout: float | None = None):
        self._runner = runner
        self._timeout = timeout

    def apply(
        self,
        executable: Resolution,
        config_document: Path | str,
        *,
        accept_agreements: bool = True,
    ) -> None:
        """Invoke ``configure`` against ``config_document``.

        ``executable`` may be ``Absent``; its fallback name is then left
        to the OS executable lookup.

        Raises:
            ApplyError: DOCUMENT_UNREADABLE, EXECUTABLE_NOT_FOUND or
                INVOCATION_FAILED.
        """
        document = Path(config_document)
        if not document.is_file() or not os.access(document, os.R_OK):
            raise ApplyError(
                ApplyErrorKind.DOCUMENT_UNREADABLE,
                f"Configuration document missing or unreadable: {document}",
            )

        if not executable.found:
            logger.warning(
                "Package manager not resolved (%s); invoking '%s' by name",
                executable.reason,
                executable.locator,
            )

        argv = build_configure_command(executable.locator, document, accept_agreements)
        env = executable.environment or None

        try:
            result = self._runner.run(argv, timeout=self._timeout, env=env)
        except subprocess.TimeoutExpired as e:
            raise ApplyError(
                ApplyErrorKind.INVOCATION_FAILED,
                f"'{executable.locator} configure' timed out after {self._timeout}s",
            ) from e
        except OSError as e:
            raise ApplyError(
                ApplyErrorKind.EXECUTABLE_NOT_FOUND,
                f"Cannot launch '{executable.locator}': {e}",
            ) from e

        if not result.ok:
            detail = (result.stderr or result.stdout).strip().splitlines()
            tail = f": {detail[-1]}" if detail else ""
            raise ApplyError(
                ApplyErrorKind.INVOCATION_FAILED,
                f"'{executable.locator} configure' exited with {result.returncode}{tail}",
                exit_code=result.returncode,
            )

        logger.info("Configuration %s applied", document.name)
