"""
Package installer — register a downloaded package with the OS.

The OS install API is reached through an argv template (by default
PowerShell's ``Add-AppxPackage``). Failures are classified from the
installer's output so the orchestrator can tell a harmless
"already installed" from a real rejection.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from provisioner.adapters.shell.command import CommandResult, CommandRunner
from provisioner.core.errors import InstallError, InstallErrorKind
from provisioner.core.models.config import DEFAULT_INSTALL_COMMAND, PATH_PLACEHOLDER

logger = logging.getLogger(__name__)

# Output fragments (lower-cased) that identify a failure category.
# 0x80073D06: a higher version of the package is already installed.
_CONFLICT_MARKERS = (
    "0x80073d06",
    "already installed",
    "higher version",
    "already exists",
)
# 0x80073CF0: package could not be opened. 0x80080204: manifest invalid.
_INVALID_MARKERS = (
    "0x80073cf0",
    "0x80080204",
    "invalid package",
    "not a valid package",
)


def classify_failure(output: str) -> InstallErrorKind:
    """Map installer output from a failed registration to an error kind."""
    text = output.lower()
    if any(marker in text for marker in _CONFLICT_MARKERS):
        return InstallErrorKind.ALREADY_INSTALLED_CONFLICT
    if any(marker in text for marker in _INVALID_MARKERS):
        return InstallErrorKind.INVALID_PACKAGE
    return InstallErrorKind.REGISTRATION_REJECTED


_QUOTED_PLACEHOLDER = f"'{PATH_PLACEHOLDER}'"


def quote_single(value: str) -> str:
    """Single-quoted PowerShell literal; embedded quotes are doubled."""
    return "'" + value.replace("'", "''") + "'"


def render_command(template: Sequence[str], package_path: Path | str) -> list[str]:
    """Substitute ``{path}`` in every argv element.

    Inside a script string (``'{path}'``) the path is re-quoted so a
    quote in the file name cannot end the literal. A bare ``{path}`` is
    its own argv element and is passed through. A template without the
    placeholder gets the path appended.
    """
    path = str(package_path)
    if not any(PATH_PLACEHOLDER in part for part in template):
        return [*template, path]

    argv = []
    for part in template:
        if _QUOTED_PLACEHOLDER in part:
            argv.append(part.replace(_QUOTED_PLACEHOLDER, quote_single(path)))
        else:
            argv.append(part.replace(PATH_PLACEHOLDER, path))
    return argv


class PackageInstaller:
    """Register package files through the OS install command.

    Args:
        runner: Command runner used to invoke the install command.
        command: argv template; ``{path}`` is replaced by the package path.
    """

    def __init__(
        self,
        runner: CommandRunner,
        command: Sequence[str] = DEFAULT_INSTALL_COMMAND,
    ):
        self._runner = runner
        self._command = list(command)

    def install(self, package_path: Path | str) -> None:
        """Register one package.

        Raises:
            InstallError: INVALID_PACKAGE, REGISTRATION_REJECTED or
                ALREADY_INSTALLED_CONFLICT.
        """
        path = Path(package_path)
        if not path.is_file() or path.stat().st_size == 0:
            raise InstallError(
                InstallErrorKind.INVALID_PACKAGE,
                f"Package file missing or empty: {path}",
                package=str(path),
            )

        argv = render_command(self._command, path)
        try:
            result = self._runner.run(argv)
        except OSError as e:
            raise InstallError(
                InstallErrorKind.REGISTRATION_REJECTED,
                f"Cannot launch installer '{argv[0]}': {e}",
                package=str(path),
            ) from e

        if result.ok:
            logger.info("Registered %s", path.name)
            return

        kind = classify_failure(result.output)
        raise InstallError(kind, _describe(result, path), package=str(path))


def _describe(result: CommandResult, path: Path) -> str:
    detail = (result.stderr or result.stdout).strip().splitlines()
    tail = detail[-1] if detail else "no output"
    return f"Registration of {path.name} failed (exit {result.returncode}): {tail}"
