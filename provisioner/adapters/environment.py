"""
Environment resolver — find the freshly installed package manager.

Installing a package updates the machine- and user-scoped environment
definitions, but a running process keeps the environment it started
with. The resolver re-reads both scopes, merges them over the current
process view, and looks for the executable in the merged view.

It is a pure query: ``os.environ`` is never modified. Callers thread
the returned environment into the processes they start.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import sys
from collections.abc import Callable, Mapping
from pathlib import Path

from provisioner.core.models.config import DEFAULT_EXECUTABLE, DEFAULT_EXECUTABLE_PATH
from provisioner.core.models.resolution import Absent, Resolution, ResolvedExecutable

logger = logging.getLogger(__name__)

EnvSource = Callable[[], Mapping[str, str]]

_MACHINE_KEY = r"SYSTEM\CurrentControlSet\Control\Session Manager\Environment"
_USER_KEY = "Environment"
_PERCENT_VAR = re.compile(r"%([^%]+)%")


def registry_environment(scope: str) -> dict[str, str]:
    """Read persisted environment variables from the Windows registry.

    Args:
        scope: ``"machine"`` (HKLM) or ``"user"`` (HKCU).

    Raises:
        OSError: The registry key cannot be opened.
    """
    import winreg

    if scope == "machine":
        hive, subkey = winreg.HKEY_LOCAL_MACHINE, _MACHINE_KEY
    else:
        hive, subkey = winreg.HKEY_CURRENT_USER, _USER_KEY

    values: dict[str, str] = {}
    with winreg.OpenKey(hive, subkey) as key:
        index = 0
        while True:
            try:
                name, value, _kind = winreg.EnumValue(key, index)
            except OSError:
                break  # no more values
            if isinstance(value, str):
                values[name] = value
            index += 1
    return values


def default_sources() -> tuple[EnvSource, EnvSource]:
    """Machine and user environment readers for the current platform.

    On Windows these read the persisted registry definitions. Elsewhere
    there is no persisted store to re-read: the machine scope is the
    current process environment and the user scope is empty.
    """
    if sys.platform == "win32":
        return (
            lambda: registry_environment("machine"),
            lambda: registry_environment("user"),
        )
    return (lambda: dict(os.environ), dict)


class EnvironmentResolver:
    """Recompute the environment and locate the package-manager executable.

    Args:
        executable: Bare executable name, also the fallback locator.
        executable_path: Conventional install location; ``%VAR%`` and
            ``~`` are expanded against the refreshed environment.
        machine_env: Reader for machine-scoped definitions.
        user_env: Reader for user-scoped definitions.
        base_env: Reader for the current process view (default: os.environ).
        case_insensitive: Treat variable names case-insensitively
            (default: on Windows).
    """

    def __init__(
        self,
        executable: str = DEFAULT_EXECUTABLE,
        executable_path: str = DEFAULT_EXECUTABLE_PATH,
        *,
        machine_env: EnvSource | None = None,
        user_env: EnvSource | None = None,
        base_env: EnvSource | None = None,
        case_insensitive: bool | None = None,
    ):
        default_machine, default_user = default_sources()
        self._executable = executable
        self._executable_path = executable_path
        self._machine_env = machine_env or default_machine
        self._user_env = user_env or default_user
        self._base_env = base_env or (lambda: dict(os.environ))
        self._case_insensitive = os.name == "nt" if case_insensitive is None else case_insensitive

    @property
    def executable(self) -> str:
        return self._executable

    # ── Environment merge ───────────────────────────────────────

    def refreshed_environment(self) -> dict[str, str]:
        """Process environment with machine then user definitions merged in.

        Scalar variables: user overrides machine overrides process.
        PATH: machine entries, then user entries, then any entries only
        the current process had, de-duplicated in order.
        """
        base = dict(self._base_env())
        machine = self._read("machine", self._machine_env)
        user = self._read("user", self._user_env)

        env = dict(base)
        for scope in (machine, user):
            for name, value in scope.items():
                if self._same(name, "PATH"):
                    continue
                self._set(env, name, value)

        path_entries: list[str] = []
        for scope in (machine, user, base):
            raw = self._get(scope, "PATH")
            if raw:
                path_entries.extend(raw.split(os.pathsep))

        expanded = {name: self._expand(value, env) for name, value in env.items()}
        merged_path = _dedupe(self._expand(p, env) for p in path_entries)
        self._set(expanded, "PATH", os.pathsep.join(merged_path))
        return expanded

    # ── Resolution ──────────────────────────────────────────────

    def resolve(self) -> Resolution:
        """Locate the executable in the refreshed environment.

        Returns:
            ResolvedExecutable when found at the conventional location or
            on the merged PATH; Absent (with the bare name as fallback)
            otherwise.
        """
        env = self.refreshed_environment()

        conventional = ""
        if self._executable_path:
            conventional = os.path.expanduser(self._expand(self._executable_path, env))
            if Path(conventional).is_file():
                logger.info("Found %s at %s", self._executable, conventional)
                return ResolvedExecutable(path=conventional, environment=env)

        found = shutil.which(self._executable, path=self._get(env, "PATH") or None)
        if found:
            logger.info("Found %s on refreshed PATH: %s", self._executable, found)
            return ResolvedExecutable(path=found, environment=env)

        reason = f"'{self._executable}' not found"
        if conventional:
            reason += f" at {conventional}"
        reason += " or on the refreshed PATH"
        logger.warning("%s; falling back to bare name", reason)
        return Absent(fallback=self._executable, reason=reason, environment=env)

    # ── Helpers ─────────────────────────────────────────────────

    def _read(self, scope: str, source: EnvSource) -> dict[str, str]:
        try:
            return dict(source())
        except OSError as e:
            logger.warning("Cannot read %s environment: %s", scope, e)
            return {}

    def _same(self, a: str, b: str) -> bool:
        return a.upper() == b.upper() if self._case_insensitive else a == b

    def _key(self, env: Mapping[str, str], name: str) -> str:
        for existing in env:
            if self._same(existing, name):
                return existing
        return name

    def _get(self, env: Mapping[str, str], name: str) -> str:
        return env.get(self._key(env, name), "")

    def _set(self, env: dict[str, str], name: str, value: str) -> None:
        env[self._key(env, name)] = value

    def _expand(self, value: str, env: Mapping[str, str]) -> str:
        def replace(match: re.Match) -> str:
            name = match.group(1)
            key = self._key(env, name)
            return env[key] if key in env else match.group(0)

        return _PERCENT_VAR.sub(replace, value)


def _dedupe(entries) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for entry in entries:
        entry = entry.strip()
        if not entry:
            continue
        marker = os.path.normcase(entry)
        if marker in seen:
            continue
        seen.add(marker)
        out.append(entry)
    return out
