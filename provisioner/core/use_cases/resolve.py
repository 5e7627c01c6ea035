"""
Resolve use case — locate the package manager without provisioning.

Useful after a run that ended with an "executable not found" warning:
it re-reads the environment definitions the same way ``env_refresh``
does and reports what a fresh run would use.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.base import Resolver
from provisioner.core.config.loader import ConfigError, find_config_file, load_config
from provisioner.core.models.config import Commands
from provisioner.core.models.resolution import Resolution


@dataclass
class ResolveResult:
    resolution: Resolution | None = None
    config_path: Path | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if self.error:
            return {"error": self.error}
        assert self.resolution is not None
        return {
            "found": self.resolution.found,
            "executable": self.resolution.locator,
            "reason": getattr(self.resolution, "reason", ""),
            "config_path": str(self.config_path) if self.config_path else None,
        }


def resolve_executable(
    config_path: Path | None = None,
    resolver: Resolver | None = None,
) -> ResolveResult:
    """Run only the environment refresh and executable lookup.

    Without a provision.yml the built-in executable name and install
    location are used.
    """
    result = ResolveResult()
    commands = Commands()

    try:
        if config_path is None:
            config_path = find_config_file()
        if config_path is not None:
            commands = load_config(config_path).commands
            result.config_path = config_path
    except ConfigError as e:
        result.error = str(e)
        return result

    if resolver is None:
        from provisioner.adapters.environment import EnvironmentResolver

        resolver = EnvironmentResolver(commands.executable, commands.executable_path)

    result.resolution = resolver.resolve()
    return result
