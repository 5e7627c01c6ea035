"""
Config check use case — validate provision.yml and report issues.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from provisioner.core.config.loader import CONFIG_FILE, ConfigError, find_config_file, load_config
from provisioner.core.models.config import PATH_PLACEHOLDER, ProvisionConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "work_dir": str(self.config.work_dir) if self.config else None,
            "uris": self.config.uris() if self.config else {},
        }


def check_config(config_path: Path | None = None) -> ConfigCheckResult:
    """Validate provisioning configuration and report issues.

    Args:
        config_path: Optional explicit path to provision.yml.

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    # Find config
    if config_path is None:
        config_path = find_config_file()

    if config_path is None:
        result.errors.append(f"No {CONFIG_FILE} found.")
        return result

    result.config_path = config_path

    # Load and validate
    try:
        config = load_config(config_path)
        result.config = config
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # Semantic checks
    for role, uri in config.uris().items():
        scheme = urlparse(uri).scheme.lower()
        if scheme == "http":
            result.warnings.append(f"{role} is fetched over plain http: {uri}")

    if config.settle_seconds == 0:
        result.warnings.append(
            "settle_seconds is 0: configuration may be applied before the store "
            "service has recovered."
        )

    if not any(PATH_PLACEHOLDER in arg for arg in config.commands.install):
        result.warnings.append(
            f"Install command has no {PATH_PLACEHOLDER} placeholder; "
            "the package path will be appended as the last argument."
        )

    if not config.configuration.accept_agreements:
        result.warnings.append(
            "configuration.accept_agreements is false: the package manager may "
            "wait for interactive confirmation."
        )

    filenames = [src.resolved_filename for src in config.bootstrap.ordered()]
    filenames.append(config.configuration.filename)
    dupes = {n for n in filenames if filenames.count(n) > 1}
    if dupes:
        result.errors.append(
            f"Artifacts would overwrite each other in the working area: {', '.join(sorted(dupes))}"
        )

    if not Path(config.work_root).is_dir():
        result.warnings.append(f"work_root does not exist yet: {config.work_root}")

    # Result
    result.valid = len(result.errors) == 0
    return result
