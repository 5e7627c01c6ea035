"""
Configuration loader — reads provision.yml into a ProvisionConfig.

Reads YAML, validates against the Pydantic schema, and returns a
typed config. Every failure surfaces as ConfigError naming the file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Default config filename
CONFIG_FILE = "provision.yml"


class ConfigError(Exception):
    """Raised when provisioning configuration is invalid or missing."""


def find_config_file(start_dir: Path | None = None) -> Path | None:
    """Search for provision.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to provision.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _format_validation_error(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "<root>"
        parts.append(f"{loc}: {item.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_config(data: Any, *, source: str = "<data>") -> ProvisionConfig:
    """Validate an already-parsed mapping.

    The mapping may be flat or wrapped under a ``provision`` key.

    Raises:
        ConfigError: If the data does not describe a valid configuration.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {source}, got {type(data).__name__}")

    if isinstance(data.get("provision"), dict):
        data = data["provision"]

    try:
        return ProvisionConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {source}: {_format_validation_error(e)}") from e


def load_config(
    path: Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ProvisionConfig:
    """Load and validate provisioning configuration.

    Args:
        path: Explicit path to provision.yml. If None, searches upward.
        overrides: Top-level keys replacing file values (CLI options).
            ``None`` values are ignored.

    Returns:
        Validated ProvisionConfig.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_config_file()

    if path is None:
        raise ConfigError(f"No {CONFIG_FILE} found. Create one or specify --config.")

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading provision config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if isinstance(data, dict) and overrides:
        target = data["provision"] if isinstance(data.get("provision"), dict) else data
        for key, value in overrides.items():
            if value is not None:
                target[key] = value

    config = parse_config(data, source=str(path))
    logger.info("Loaded provision config from %s (work dir %s)", path, config.work_dir)
    return config
