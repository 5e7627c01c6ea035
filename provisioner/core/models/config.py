"""
Provision configuration — loaded from provision.yml.

Only the four artifact URLs are required. Everything else has a
default aimed at a stock Windows image: App Installer dependencies
registered with ``Add-AppxPackage``, the store service restored with
``wsreset.exe -i``, and ``winget configure`` applying the document.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from provisioner.core.models.artifact import ArtifactSource, check_filename, check_url

# Registration order of the bootstrap artifacts: shared framework first,
# then the UI framework, and the package manager's own installer last.
BOOTSTRAP_ORDER = ("framework", "ui_framework", "package_manager")

PATH_PLACEHOLDER = "{path}"

DEFAULT_INSTALL_COMMAND = [
    "powershell.exe",
    "-NoProfile",
    "-NonInteractive",
    "-Command",
    "Add-AppxPackage -Path '{path}'",
]
DEFAULT_RESTORE_COMMAND = ["wsreset.exe", "-i"]
DEFAULT_EXECUTABLE = "winget"
DEFAULT_EXECUTABLE_PATH = r"%LOCALAPPDATA%\Microsoft\WindowsApps\winget.exe"


class BootstrapArtifacts(BaseModel):
    """The package manager and its dependencies."""

    framework: ArtifactSource
    ui_framework: ArtifactSource
    package_manager: ArtifactSource

    @model_validator(mode="before")
    @classmethod
    def _name_by_role(cls, data):
        # Entries may be a bare URL; the role doubles as the artifact name.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for role in BOOTSTRAP_ORDER:
            entry = data.get(role)
            if isinstance(entry, str):
                data[role] = {"name": role, "url": entry}
            elif isinstance(entry, dict) and "name" not in entry:
                data[role] = {**entry, "name": role}
        return data

    def ordered(self) -> list[ArtifactSource]:
        """Artifacts in mandatory registration order."""
        return [getattr(self, key) for key in BOOTSTRAP_ORDER]


class ConfigurationDocument(BaseModel):
    """The declarative document handed to the package manager."""

    url: str
    filename: str = "configuration.dsc.yaml"
    accept_agreements: bool = True

    @model_validator(mode="before")
    @classmethod
    def _bare_url(cls, data):
        if isinstance(data, str):
            return {"url": data}
        return data

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return check_url(value)

    @field_validator("filename")
    @classmethod
    def _check_filename(cls, value: str) -> str:
        return check_filename(value)

    def as_source(self) -> ArtifactSource:
        return ArtifactSource(name="configuration", url=self.url, filename=self.filename)


class Commands(BaseModel):
    """External command contracts (argv templates)."""

    install: list[str] = Field(default_factory=lambda: list(DEFAULT_INSTALL_COMMAND))
    restore: list[str] = Field(default_factory=lambda: list(DEFAULT_RESTORE_COMMAND))
    executable: str = DEFAULT_EXECUTABLE
    executable_path: str = DEFAULT_EXECUTABLE_PATH

    @field_validator("install", "restore")
    @classmethod
    def _non_empty(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("command must not be empty")
        return value


class Timeouts(BaseModel):
    """Optional bounds (seconds) on network fetches and the apply call."""

    fetch: float | None = 300.0
    apply: float | None = None


class ProvisionConfig(BaseModel):
    """Root configuration for one provisioning run."""

    version: int = 1

    work_root: str = Field(default_factory=tempfile.gettempdir)
    work_dir_name: str = "provisioner-work"
    settle_seconds: float = 30.0

    bootstrap: BootstrapArtifacts
    configuration: ConfigurationDocument
    commands: Commands = Field(default_factory=Commands)
    timeouts: Timeouts = Field(default_factory=Timeouts)

    @field_validator("settle_seconds")
    @classmethod
    def _non_negative(cls, value: float) -> float:
        if value < 0:
            raise ValueError("settle_seconds must be >= 0")
        return value

    @field_validator("work_dir_name")
    @classmethod
    def _plain_name(cls, value: str) -> str:
        if not value or Path(value).name != value or value in (".", ".."):
            raise ValueError(f"work_dir_name must be a plain directory name, got {value!r}")
        return value

    @property
    def work_dir(self) -> Path:
        return Path(self.work_root) / self.work_dir_name

    def uris(self) -> dict[str, str]:
        """All remote locators keyed by role."""
        uris = {key: getattr(self.bootstrap, key).url for key in BOOTSTRAP_ORDER}
        uris["configuration"] = self.configuration.url
        return uris
