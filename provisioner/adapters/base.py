"""
Component contracts — the seams between the orchestrator and the OS.

The orchestrator only talks to components through these protocols,
never to subprocess, urllib or the registry directly. Success returns
normally; failure raises the component's error family from
``provisioner.core.errors``.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from provisioner.core.models.resolution import Resolution


class Fetcher(Protocol):
    def fetch(self, locator: str, destination: Path | str) -> None:
        """Write the artifact at ``locator`` to ``destination``. Raises FetchError."""


class Installer(Protocol):
    def install(self, package_path: Path | str) -> None:
        """Register one package with the OS. Raises InstallError."""


class Restorer(Protocol):
    def restore(self, trigger: Sequence[str] | None = None) -> int:
        """Fire the service restore trigger. Raises RestoreError."""


class Resolver(Protocol):
    def resolve(self) -> Resolution:
        """Locate the package-manager executable. Never raises for "not found"."""


class Applier(Protocol):
    def apply(
        self,
        executable: Resolution,
        config_document: Path | str,
        *,
        accept_agreements: bool = True,
    ) -> None:
        """Apply the configuration document. Raises ApplyError."""
