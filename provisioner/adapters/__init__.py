"""Adapters — bindings to the network, the OS installer and the package manager.

Public re-exports for convenient access.
"""

from provisioner.adapters.applier import ConfigurationApplier
from provisioner.adapters.base import Applier, Fetcher, Installer, Resolver, Restorer
from provisioner.adapters.environment import EnvironmentResolver
from provisioner.adapters.fetcher import ArtifactFetcher
from provisioner.adapters.installer import PackageInstaller
from provisioner.adapters.restorer import ServiceRestorer
from provisioner.adapters.shell.command import CommandResult, CommandRunner

__all__ = [
    "Applier",
    "ArtifactFetcher",
    "CommandResult",
    "CommandRunner",
    "ConfigurationApplier",
    "EnvironmentResolver",
    "Fetcher",
    "Installer",
    "PackageInstaller",
    "Resolver",
    "Restorer",
    "ServiceRestorer",
]
