"""
Provision use case — load config, wire components, run the pipeline.

This is the vertical slice from ``provision run`` to a finished
PipelineReport: configuration errors are reported before anything is
touched, and SIGTERM is turned into a cooperative cancellation so the
working area is still cleaned up.
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from provisioner.adapters.base import Applier, Fetcher, Installer, Resolver, Restorer
from provisioner.core.config.loader import ConfigError, load_config
from provisioner.core.engine.orchestrator import Pipeline, PipelineReport
from provisioner.core.models.config import ProvisionConfig

logger = logging.getLogger(__name__)

# Beyond the pipeline's own 0 and 1: no run happened, or it was cut short.
EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130  # 128 + SIGINT, the shell convention


@dataclass
class Components:
    """The five pipeline seams, bound to concrete implementations."""

    fetcher: Fetcher
    installer: Installer
    restorer: Restorer
    resolver: Resolver
    applier: Applier


def build_components(config: ProvisionConfig, *, dry_run: bool = False) -> Components:
    """Real components for this machine, configured from ``config``.

    With ``dry_run`` no external process is started; artifacts are
    still fetched so locators are verified.
    """
    from provisioner.adapters.applier import ConfigurationApplier
    from provisioner.adapters.environment import EnvironmentResolver
    from provisioner.adapters.fetcher import ArtifactFetcher
    from provisioner.adapters.installer import PackageInstaller
    from provisioner.adapters.restorer import ServiceRestorer
    from provisioner.adapters.shell.command import CommandRunner

    runner = CommandRunner(dry_run=dry_run)
    commands = config.commands
    return Components(
        fetcher=ArtifactFetcher(timeout=config.timeouts.fetch),
        installer=PackageInstaller(runner, command=commands.install),
        restorer=ServiceRestorer(runner, trigger=commands.restore),
        resolver=EnvironmentResolver(commands.executable, commands.executable_path),
        applier=ConfigurationApplier(runner, timeout=config.timeouts.apply),
    )


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    report: PipelineReport | None = None
    config: ProvisionConfig | None = None
    config_path: Path | None = None
    dry_run: bool = False
    error: str | None = None

    @property
    def exit_code(self) -> int:
        if self.error is not None or self.report is None:
            return EXIT_CONFIG_ERROR
        if self.report.cancelled and not self.report.fatal:
            return EXIT_CANCELLED
        return self.report.exit_code

    def to_dict(self) -> dict:
        result: dict = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            return result

        result["config_path"] = str(self.config_path) if self.config_path else None
        result["dry_run"] = self.dry_run
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def run_provision(
    config_path: Path | None = None,
    *,
    dry_run: bool = False,
    settle_seconds: float | None = None,
    work_root: str | None = None,
    components: Components | None = None,
    sleep: Callable[[float], None] | None = None,
) -> ProvisionResult:
    """Run the full provisioning pipeline once.

    Args:
        config_path: Optional explicit path to provision.yml.
        dry_run: Fetch artifacts but do not start any external process.
        settle_seconds: Override the configured settle delay.
        work_root: Override the configured working-area parent directory.
        components: Pre-built components (tests); default builds real ones.
        sleep: Settle-delay function; default ``time.sleep``
            (logged and skipped under ``dry_run``).

    Returns:
        ProvisionResult with the pipeline report, or an error when the
        configuration could not be loaded.
    """
    result = ProvisionResult(dry_run=dry_run)

    # ── Load config ──────────────────────────────────────────────
    try:
        config = load_config(
            config_path,
            overrides={"settle_seconds": settle_seconds, "work_root": work_root},
        )
    except ConfigError as e:
        result.error = str(e)
        return result

    result.config = config
    result.config_path = config_path

    # ── Wire components ──────────────────────────────────────────
    if components is None:
        components = build_components(config, dry_run=dry_run)
    if sleep is None:
        sleep = _dry_run_sleep if dry_run else time.sleep

    pipeline = Pipeline(
        config,
        fetcher=components.fetcher,
        installer=components.installer,
        restorer=components.restorer,
        resolver=components.resolver,
        applier=components.applier,
        sleep=sleep,
    )

    # ── Run ──────────────────────────────────────────────────────
    with _cancel_on_sigterm(pipeline):
        result.report = pipeline.run()

    return result


def _dry_run_sleep(seconds: float) -> None:
    logger.info("[dry-run] would wait %.1fs", seconds)


@contextmanager
def _cancel_on_sigterm(pipeline: Pipeline) -> Iterator[None]:
    """Route SIGTERM to ``pipeline.request_cancel`` while running."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def handler(signum, frame):
        pipeline.request_cancel()

    previous = signal.signal(signal.SIGTERM, handler)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)
