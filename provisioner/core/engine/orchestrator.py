"""
Pipeline orchestrator — the provisioning state machine.

Linear, no back-edges:

    init → cleanup_pre → bootstrap → service_restore → env_refresh
         → config_apply → cleanup_post → terminal

Failure policy per stage:
    init, cleanup_pre, bootstrap   fatal: remaining stages are skipped
    service_restore, env_refresh,
    config_apply                   warning: the next stage still runs
    cleanup_post                   always runs, on every exit path

Only a fatal failure makes the run fail (exit code 1). The package
manager is a hard prerequisite for everything after bootstrap, which
is why bootstrap and the stages it depends on are the fatal ones.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime

from provisioner.adapters.base import Applier, Fetcher, Installer, Resolver, Restorer
from provisioner.core.engine.workspace import WorkingArea
from provisioner.core.errors import InstallError, ProvisionError
from provisioner.core.models.artifact import check_filename, check_url
from provisioner.core.models.config import ProvisionConfig
from provisioner.core.models.resolution import Absent, Resolution
from provisioner.core.models.result import Stage, StageResult
from provisioner.core.observability.logging_config import bind_run_id

logger = logging.getLogger(__name__)

StageHandler = Callable[[], StageResult]


@dataclass
class PipelineReport:
    """Everything a run produced, in stage order."""

    run_id: str = ""
    work_dir: str = ""
    stages: list[StageResult] = field(default_factory=list)
    cancelled: bool = False

    def get(self, stage: Stage) -> StageResult | None:
        for result in self.stages:
            if result.stage == stage:
                return result
        return None

    @property
    def fatal_stage(self) -> StageResult | None:
        for result in self.stages:
            if result.fatal:
                return result
        return None

    @property
    def fatal(self) -> bool:
        return self.fatal_stage is not None

    @property
    def warnings(self) -> list[str]:
        """Non-fatal failures and in-stage warnings, prefixed by stage."""
        out: list[str] = []
        for result in self.stages:
            for warning in result.warnings:
                out.append(f"{result.stage}: {warning}")
            if result.failed and not result.fatal:
                out.append(f"{result.stage}: {result.diagnostic}")
        return out

    @property
    def status(self) -> str:
        if self.fatal:
            return "failed"
        if self.cancelled:
            return "cancelled"
        if self.warnings:
            return "degraded"
        return "ok"

    @property
    def exit_code(self) -> int:
        """1 only when a fatal stage failed; warnings still exit 0."""
        return 1 if self.fatal else 0

    def to_dict(self) -> dict:
        fatal = self.fatal_stage
        return {
            "run_id": self.run_id,
            "work_dir": self.work_dir,
            "status": self.status,
            "exit_code": self.exit_code,
            "cancelled": self.cancelled,
            "fatal": (
                {"stage": fatal.stage.value, "diagnostic": fatal.diagnostic} if fatal else None
            ),
            "warnings": self.warnings,
            "stages": [r.model_dump(mode="json") for r in self.stages],
        }


def generate_run_id() -> str:
    """Generate a unique run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"prov-{now}-{short}"


class Pipeline:
    """Sequence the provisioning stages for one run.

    Components are injected; the pipeline never starts processes or
    opens URLs itself.

    Args:
        config: Validated provisioning configuration.
        fetcher, installer, restorer, resolver, applier: Stage components.
        sleep: Settle-delay function (injectable for tests).
        run_id: Optional explicit run identifier.
    """

    def __init__(
        self,
        config: ProvisionConfig,
        *,
        fetcher: Fetcher,
        installer: Installer,
        restorer: Restorer,
        resolver: Resolver,
        applier: Applier,
        sleep: Callable[[float], None] = time.sleep,
        run_id: str | None = None,
    ):
        self._config = config
        self._fetcher = fetcher
        self._installer = installer
        self._restorer = restorer
        self._resolver = resolver
        self._applier = applier
        self._sleep = sleep
        self._run_id = run_id or generate_run_id()
        self._area = WorkingArea(config.work_dir)
        self._resolution: Resolution | None = None
        self._cancel_requested = False

    def request_cancel(self) -> None:
        """Stop before the next stage boundary. Cleanup still runs."""
        logger.warning("Cancellation requested; stopping at the next stage boundary")
        self._cancel_requested = True

    # ── Run loop ────────────────────────────────────────────────

    def run(self) -> PipelineReport:
        with bind_run_id(self._run_id):
            return self._run()

    def _run(self) -> PipelineReport:
        report = PipelineReport(run_id=self._run_id, work_dir=str(self._area.path))
        sequence: list[tuple[Stage, StageHandler]] = [
            (Stage.INIT, self._init),
            (Stage.CLEANUP_PRE, self._cleanup_pre),
            (Stage.BOOTSTRAP, self._bootstrap),
            (Stage.SERVICE_RESTORE, self._service_restore),
            (Stage.ENV_REFRESH, self._env_refresh),
            (Stage.CONFIG_APPLY, self._config_apply),
        ]
        logger.info("=== Provisioning run %s ===", self._run_id)

        try:
            for index, (stage, handler) in enumerate(sequence):
                if self._cancel_requested:
                    report.cancelled = True
                    self._skip(report, sequence[index:], "cancelled")
                    break

                result = self._run_stage(stage, handler)
                report.stages.append(result)
                _log_result(result)

                if result.fatal:
                    self._skip(report, sequence[index + 1:], f"{stage} failed")
                    break
        except KeyboardInterrupt:
            logger.warning("Interrupted; cleaning up before exit")
            report.cancelled = True
            done = {r.stage for r in report.stages}
            self._skip(report, [s for s in sequence if s[0] not in done], "interrupted")
        finally:
            cleanup = self._run_stage(Stage.CLEANUP_POST, self._cleanup_post)
            report.stages.append(cleanup)
            _log_result(cleanup)

            report.stages.append(
                StageResult.success(Stage.TERMINAL, metadata={"status": report.status})
            )
            self._log_summary(report)

        return report

    def _run_stage(self, stage: Stage, handler: StageHandler) -> StageResult:
        logger.info("→ %s", stage)
        start = time.monotonic()
        try:
            result = handler()
        except ProvisionError as e:
            result = StageResult.failure(stage, str(e), metadata=e.to_dict())
        except Exception as e:
            logger.exception("Unexpected error in stage %s", stage)
            result = StageResult.failure(stage, f"unexpected error: {e}")
        result.duration_ms = int((time.monotonic() - start) * 1000)
        return result

    def _skip(
        self,
        report: PipelineReport,
        remaining: list[tuple[Stage, StageHandler]],
        reason: str,
    ) -> None:
        for stage, _handler in remaining:
            result = StageResult.skip(stage, reason)
            report.stages.append(result)
            _log_result(result)

    # ── Stages ──────────────────────────────────────────────────

    def _init(self) -> StageResult:
        problems: list[str] = []
        for role, uri in self._config.uris().items():
            try:
                check_url(uri or "")
            except ValueError as e:
                problems.append(f"{role}: {e}")
        filenames = {src.name: src.resolved_filename for src in self._config.bootstrap.ordered()}
        filenames["configuration"] = self._config.configuration.filename
        for name, filename in filenames.items():
            try:
                check_filename(filename)
            except ValueError as e:
                problems.append(f"{name}: {e}")
        if not str(self._config.work_root).strip():
            problems.append("work_root is empty")

        if problems:
            return StageResult.failure(
                Stage.INIT,
                "invalid configuration: " + "; ".join(problems),
            )
        return StageResult.success(Stage.INIT, metadata={"uris": self._config.uris()})

    def _cleanup_pre(self) -> StageResult:
        try:
            path = self._area.prepare()
        except OSError as e:
            return StageResult.failure(
                Stage.CLEANUP_PRE, f"cannot prepare working area {self._area.path}: {e}"
            )
        return StageResult.success(Stage.CLEANUP_PRE, metadata={"work_dir": str(path)})

    def _bootstrap(self) -> StageResult:
        artifacts = [
            source.to_artifact(self._area.path)
            for source in self._config.bootstrap.ordered()
        ]

        for artifact in artifacts:
            try:
                self._fetcher.fetch(artifact.source, artifact.path)
            except ProvisionError as e:
                return StageResult.failure(
                    Stage.BOOTSTRAP,
                    f"fetch {artifact.name} failed: {e}",
                    metadata={"artifact": artifact.name, **e.to_dict()},
                )

        warnings: list[str] = []
        installed: list[str] = []
        for artifact in artifacts:
            try:
                self._installer.install(artifact.path)
            except InstallError as e:
                if not e.is_conflict:
                    return StageResult.failure(
                        Stage.BOOTSTRAP,
                        f"install {artifact.name} failed: {e}",
                        metadata={"artifact": artifact.name, "installed": installed, **e.to_dict()},
                    )
                logger.warning("%s already present, continuing: %s", artifact.name, e.message)
                warnings.append(f"{artifact.name} already installed")
            installed.append(artifact.name)

        return StageResult.success(
            Stage.BOOTSTRAP,
            warnings=warnings,
            metadata={"installed": installed},
        )

    def _service_restore(self) -> StageResult:
        pid = self._restorer.restore()
        settle = self._config.settle_seconds
        if settle > 0:
            logger.info("Waiting %.1fs for the restored service to settle", settle)
            self._sleep(settle)
        return StageResult.success(
            Stage.SERVICE_RESTORE,
            metadata={"pid": pid, "settle_seconds": settle},
        )

    def _env_refresh(self) -> StageResult:
        # Until resolution succeeds, downstream falls back to the bare name.
        self._resolution = self._fallback("environment not refreshed")
        resolution = self._resolver.resolve()
        self._resolution = resolution

        if isinstance(resolution, Absent):
            return StageResult.success(
                Stage.ENV_REFRESH,
                warnings=[f"{resolution.reason}; using '{resolution.fallback}'"],
                metadata={"found": False, "executable": resolution.fallback},
            )
        return StageResult.success(
            Stage.ENV_REFRESH,
            metadata={"found": True, "executable": resolution.path},
        )

    def _config_apply(self) -> StageResult:
        document = self._config.configuration.as_source().to_artifact(self._area.path)
        self._fetcher.fetch(document.source, document.path)

        executable = self._resolution or self._fallback("environment not refreshed")
        self._applier.apply(
            executable,
            document.path,
            accept_agreements=self._config.configuration.accept_agreements,
        )
        return StageResult.success(
            Stage.CONFIG_APPLY,
            metadata={"executable": executable.locator, "document": document.name},
        )

    def _cleanup_post(self) -> StageResult:
        try:
            self._area.destroy()
        except OSError as e:
            return StageResult.failure(
                Stage.CLEANUP_POST, f"cannot remove working area {self._area.path}: {e}"
            )
        return StageResult.success(Stage.CLEANUP_POST)

    # ── Helpers ─────────────────────────────────────────────────

    def _fallback(self, reason: str) -> Absent:
        return Absent(fallback=self._config.commands.executable, reason=reason)

    def _log_summary(self, report: PipelineReport) -> None:
        fatal = report.fatal_stage
        if fatal is not None:
            logger.error("Provisioning FAILED at %s: %s", fatal.stage, fatal.diagnostic)
        for warning in report.warnings:
            logger.warning("warning — %s", warning)
        logger.info("=== Run %s finished: %s ===", report.run_id, report.status)


def _log_result(result: StageResult) -> None:
    if result.ok:
        logger.info("✓ %s (%d ms)", result.stage, result.duration_ms)
    elif result.failed and result.fatal:
        logger.error("✗ %s: %s", result.stage, result.diagnostic)
    elif result.failed:
        logger.warning("✗ %s: %s", result.stage, result.diagnostic)
    else:
        logger.info("⊘ %s: %s", result.stage, result.diagnostic or "skipped")
