"""
Stage results — the outcome contract between stages and the orchestrator.

Every stage produces exactly one StageResult. Results are consumed by
the orchestrator for flow decisions and by the CLI for reporting;
they are never persisted.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class Stage(StrEnum):
    """Pipeline states, in execution order."""

    INIT = "init"
    CLEANUP_PRE = "cleanup_pre"
    BOOTSTRAP = "bootstrap"
    SERVICE_RESTORE = "service_restore"
    ENV_REFRESH = "env_refresh"
    CONFIG_APPLY = "config_apply"
    CLEANUP_POST = "cleanup_post"
    TERMINAL = "terminal"


# Stages whose failure makes the whole run fail (exit code 1).
FATAL_STAGES = frozenset({Stage.INIT, Stage.CLEANUP_PRE, Stage.BOOTSTRAP})


class StageResult(BaseModel):
    """Outcome of one stage.

    ``warnings`` collects non-fatal issues noticed while the stage
    still succeeded (e.g. an already-installed package).
    """

    stage: Stage
    outcome: Literal["ok", "failed", "skipped"] = "ok"
    diagnostic: str | None = None
    warnings: list[str] = Field(default_factory=list)

    started_at: str = Field(default_factory=_now_iso)
    duration_ms: int = 0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.outcome == "ok"

    @property
    def failed(self) -> bool:
        return self.outcome == "failed"

    @property
    def fatal(self) -> bool:
        """A failure in a stage the rest of the pipeline depends on."""
        return self.failed and self.stage in FATAL_STAGES

    @classmethod
    def success(cls, stage: Stage, **kwargs: Any) -> StageResult:
        return cls(stage=stage, outcome="ok", **kwargs)

    @classmethod
    def failure(cls, stage: Stage, diagnostic: str, **kwargs: Any) -> StageResult:
        return cls(stage=stage, outcome="failed", diagnostic=diagnostic, **kwargs)

    @classmethod
    def skip(cls, stage: Stage, reason: str = "", **kwargs: Any) -> StageResult:
        return cls(stage=stage, outcome="skipped", diagnostic=reason or None, **kwargs)
