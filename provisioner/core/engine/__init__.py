"""Engine — working area lifecycle and the provisioning pipeline."""

from provisioner.core.engine.orchestrator import Pipeline, PipelineReport
from provisioner.core.engine.workspace import WorkingArea

__all__ = [
    "Pipeline",
    "PipelineReport",
    "WorkingArea",
]
