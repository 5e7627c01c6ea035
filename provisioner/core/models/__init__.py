"""
Domain models for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import ProvisionConfig, Artifact, StageResult
"""

from provisioner.core.models.artifact import Artifact, ArtifactSource
from provisioner.core.models.config import (
    BootstrapArtifacts,
    Commands,
    ConfigurationDocument,
    ProvisionConfig,
    Timeouts,
)
from provisioner.core.models.resolution import Absent, Resolution, ResolvedExecutable
from provisioner.core.models.result import Stage, StageResult

__all__ = [
    # resolution.py
    "Absent",
    # artifact.py
    "Artifact",
    "ArtifactSource",
    # config.py
    "BootstrapArtifacts",
    "Commands",
    "ConfigurationDocument",
    "ProvisionConfig",
    "Resolution",
    "ResolvedExecutable",
    # result.py
    "Stage",
    "StageResult",
    "Timeouts",
]
