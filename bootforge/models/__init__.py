"""Bootforge data models — all Pydantic v2, frozen where they are values."""

from bootforge.models.artifacts import Artifact, ArtifactStamp
from bootforge.models.config import (
    BootloaderPin,
    PayloadFile,
    PipelineConfig,
    load_pipeline_config,
)
from bootforge.models.disk import (
    NEXT_STATE,
    PROVISION_SEQUENCE,
    DiskImage,
    LoopDevice,
    MountPoint,
    PartitionLayout,
    ProvisionState,
)
from bootforge.models.profile import Accelerator, DebugMode, Medium, RunProfile
from bootforge.models.stages import (
    BuildReport,
    StageDefinition,
    StageOutcome,
    StageState,
)

__all__ = [
    # artifacts
    "Artifact",
    "ArtifactStamp",
    # config
    "BootloaderPin",
    "PayloadFile",
    "PipelineConfig",
    "load_pipeline_config",
    # disk
    "DiskImage",
    "LoopDevice",
    "MountPoint",
    "PartitionLayout",
    "ProvisionState",
    "PROVISION_SEQUENCE",
    "NEXT_STATE",
    # profile
    "Accelerator",
    "DebugMode",
    "Medium",
    "RunProfile",
    # stages
    "BuildReport",
    "StageDefinition",
    "StageOutcome",
    "StageState",
]
