"""Data models for the CI/CD platform."""

from .pipeline import (
    Branch,
    BuildContext,
    PipelineReport,
    PipelineStatus,
    StageName,
    StageResult,
    StageStatus,
)

__all__ = [
    "Branch",
    "BuildContext",
    "PipelineReport",
    "PipelineStatus",
    "StageName",
    "StageResult",
    "StageStatus",
]
