"""Branch-gated CI pipeline."""

from .policy import (
    BranchPolicy,
    FailureMode,
    POLICY_TABLE,
    branches_for,
    image_tags,
    policy_for,
    scan_blocking,
)
from .reports import ScanSummary, summarize_dependency_check, summarize_trivy
from .runner import PipelineRunner, execution_groups, run_pipeline
from .stages import PipelineStages

__all__ = [
    "BranchPolicy",
    "FailureMode",
    "POLICY_TABLE",
    "branches_for",
    "image_tags",
    "policy_for",
    "scan_blocking",
    "ScanSummary",
    "summarize_dependency_check",
    "summarize_trivy",
    "PipelineRunner",
    "PipelineStages",
    "execution_groups",
    "run_pipeline",
]
