"""
Pipeline models for the CI/CD platform.
Build environment of a single run plus the per-stage and final results.
"""

from enum import Enum
from typing import Optional, List, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime


class Branch(Enum):
    """Branches with their own pipeline policy."""
    DEVELOP = "develop"
    TEST = "test"
    PROD = "prod"

    @classmethod
    def parse(cls, name: str) -> Optional["Branch"]:
        """Map a branch name (optionally ref-qualified) to a policy branch."""
        if not name:
            return None
        for prefix in ("refs/heads/", "origin/"):
            if name.startswith(prefix):
                name = name[len(prefix):]
        try:
            return cls(name)
        except ValueError:
            return None


class StageName(Enum):
    """Pipeline stages, in execution order."""
    BUILD = "build"
    TEST = "test"
    STATIC_ANALYSIS = "static-analysis"
    QUALITY_GATE = "quality-gate"
    DEPENDENCY_SCAN = "dependency-scan"
    CONTAINER_SCAN = "container-scan"
    IMAGE_BUILD = "image-build"
    IMAGE_PUSH = "image-push"
    ARTIFACT_ARCHIVE = "artifact-archive"
    DEPLOYMENT_INFO = "deployment-info"

    @property
    def title(self) -> str:
        return self.value.replace("-", " ").title()


class StageStatus(Enum):
    """Status of a single stage."""
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    UNSTABLE = "unstable"
    FAILED = "failed"
    SKIPPED = "skipped"


class PipelineStatus(Enum):
    """Overall pipeline status."""
    SUCCESS = "success"
    UNSTABLE = "unstable"  # Non-fatal stage problems (quality gate timeout, test-branch scan findings)
    FAILED = "failed"


@dataclass
class BuildContext:
    """Environment of one pipeline execution."""
    branch_name: str
    build_number: int
    base_version: str = "1.0"
    image_name: str = "microservice-demo"
    registry: str = "localhost:5000"
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def branch(self) -> Optional[Branch]:
        return Branch.parse(self.branch_name)

    @property
    def version(self) -> str:
        return f"{self.base_version}.{self.build_number}"

    @property
    def timestamp(self) -> str:
        return self.started_at.strftime("%Y%m%d%H%M%S")

    @property
    def image(self) -> str:
        """Repository part of the image reference."""
        if self.registry:
            return f"{self.registry}/{self.image_name}"
        return self.image_name

    @property
    def image_tags(self) -> List[str]:
        """Tags pushed for this build; empty for branches that do not publish."""
        if self.branch == Branch.TEST:
            return [f"test-{self.build_number}"]
        if self.branch == Branch.PROD:
            return [f"prod-{self.version}", "latest", f"prod-{self.timestamp}"]
        return []

    @property
    def image_refs(self) -> List[str]:
        return [f"{self.image}:{tag}" for tag in self.image_tags]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "branch": self.branch_name,
            "build_number": self.build_number,
            "version": self.version,
            "timestamp": self.timestamp,
            "image": self.image,
            "image_tags": self.image_tags,
        }


@dataclass
class StageResult:
    """Result of a single pipeline stage."""
    stage: StageName
    status: StageStatus = StageStatus.PENDING

    # Timing
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    # Details
    message: str = ""
    outputs: Dict[str, Any] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status in (StageStatus.SUCCESS, StageStatus.SKIPPED)

    def finalize(self) -> "StageResult":
        """Stamp finish time and duration."""
        self.finished_at = datetime.now()
        self.duration_seconds = (self.finished_at - self.started_at).total_seconds()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "status": self.status.value,
            "message": self.message,
            "duration_seconds": self.duration_seconds,
            "outputs": self.outputs,
            "errors": self.errors,
            "warnings": self.warnings,
        }


@dataclass
class PipelineReport:
    """
    Complete pipeline execution report.
    This is the final output of a pipeline run.
    """
    pipeline_id: str
    context: BuildContext

    status: PipelineStatus = PipelineStatus.SUCCESS

    # Timing
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None
    duration_seconds: float = 0.0

    # Stage results, insertion-ordered
    stages: Dict[StageName, StageResult] = field(default_factory=dict)

    pushed_images: List[str] = field(default_factory=list)
    archived_files: List[str] = field(default_factory=list)

    def add_stage_result(self, result: StageResult) -> None:
        """Add a stage result to the report."""
        self.stages[result.stage] = result

    def stage_status(self, stage: StageName) -> Optional[StageStatus]:
        result = self.stages.get(stage)
        return result.status if result else None

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the pipeline execution."""
        return {
            "pipeline_id": self.pipeline_id,
            "branch": self.context.branch_name,
            "build_number": self.context.build_number,
            "status": self.status.value,
            "duration_seconds": self.duration_seconds,
            "stages": {
                stage.value: result.status.value
                for stage, result in self.stages.items()
            },
            "pushed_images": self.pushed_images,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to full dictionary."""
        return {
            "pipeline_id": self.pipeline_id,
            "context": self.context.to_dict(),
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": self.duration_seconds,
            "stages": [result.to_dict() for result in self.stages.values()],
            "pushed_images": self.pushed_images,
            "archived_files": self.archived_files,
        }

    def to_markdown(self) -> str:
        """Generate a markdown report."""
        lines = [
            f"# Pipeline Report: {self.context.branch_name} #{self.context.build_number}",
            "",
            f"**Pipeline ID:** `{self.pipeline_id}`",
            f"**Status:** {self.status.value.upper()}",
            f"**Duration:** {self.duration_seconds:.2f} seconds",
            "",
            "## Stages",
            "",
        ]

        icons = {
            StageStatus.SUCCESS: "✅",
            StageStatus.UNSTABLE: "⚠️",
            StageStatus.FAILED: "❌",
            StageStatus.SKIPPED: "⏭️",
        }
        for stage, result in self.stages.items():
            icon = icons.get(result.status, "•")
            lines.append(f"### {icon} {stage.title}")
            lines.append(f"- Duration: {result.duration_seconds:.2f}s")
            if result.message:
                lines.append(f"- {result.message}")
            for error in result.errors:
                lines.append(f"  - {error}")
            lines.append("")

        if self.pushed_images:
            lines.extend(["## Images", ""])
            for ref in self.pushed_images:
                lines.append(f"- `{ref}`")

        return "\n".join(lines)
