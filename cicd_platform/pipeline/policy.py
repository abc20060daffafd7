"""
Branch-gated stage policy.

Decides, for a branch name, which pipeline stages execute and what a stage
failure does to the build:

    Stage                              develop  test   prod
    build / test / static-analysis     yes      yes    yes
    quality-gate                       -        -      yes (blocking)
    dependency-scan / container-scan   -        yes    yes (blocking on HIGH/CRITICAL)
    image-build / image-push           -        yes    yes
    artifact-archive                   -        yes    -
    deployment-info                    -        yes    yes

Branches outside the table get the develop row.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional

from ..models.pipeline import Branch, BuildContext, StageName


class FailureMode(Enum):
    """What a failed stage does to the pipeline."""
    ABORT = "abort"        # build fails, remaining stages are skipped
    UNSTABLE = "unstable"  # stage marked unstable, pipeline continues
    IGNORE = "ignore"      # logged as a warning only


BASE_STAGES = frozenset({
    StageName.BUILD,
    StageName.TEST,
    StageName.STATIC_ANALYSIS,
})

SECURITY_SCAN_STAGES = (StageName.DEPENDENCY_SCAN, StageName.CONTAINER_SCAN)

# Trivy severities that block a prod build
BLOCKING_SEVERITIES = ("HIGH", "CRITICAL")

# OWASP Dependency-Check CVSS threshold matching HIGH
BLOCKING_CVSS = 7


@dataclass(frozen=True)
class BranchPolicy:
    """Stage policy for one branch."""
    name: str
    enabled_stages: FrozenSet[StageName]
    blocking_scans: bool = False
    failure_modes: Dict[StageName, FailureMode] = field(default_factory=dict)

    @property
    def stages(self) -> List[StageName]:
        """Enabled stages in execution order."""
        return [stage for stage in StageName if stage in self.enabled_stages]

    def enabled(self, stage: StageName) -> bool:
        return stage in self.enabled_stages

    def failure_mode(self, stage: StageName) -> FailureMode:
        return self.failure_modes.get(stage, FailureMode.ABORT)


POLICY_TABLE: Dict[Branch, BranchPolicy] = {
    Branch.DEVELOP: BranchPolicy(
        name=Branch.DEVELOP.value,
        enabled_stages=BASE_STAGES,
    ),
    Branch.TEST: BranchPolicy(
        name=Branch.TEST.value,
        enabled_stages=BASE_STAGES | {
            StageName.DEPENDENCY_SCAN,
            StageName.CONTAINER_SCAN,
            StageName.IMAGE_BUILD,
            StageName.IMAGE_PUSH,
            StageName.ARTIFACT_ARCHIVE,
            StageName.DEPLOYMENT_INFO,
        },
        blocking_scans=False,
        failure_modes={StageName.CONTAINER_SCAN: FailureMode.UNSTABLE},
    ),
    Branch.PROD: BranchPolicy(
        name=Branch.PROD.value,
        enabled_stages=BASE_STAGES | {
            StageName.QUALITY_GATE,
            StageName.DEPENDENCY_SCAN,
            StageName.CONTAINER_SCAN,
            StageName.IMAGE_BUILD,
            StageName.IMAGE_PUSH,
            StageName.DEPLOYMENT_INFO,
        },
        blocking_scans=True,
    ),
}

OTHER_BRANCH_POLICY = BranchPolicy(name="other", enabled_stages=BASE_STAGES)


def policy_for(branch_name: str) -> BranchPolicy:
    """Look up the stage policy for a branch name."""
    branch = Branch.parse(branch_name)
    if branch is None:
        return OTHER_BRANCH_POLICY
    return POLICY_TABLE[branch]


def branches_for(stage: StageName) -> List[str]:
    """Branches on which a stage is gated on; empty when it runs everywhere."""
    if stage in BASE_STAGES:
        return []
    return [branch.value for branch, policy in POLICY_TABLE.items() if policy.enabled(stage)]


def image_tags(context: BuildContext) -> List[str]:
    """Image tags published for a build (``test-{build}`` or the three prod tags)."""
    return context.image_tags


def scan_blocking(branch: Optional[Branch]) -> bool:
    """Whether HIGH/CRITICAL findings fail the scan commands on this branch."""
    if branch is None:
        return False
    return POLICY_TABLE[branch].blocking_scans
