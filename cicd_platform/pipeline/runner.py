"""
Pipeline Runner - executes the branch-gated stages of one build.
"""

import asyncio
from datetime import datetime
from typing import List, Optional

from ..config import PipelineSettings, SonarQubeConfig, get_config
from ..core.errors import StageFailure
from ..core.executor import CommandExecutor
from ..core.logger import StageLogger
from ..integrations.sonarqube import SonarQubeClient
from ..models.pipeline import (
    BuildContext,
    PipelineReport,
    PipelineStatus,
    StageName,
    StageResult,
    StageStatus,
)
from ..utils.helpers import generate_id
from .policy import BranchPolicy, FailureMode, SECURITY_SCAN_STAGES, policy_for
from .stages import PipelineStages


def execution_groups() -> List[List[StageName]]:
    """Stages grouped by execution step; the two security scans share one step."""
    groups: List[List[StageName]] = []
    for stage in StageName:
        if stage in SECURITY_SCAN_STAGES and groups and groups[-1][0] in SECURITY_SCAN_STAGES:
            groups[-1].append(stage)
        else:
            groups.append([stage])
    return groups


class PipelineRunner:
    """
    Runs a build through the stages its branch policy enables:
    1. Build, test, static analysis (every branch)
    2. Quality gate (prod)
    3. Dependency + container scans in parallel (test, prod)
    4. Image build and push (test, prod)
    5. Artifact archive (test) and deployment info (test, prod)
    """

    def __init__(
        self,
        settings: PipelineSettings = None,
        sonar: SonarQubeConfig = None,
        executor: CommandExecutor = None,
        sonar_client: Optional[SonarQubeClient] = None,
    ):
        config = get_config()
        self.settings = settings or config.pipeline
        self.logger = StageLogger("Pipeline")
        self.stages = PipelineStages(
            self.settings,
            sonar or config.sonarqube,
            executor=executor,
            sonar_client=sonar_client,
            logger=self.logger,
        )
        self._handlers = self.stages.handlers()

    async def run(self, context: BuildContext) -> PipelineReport:
        """
        Execute the pipeline for one build.

        Args:
            context: Branch, build number and image settings of the build

        Returns:
            PipelineReport with a result for every stage
        """
        policy = policy_for(context.branch_name)
        report = PipelineReport(pipeline_id=generate_id("build"), context=context)
        aborted = False
        logger = self.logger.bind(branch=context.branch_name, build=context.build_number)
        self.stages.logger = logger

        logger.step(
            f"Starting pipeline {report.pipeline_id} for {context.branch_name} "
            f"#{context.build_number} (policy: {policy.name})",
            1,
        )

        for step_num, group in enumerate(execution_groups(), start=2):
            if aborted:
                for stage in group:
                    self._skip_stage(report, stage, "Skipped after an earlier failure")
                continue

            enabled = [stage for stage in group if policy.enabled(stage)]
            for stage in group:
                if stage not in enabled:
                    self._skip_stage(report, stage, f"Not enabled for branch {context.branch_name}")
            if not enabled:
                continue

            logger.step(" + ".join(stage.title for stage in enabled), step_num)
            # A parallel group waits for every member before moving on
            results = await asyncio.gather(
                *(self._run_stage(stage, policy, context, report, logger) for stage in enabled)
            )
            for result in results:
                report.add_stage_result(result)
                if result.status == StageStatus.FAILED:
                    aborted = True

        report.status = self._determine_status(report)
        self._finalize_report(report)

        if report.status == PipelineStatus.FAILED:
            logger.error(f"Pipeline {report.pipeline_id} failed")
        else:
            logger.success(f"Pipeline {report.pipeline_id} completed with status: {report.status.value}")
        return report

    async def _run_stage(
        self,
        stage: StageName,
        policy: BranchPolicy,
        context: BuildContext,
        report: PipelineReport,
        logger: StageLogger,
    ) -> StageResult:
        """Run one stage and apply the branch's failure mode to any error."""
        logger = logger.bind(stage=stage.value)
        result = StageResult(stage=stage, status=StageStatus.RUNNING)

        try:
            await self._handlers[stage](context, result, report)
            if result.status == StageStatus.RUNNING:
                result.status = StageStatus.SUCCESS
        except StageFailure as e:
            self._apply_failure(result, policy.failure_mode(stage), str(e), logger)
        except Exception as e:
            logger.error(f"{stage.title} raised {type(e).__name__}: {e}", e)
            self._apply_failure(result, policy.failure_mode(stage), f"{type(e).__name__}: {e}", logger)

        if result.status == StageStatus.SUCCESS:
            logger.success(f"{stage.title}: {result.message or 'done'}")
        elif result.status == StageStatus.UNSTABLE:
            logger.warning(f"{stage.title} unstable: {result.message}")

        return result.finalize()

    def _apply_failure(self, result: StageResult, mode: FailureMode, error: str, logger: StageLogger) -> None:
        result.errors.append(error)
        if mode == FailureMode.ABORT:
            result.status = StageStatus.FAILED
            result.message = error
            logger.error(f"{result.stage.title} failed: {error}")
        elif mode == FailureMode.UNSTABLE:
            result.status = StageStatus.UNSTABLE
            result.message = f"Marked unstable: {error}"
        else:
            result.status = StageStatus.SUCCESS
            result.warnings.append(f"Ignored failure: {error}")
            result.message = "Failure ignored"

    def _skip_stage(self, report: PipelineReport, stage: StageName, message: str) -> None:
        """Mark a stage as skipped."""
        result = StageResult(stage=stage, status=StageStatus.SKIPPED, message=message)
        report.add_stage_result(result.finalize())

    def _finalize_report(self, report: PipelineReport) -> PipelineReport:
        report.finished_at = datetime.now()
        report.duration_seconds = (report.finished_at - report.started_at).total_seconds()
        return report

    def _determine_status(self, report: PipelineReport) -> PipelineStatus:
        statuses = [result.status for result in report.stages.values()]
        if StageStatus.FAILED in statuses:
            return PipelineStatus.FAILED
        if StageStatus.UNSTABLE in statuses:
            return PipelineStatus.UNSTABLE
        return PipelineStatus.SUCCESS


async def run_pipeline(
    branch: str,
    build_number: int,
    settings: PipelineSettings = None,
) -> PipelineReport:
    """
    Run the pipeline for a branch using the global configuration.

    Args:
        branch: Branch name (``develop``, ``test``, ``prod`` or any other)
        build_number: Build number used for tags and version
        settings: Optional pipeline settings override

    Returns:
        PipelineReport
    """
    config = get_config()
    settings = settings or config.pipeline
    context = BuildContext(
        branch_name=branch,
        build_number=build_number,
        base_version=settings.base_version,
        image_name=settings.image_name,
        registry=config.registry.host,
    )
    return await PipelineRunner(settings=settings).run(context)
