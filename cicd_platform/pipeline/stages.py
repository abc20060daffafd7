"""
Pipeline stage implementations.

Each stage shells out to the external tool that does the real work
(pip/pytest, sonar-scanner, dependency-check, trivy, docker) and records
what happened on its ``StageResult``. A failed step raises ``StageFailure``;
the runner decides what that means for the build.
"""

import json
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Dict, Optional

from ..config import PipelineSettings, SonarQubeConfig
from ..core.errors import QualityGateTimeout, SecurityError, StageFailure
from ..core.executor import CommandExecutor, CommandResult
from ..core.logger import StageLogger
from ..core.security import InputValidator
from ..integrations.sonarqube import SonarQubeClient
from ..models.pipeline import BuildContext, PipelineReport, StageName, StageResult, StageStatus
from .policy import BLOCKING_CVSS, scan_blocking
from .reports import summarize_dependency_check, summarize_trivy

StageHandler = Callable[[BuildContext, StageResult, PipelineReport], Awaitable[None]]

TRIVY_REPORT = "trivy-report.json"
DEPENDENCY_CHECK_REPORT = "dependency-check-report/dependency-check-report.json"


class PipelineStages:
    """The ten pipeline stages, bound to one workspace."""

    def __init__(
        self,
        settings: PipelineSettings,
        sonar: SonarQubeConfig,
        executor: Optional[CommandExecutor] = None,
        sonar_client: Optional[SonarQubeClient] = None,
        logger: Optional[StageLogger] = None,
    ):
        self.settings = settings
        self.sonar = sonar
        self.workspace = Path(settings.workspace_dir)
        self.logger = logger or StageLogger("Pipeline")
        self.executor = executor or CommandExecutor(working_dir=self.workspace, logger=self.logger)
        self._sonar_client = sonar_client

    @property
    def reports_dir(self) -> Path:
        return self.workspace / self.settings.reports_dir

    def handlers(self) -> Dict[StageName, StageHandler]:
        return {
            StageName.BUILD: self.build,
            StageName.TEST: self.test,
            StageName.STATIC_ANALYSIS: self.static_analysis,
            StageName.QUALITY_GATE: self.quality_gate,
            StageName.DEPENDENCY_SCAN: self.dependency_scan,
            StageName.CONTAINER_SCAN: self.container_scan,
            StageName.IMAGE_BUILD: self.image_build,
            StageName.IMAGE_PUSH: self.image_push,
            StageName.ARTIFACT_ARCHIVE: self.artifact_archive,
            StageName.DEPLOYMENT_INFO: self.deployment_info,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _command(self, key: str, context: BuildContext, **extra: str) -> str:
        values = {
            "project_key": self.settings.project_key,
            "sonar_url": self.sonar.url,
            "sonar_token": self.sonar.token,
            "image": context.image,
            "build_number": str(context.build_number),
            "version": context.version,
            "branch": context.branch_name,
        }
        values.update(extra)
        return self.settings.commands[key].format(**values).strip()

    async def _run_step(self, command: str, result: StageResult, step: str) -> CommandResult:
        """Run one command; raise StageFailure on a non-zero exit."""
        cmd_result = await self.executor.run(command, timeout=self.settings.command_timeout_seconds)
        result.outputs.setdefault("commands", []).append(cmd_result.to_dict()["command"])
        if not cmd_result.success:
            raise StageFailure(cmd_result.describe_failure(step), output=cmd_result.output)
        return cmd_result

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    async def build(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        await self._run_step(self._command("build", context), result, "Build")
        result.message = "Build completed"

    async def test(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)

        # Lint problems never fail the build
        lint = await self.executor.run(self._command("lint", context), timeout=self.settings.command_timeout_seconds)
        if not lint.success:
            result.warnings.append("Lint reported problems (ignored)")
            self.logger.warning("Lint reported problems, continuing")

        await self._run_step(self._command("test", context), result, "Tests")
        result.message = "Tests passed"

    async def static_analysis(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        await self._run_step(self._command("static_analysis", context), result, "SonarQube analysis")
        result.message = f"Analysis submitted for {self.settings.project_key}"

    async def quality_gate(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        client = self._sonar_client or SonarQubeClient(self.sonar.url, self.sonar.token)
        try:
            gate = await client.wait_for_quality_gate(
                self.settings.project_key,
                timeout=self.settings.quality_gate_timeout_seconds,
                poll_interval=self.settings.quality_gate_poll_seconds,
            )
        except Exception as e:
            # Not getting a gate result (timeout, outage, unreadable reply) marks
            # the build unstable; only a gate that reports ERROR fails it
            detail = str(e) if isinstance(e, QualityGateTimeout) else f"{type(e).__name__}: {e}"
            result.status = StageStatus.UNSTABLE
            result.message = "Quality gate check did not complete"
            result.warnings.append(detail)
            self.logger.warning(f"Quality gate check did not complete: {detail}")
            return
        finally:
            if self._sonar_client is None:
                await client.close()

        result.outputs["quality_gate"] = gate.to_dict()
        if not gate.passed:
            raise StageFailure(
                f"Quality gate failed: {gate.status}"
                + (f" ({'; '.join(gate.failed_conditions)})" if gate.failed_conditions else "")
            )
        result.message = f"Quality gate {gate.status}"

    async def dependency_scan(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        fail_on_cvss = f"--failOnCVSS {BLOCKING_CVSS}" if scan_blocking(context.branch) else ""
        try:
            await self._run_step(
                self._command("dependency_scan", context, fail_on_cvss=fail_on_cvss),
                result,
                "Dependency check",
            )
        finally:
            summary = summarize_dependency_check(self.reports_dir / DEPENDENCY_CHECK_REPORT)
            result.outputs["summary"] = summary.to_dict()
            result.warnings.extend(summary.warnings)
        result.message = f"{summary.total} vulnerable dependency finding(s)"

    async def container_scan(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        exit_code = "1" if scan_blocking(context.branch) else "0"
        try:
            await self._run_step(
                self._command("container_scan", context, exit_code=exit_code),
                result,
                "Trivy scan",
            )
        finally:
            summary = summarize_trivy(self.reports_dir / TRIVY_REPORT)
            result.outputs["summary"] = summary.to_dict()
            result.warnings.extend(summary.warnings)

        if summary.blocking:
            result.warnings.append(f"{len(summary.findings)} HIGH/CRITICAL finding(s) reported")
        result.message = f"{summary.total} vulnerability finding(s)"

    async def image_build(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        local_ref = f"{context.image}:{context.build_number}"
        try:
            InputValidator.validate_docker_image(local_ref)
        except SecurityError as e:
            raise StageFailure(str(e))
        await self._run_step(self._command("image_build", context), result, "Docker build")
        result.outputs["image"] = local_ref
        result.message = f"Built {local_ref}"

    async def image_push(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        pushed = []
        for image_ref in context.image_refs:
            try:
                InputValidator.validate_docker_image(image_ref)
            except SecurityError as e:
                raise StageFailure(str(e))
            await self._run_step(self._command("image_tag", context, image_ref=image_ref), result, "Docker tag")
            await self._run_step(self._command("image_push", context, image_ref=image_ref), result, "Docker push")
            pushed.append(image_ref)
            report.pushed_images.append(image_ref)
        result.outputs["pushed"] = pushed
        result.message = f"Pushed {len(pushed)} tag(s)"

    async def artifact_archive(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        target = self.workspace / self.settings.artifacts_dir / str(context.build_number)
        target.mkdir(parents=True, exist_ok=True)

        archived = []
        if self.reports_dir.exists():
            for path in sorted(self.reports_dir.rglob("*")):
                if path.is_file():
                    destination = target / path.relative_to(self.reports_dir)
                    destination.parent.mkdir(parents=True, exist_ok=True)
                    shutil.copy2(path, destination)
                    archived.append(str(destination.relative_to(self.workspace)))
        else:
            result.warnings.append(f"No reports directory at {self.reports_dir}")

        summary_path = target / "pipeline-report.json"
        summary_path.write_text(json.dumps(report.get_summary(), indent=2))
        archived.append(str(summary_path.relative_to(self.workspace)))

        report.archived_files.extend(archived)
        result.outputs["archived"] = archived
        result.message = f"Archived {len(archived)} file(s)"

    async def deployment_info(self, context: BuildContext, result: StageResult, report: PipelineReport) -> None:
        self.logger.info(f"Deployment info for {context.branch_name} build #{context.build_number}")
        self.logger.info(f"Version: {context.version}")
        for image_ref in report.pushed_images:
            self.logger.info(f"Image: {image_ref}")
            self.logger.info(f"Pull with: docker pull {image_ref}")

        scans = {}
        for stage in (StageName.DEPENDENCY_SCAN, StageName.CONTAINER_SCAN):
            scan_result = report.stages.get(stage)
            if scan_result is None or "summary" not in scan_result.outputs:
                continue
            summary = scan_result.outputs["summary"]
            scans[stage.value] = summary["counts"]
            counts = ", ".join(f"{severity} {count}" for severity, count in summary["counts"].items() if count)
            self.logger.info(f"{stage.title}: {counts or 'no findings'}")

        result.outputs.update({
            "version": context.version,
            "images": list(report.pushed_images),
            "scans": scans,
        })
        result.message = f"{len(report.pushed_images)} image(s) available"
