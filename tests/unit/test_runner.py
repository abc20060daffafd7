"""
Unit tests for the pipeline runner.
"""

import json

import httpx
import pytest
from unittest.mock import AsyncMock

from cicd_platform.config import SonarQubeConfig
from cicd_platform.core.errors import QualityGateTimeout
from cicd_platform.integrations.sonarqube import QualityGateResult, SonarQubeClient
from cicd_platform.models.pipeline import BuildContext, PipelineStatus, StageName, StageStatus
from cicd_platform.pipeline.runner import PipelineRunner, execution_groups
from tests.conftest import FakeExecutor


def _sonar_client(status: str = "OK"):
    client = AsyncMock()
    client.wait_for_quality_gate.return_value = QualityGateResult(project_key="demo", status=status)
    return client


def _runner(settings, executor, sonar_client=None) -> PipelineRunner:
    return PipelineRunner(
        settings=settings,
        sonar=SonarQubeConfig(url="http://sonarqube:9000", token="t"),
        executor=executor,
        sonar_client=sonar_client or _sonar_client(),
    )


def _context(branch: str, build_number: int = 7) -> BuildContext:
    return BuildContext(branch_name=branch, build_number=build_number)


def test_security_scans_share_one_step():
    groups = execution_groups()
    assert [StageName.DEPENDENCY_SCAN, StageName.CONTAINER_SCAN] in groups
    assert sum(len(group) for group in groups) == len(StageName)


class TestPipelineRunner:
    """Tests for PipelineRunner."""

    @pytest.mark.asyncio
    async def test_develop_runs_base_stages_only(self, pipeline_settings):
        executor = FakeExecutor()
        report = await _runner(pipeline_settings, executor).run(_context("develop"))

        assert report.status == PipelineStatus.SUCCESS
        assert report.stage_status(StageName.BUILD) == StageStatus.SUCCESS
        assert report.stage_status(StageName.STATIC_ANALYSIS) == StageStatus.SUCCESS
        assert report.stage_status(StageName.IMAGE_BUILD) == StageStatus.SKIPPED
        assert "Not enabled" in report.stages[StageName.QUALITY_GATE].message
        assert not executor.ran("docker build")
        assert list(report.stages) == list(StageName)

    @pytest.mark.asyncio
    async def test_feature_branch_follows_develop(self, pipeline_settings):
        executor = FakeExecutor()
        report = await _runner(pipeline_settings, executor).run(_context("feature/x"))

        assert report.status == PipelineStatus.SUCCESS
        assert report.stage_status(StageName.DEPENDENCY_SCAN) == StageStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_lint_failure_is_ignored(self, pipeline_settings):
        executor = FakeExecutor(failures=["ruff"])
        report = await _runner(pipeline_settings, executor).run(_context("develop"))

        assert report.status == PipelineStatus.SUCCESS
        assert report.stages[StageName.TEST].warnings

    @pytest.mark.asyncio
    async def test_build_failure_aborts(self, pipeline_settings):
        executor = FakeExecutor(failures=["pip install"])
        report = await _runner(pipeline_settings, executor).run(_context("test"))

        assert report.status == PipelineStatus.FAILED
        assert report.stage_status(StageName.BUILD) == StageStatus.FAILED
        assert report.stage_status(StageName.TEST) == StageStatus.SKIPPED
        assert not executor.ran("pytest")

    @pytest.mark.asyncio
    async def test_test_branch_publishes_build_tag(self, pipeline_settings):
        executor = FakeExecutor()
        report = await _runner(pipeline_settings, executor).run(_context("test", 12))

        assert report.status == PipelineStatus.SUCCESS
        assert report.pushed_images == ["localhost:5000/microservice-demo:test-12"]
        assert executor.ran("docker push localhost:5000/microservice-demo:test-12")
        assert report.stage_status(StageName.QUALITY_GATE) == StageStatus.SKIPPED
        assert report.stage_status(StageName.ARTIFACT_ARCHIVE) == StageStatus.SUCCESS

        summary = pipeline_settings.workspace_dir / "artifacts" / "12" / "pipeline-report.json"
        assert json.loads(summary.read_text())["branch"] == "test"

    @pytest.mark.asyncio
    async def test_scans_do_not_block_on_test(self, pipeline_settings):
        executor = FakeExecutor()
        await _runner(pipeline_settings, executor).run(_context("test"))

        trivy = next(c for c in executor.commands if c.startswith("trivy"))
        check = next(c for c in executor.commands if c.startswith("dependency-check"))
        assert "--exit-code 0" in trivy
        assert "--failOnCVSS" not in check

    @pytest.mark.asyncio
    async def test_container_scan_failure_is_unstable_on_test(self, pipeline_settings):
        executor = FakeExecutor(failures=["trivy"])
        report = await _runner(pipeline_settings, executor).run(_context("test"))

        assert report.status == PipelineStatus.UNSTABLE
        assert report.stage_status(StageName.CONTAINER_SCAN) == StageStatus.UNSTABLE
        assert report.stage_status(StageName.IMAGE_PUSH) == StageStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_prod_scans_block(self, pipeline_settings):
        executor = FakeExecutor(failures=["trivy"])
        report = await _runner(pipeline_settings, executor).run(_context("prod"))

        trivy = next(c for c in executor.commands if c.startswith("trivy"))
        check = next(c for c in executor.commands if c.startswith("dependency-check"))
        assert "--exit-code 1" in trivy
        assert "--failOnCVSS 7" in check

        assert report.status == PipelineStatus.FAILED
        assert report.stage_status(StageName.CONTAINER_SCAN) == StageStatus.FAILED
        # The sibling scan in the same parallel step still completes
        assert report.stage_status(StageName.DEPENDENCY_SCAN) == StageStatus.SUCCESS
        assert report.stage_status(StageName.IMAGE_BUILD) == StageStatus.SKIPPED
        assert report.pushed_images == []

    @pytest.mark.asyncio
    async def test_prod_publishes_three_tags(self, pipeline_settings):
        executor = FakeExecutor()
        report = await _runner(pipeline_settings, executor).run(_context("prod", 3))

        assert report.status == PipelineStatus.SUCCESS
        assert len(report.pushed_images) == 3
        assert "localhost:5000/microservice-demo:prod-1.0.3" in report.pushed_images
        assert "localhost:5000/microservice-demo:latest" in report.pushed_images
        assert report.stage_status(StageName.ARTIFACT_ARCHIVE) == StageStatus.SKIPPED
        assert report.stages[StageName.DEPLOYMENT_INFO].outputs["version"] == "1.0.3"
        assert set(report.stages[StageName.DEPLOYMENT_INFO].outputs["scans"]) == {"dependency-scan", "container-scan"}

    @pytest.mark.asyncio
    async def test_quality_gate_error_fails_prod(self, pipeline_settings):
        executor = FakeExecutor()
        report = await _runner(pipeline_settings, executor, _sonar_client("ERROR")).run(_context("prod"))

        assert report.status == PipelineStatus.FAILED
        assert report.stage_status(StageName.QUALITY_GATE) == StageStatus.FAILED
        assert report.stage_status(StageName.DEPENDENCY_SCAN) == StageStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_quality_gate_timeout_is_unstable(self, pipeline_settings):
        client = AsyncMock()
        client.wait_for_quality_gate.side_effect = QualityGateTimeout("still IN_PROGRESS")
        executor = FakeExecutor()

        report = await _runner(pipeline_settings, executor, client).run(_context("prod"))

        assert report.status == PipelineStatus.UNSTABLE
        assert report.stage_status(StageName.QUALITY_GATE) == StageStatus.UNSTABLE
        assert report.stage_status(StageName.IMAGE_PUSH) == StageStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_quality_gate_client_error_is_unstable(self, pipeline_settings):
        client = AsyncMock()
        client.wait_for_quality_gate.side_effect = RuntimeError("unexpected")
        report = await _runner(pipeline_settings, FakeExecutor(), client).run(_context("prod"))

        gate = report.stages[StageName.QUALITY_GATE]
        assert gate.status == StageStatus.UNSTABLE
        assert "RuntimeError: unexpected" in gate.warnings
        assert report.status == PipelineStatus.UNSTABLE
        assert report.stage_status(StageName.IMAGE_PUSH) == StageStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_quality_gate_non_json_reply_is_unstable(self, pipeline_settings):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>proxy</html>"))
        client = SonarQubeClient("http://sonarqube:9000", "t", transport=transport)

        report = await _runner(pipeline_settings, FakeExecutor(), client).run(_context("prod"))
        await client.close()

        assert report.stage_status(StageName.QUALITY_GATE) == StageStatus.UNSTABLE
        assert report.status == PipelineStatus.UNSTABLE

    @pytest.mark.asyncio
    async def test_unexpected_exception_fails_stage(self, pipeline_settings):
        runner = _runner(pipeline_settings, FakeExecutor())
        runner._handlers[StageName.BUILD] = AsyncMock(side_effect=RuntimeError("unexpected"))

        report = await runner.run(_context("prod"))

        assert report.stage_status(StageName.BUILD) == StageStatus.FAILED
        assert "RuntimeError" in report.stages[StageName.BUILD].errors[0]
        assert report.stage_status(StageName.TEST) == StageStatus.SKIPPED

    @pytest.mark.asyncio
    async def test_report_serialises(self, pipeline_settings):
        report = await _runner(pipeline_settings, FakeExecutor()).run(_context("develop"))

        data = report.to_dict()
        assert data["status"] == "success"
        assert data["context"]["version"] == "1.0.7"
        assert len(data["stages"]) == len(StageName)
        assert "Pipeline Report: develop #7" in report.to_markdown()
