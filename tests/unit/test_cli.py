"""
Unit tests for the command-line interface.
"""

from unittest.mock import AsyncMock, MagicMock, patch

from typer.testing import CliRunner

from cicd_platform.core.errors import PrerequisiteError, RegistryError
from cicd_platform.main import app
from cicd_platform.models.pipeline import BuildContext, PipelineReport, PipelineStatus

runner = CliRunner()


def _report(status: PipelineStatus) -> PipelineReport:
    return PipelineReport(
        pipeline_id="build-1234abcd",
        context=BuildContext(branch_name="test", build_number=5),
        status=status,
    )


def test_policy_command():
    result = runner.invoke(app, ["policy", "prod"])

    assert result.exit_code == 0
    assert "Quality Gate" in result.stdout
    assert "prod" in result.stdout


@patch("cicd_platform.main.run_pipeline", new_callable=AsyncMock)
def test_pipeline_success(mock_run):
    mock_run.return_value = _report(PipelineStatus.SUCCESS)

    result = runner.invoke(app, ["pipeline", "test", "--build-number", "5"])

    assert result.exit_code == 0
    mock_run.assert_awaited_once_with("test", 5)


@patch("cicd_platform.main.run_pipeline", new_callable=AsyncMock)
def test_pipeline_unstable_exits_zero(mock_run):
    mock_run.return_value = _report(PipelineStatus.UNSTABLE)

    result = runner.invoke(app, ["pipeline", "test", "-n", "5"])
    assert result.exit_code == 0


@patch("cicd_platform.main.run_pipeline", new_callable=AsyncMock)
def test_pipeline_failure_exits_one(mock_run, tmp_path):
    mock_run.return_value = _report(PipelineStatus.FAILED)
    report_file = tmp_path / "report.md"

    result = runner.invoke(app, ["pipeline", "prod", "-n", "5", "--json", "--report", str(report_file)])

    assert result.exit_code == 1
    assert '"status": "failed"' in result.stdout
    assert report_file.read_text().startswith("# Pipeline Report")


def test_pipeline_requires_build_number():
    result = runner.invoke(app, ["pipeline", "test"])
    assert result.exit_code != 0


@patch("cicd_platform.main.PlatformBootstrap")
def test_setup_prerequisite_failure(mock_bootstrap):
    mock_bootstrap.return_value.run = AsyncMock(side_effect=PrerequisiteError("Docker is not installed."))

    result = runner.invoke(app, ["setup"])

    assert result.exit_code == 1
    assert "Docker is not installed" in result.stdout


@patch("cicd_platform.main.RegistryClient")
def test_registry_tags(mock_client_cls):
    client = MagicMock()
    client.list_tags = AsyncMock(return_value=["latest", "test-5"])
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

    result = runner.invoke(app, ["registry", "tags", "microservice-demo"])

    assert result.exit_code == 0
    assert "test-5" in result.stdout
    client.list_tags.assert_awaited_once_with("microservice-demo")


@patch("cicd_platform.main.RegistryClient")
def test_registry_error(mock_client_cls):
    client = MagicMock()
    client.list_repositories = AsyncMock(side_effect=RegistryError("Registry returned 500", status_code=500))
    mock_client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
    mock_client_cls.return_value.__aexit__ = AsyncMock(return_value=False)

    result = runner.invoke(app, ["registry", "list"])

    assert result.exit_code == 1
    assert "Registry returned 500" in result.stdout


def test_render_command(tmp_path):
    result = runner.invoke(app, ["render", "--output", str(tmp_path)])

    assert result.exit_code == 0
    assert (tmp_path / "Jenkinsfile").exists()

    again = runner.invoke(app, ["render", "--output", str(tmp_path)])
    assert again.exit_code == 1
