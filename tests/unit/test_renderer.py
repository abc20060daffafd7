"""
Unit tests for the generated platform files.
"""

import pytest

from cicd_platform.config import Config
from cicd_platform.core.errors import PlatformError
from cicd_platform.provisioning.renderer import render_all, render_platform


@pytest.fixture
def config():
    config = Config()
    config.jenkins.job_name = "demo-pipeline"
    config.jenkins.repo_url = "https://github.com/jane/platform.git"
    config.registry.host = "registry.local:5000"
    return config


class TestRenderAll:
    """Test template rendering in memory."""

    def test_renders_every_file(self, config):
        files = render_all(config)
        assert set(files) == {
            "Jenkinsfile",
            "jenkins/init.groovy",
            "docker-compose.yml",
            "prometheus/prometheus.yml",
        }

    def test_jenkinsfile_gates_follow_policy(self, config):
        jenkinsfile = render_all(config)["Jenkinsfile"]

        assert "when { branch 'prod' }" in jenkinsfile
        assert "when { branch 'test' }" in jenkinsfile
        assert "branch 'test'\n                    branch 'prod'" in jenkinsfile
        assert "parallel {" in jenkinsfile
        assert "timeout(time: 10, unit: 'MINUTES')" in jenkinsfile
        assert "currentBuild.result = 'UNSTABLE'" in jenkinsfile
        assert "REGISTRY = 'registry.local:5000'" in jenkinsfile
        assert "{{" not in jenkinsfile

    def test_quality_gate_errors_mark_unstable(self, config):
        jenkinsfile = render_all(config)["Jenkinsfile"]
        gate_stage = jenkinsfile.split("stage('Quality Gate')")[1].split("stage('Security Scans')")[0]
        catch_block = gate_stage.split("catch (Exception e)")[1]

        # Any failure of the wait marks the build unstable; a gate reporting ERROR still fails it
        assert catch_block.index("currentBuild.result = 'UNSTABLE'") < catch_block.index("gate?.status == 'ERROR'")
        assert "error \"Quality gate failed" in catch_block.split("gate?.status == 'ERROR'")[1]

    def test_ungated_stages_have_no_when(self, config):
        jenkinsfile = render_all(config)["Jenkinsfile"]
        build_stage = jenkinsfile.split("stage('Build')")[1].split("stage('Test')")[0]
        assert "when" not in build_stage

    def test_init_groovy(self, config):
        script = render_all(config)["jenkins/init.groovy"]

        assert 'def jobName = "demo-pipeline"' in script
        assert 'gitSource.setRemote("https://github.com/jane/platform.git")' in script
        assert '"docker-registry-credentials"' in script
        assert "setNumExecutors(2)" in script
        assert "setCollectingMetricsPeriodInSeconds(120)" in script

    def test_compose_ports(self, config):
        compose = render_all(config)["docker-compose.yml"]
        for port in ("8080:8080", "9000:9000", "3000:3000", "5000:5000", "9090:9090", "9093:9093", "3100:3100"):
            assert port in compose

    def test_prometheus_scrapes_jenkins(self, config):
        prometheus = render_all(config)["prometheus/prometheus.yml"]
        assert "metrics_path: /prometheus" in prometheus
        assert "app:3000" in prometheus


class TestRenderPlatform:
    """Test writing the rendered files."""

    @pytest.mark.asyncio
    async def test_writes_files(self, tmp_path, config):
        written = await render_platform(tmp_path, config)

        assert len(written) == 4
        assert (tmp_path / "jenkins" / "init.groovy").exists()
        assert (tmp_path / "Jenkinsfile").read_text().startswith("pipeline {")

    @pytest.mark.asyncio
    async def test_refuses_to_overwrite(self, tmp_path, config):
        (tmp_path / "Jenkinsfile").write_text("custom")

        with pytest.raises(PlatformError, match="Refusing to overwrite"):
            await render_platform(tmp_path, config)
        assert (tmp_path / "Jenkinsfile").read_text() == "custom"

    @pytest.mark.asyncio
    async def test_overwrite(self, tmp_path, config):
        (tmp_path / "Jenkinsfile").write_text("custom")

        await render_platform(tmp_path, config, overwrite=True)
        assert (tmp_path / "Jenkinsfile").read_text() != "custom"
