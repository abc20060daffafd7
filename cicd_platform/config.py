"""
Configuration management for the CI/CD platform.
Handles all environment variables and settings.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


@dataclass
class JenkinsConfig:
    """Configuration for the Jenkins controller and its provisioning script."""
    url: str = field(default_factory=lambda: os.getenv("JENKINS_URL", "http://jenkins:8080/"))
    admin_user: str = field(default_factory=lambda: os.getenv("JENKINS_ADMIN_USER", "admin"))
    admin_password: str = field(default_factory=lambda: os.getenv("JENKINS_ADMIN_PASSWORD", "admin123"))
    job_name: str = field(default_factory=lambda: os.getenv("JENKINS_JOB_NAME", "microservice-pipeline"))
    repo_url: str = field(default_factory=lambda: os.getenv(
        "JENKINS_REPO_URL", "https://github.com/RivoltaAlpha/jenkins-cicd-platform.git"
    ))
    num_executors: int = field(default_factory=lambda: int(os.getenv("JENKINS_EXECUTORS", "2")))
    prometheus_period_seconds: int = 120


@dataclass
class SonarQubeConfig:
    """Configuration for SonarQube static analysis."""
    url: str = field(default_factory=lambda: os.getenv("SONARQUBE_URL", "http://sonarqube:9000"))
    token: str = field(default_factory=lambda: os.getenv("SONARQUBE_TOKEN", ""))
    server_name: str = "SonarQube"


@dataclass
class RegistryConfig:
    """Configuration for the Docker registry."""
    host: str = field(default_factory=lambda: os.getenv("DOCKER_REGISTRY", "localhost:5000"))
    url: str = field(default_factory=lambda: os.getenv("DOCKER_REGISTRY_URL", "http://localhost:5000"))
    username: str = field(default_factory=lambda: os.getenv("DOCKER_REGISTRY_USERNAME", "admin"))
    password: str = field(default_factory=lambda: os.getenv("DOCKER_REGISTRY_PASSWORD", "admin"))
    credentials_id: str = "docker-registry-credentials"


def _default_commands() -> Dict[str, str]:
    """Shell commands run by the pipeline stages.

    Placeholders are filled from the build context when the stage runs.
    """
    return {
        "build": "python -m pip install -e .",
        "lint": "python -m ruff check cicd_platform",
        "test": "python -m pytest --junitxml=reports/junit.xml",
        "static_analysis": (
            "sonar-scanner -Dsonar.projectKey={project_key} "
            "-Dsonar.sources=cicd_platform -Dsonar.host.url={sonar_url} "
            "-Dsonar.token={sonar_token}"
        ),
        "dependency_scan": (
            "dependency-check.sh --project {project_key} --scan . "
            "--format JSON --out reports/dependency-check-report {fail_on_cvss}"
        ),
        "container_scan": (
            "trivy fs --severity HIGH,CRITICAL --exit-code {exit_code} "
            "--format json --output reports/trivy-report.json ."
        ),
        "image_build": "docker build -t {image}:{build_number} .",
        "image_tag": "docker tag {image}:{build_number} {image_ref}",
        "image_push": "docker push {image_ref}",
    }


@dataclass
class PipelineSettings:
    """Settings for a local pipeline run."""
    project_key: str = field(default_factory=lambda: os.getenv("PIPELINE_PROJECT_KEY", "microservice-demo"))
    image_name: str = field(default_factory=lambda: os.getenv("PIPELINE_IMAGE_NAME", "microservice-demo"))
    base_version: str = field(default_factory=lambda: os.getenv("PIPELINE_BASE_VERSION", "1.0"))
    workspace_dir: Path = field(default_factory=lambda: Path(os.getenv("PIPELINE_WORKSPACE", ".")))
    reports_dir: str = "reports"
    artifacts_dir: str = "artifacts"
    quality_gate_timeout_seconds: float = field(
        default_factory=lambda: float(os.getenv("QUALITY_GATE_TIMEOUT", "600"))
    )
    quality_gate_poll_seconds: float = 10.0
    command_timeout_seconds: int = 1800
    commands: Dict[str, str] = field(default_factory=_default_commands)


@dataclass
class DemoAppConfig:
    """Configuration for the demonstration HTTP service."""
    name: str = "Microservice Demo"
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "3000")))
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV") or os.getenv("NODE_ENV", "development"))
    version: str = field(default_factory=lambda: os.getenv("APP_VERSION", "1.0.0"))


# Service name -> host port, in the order setup checks them
DEFAULT_SERVICE_PORTS: Dict[str, int] = {
    "Jenkins": 8080,
    "SonarQube": 9000,
    "Grafana": 3000,
    "Docker Registry": 5000,
    "Prometheus": 9090,
    "Alertmanager": 9093,
    "Loki": 3100,
}

PLATFORM_DIRECTORIES: List[str] = [
    "grafana/provisioning/datasources",
    "grafana/provisioning/dashboards",
    "prometheus",
    "loki",
    "jenkins",
    "app",
]


@dataclass
class PlatformConfig:
    """Configuration for the host running the platform stack."""
    root_dir: Path = field(default_factory=lambda: Path(os.getenv("PLATFORM_ROOT", ".")))
    service_ports: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_SERVICE_PORTS))
    directories: List[str] = field(default_factory=lambda: list(PLATFORM_DIRECTORIES))
    readiness_attempts: int = 60
    readiness_interval_seconds: float = 5.0
    grafana_admin_password: str = field(default_factory=lambda: os.getenv("GRAFANA_ADMIN_PASSWORD", "admin123"))


@dataclass
class Config:
    """Main configuration container."""
    jenkins: JenkinsConfig = field(default_factory=JenkinsConfig)
    sonarqube: SonarQubeConfig = field(default_factory=SonarQubeConfig)
    registry: RegistryConfig = field(default_factory=RegistryConfig)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    demo_app: DemoAppConfig = field(default_factory=DemoAppConfig)
    platform: PlatformConfig = field(default_factory=PlatformConfig)

    verbose: bool = field(default_factory=lambda: os.getenv("VERBOSE", "false").lower() == "true")

    def validate(self) -> list[str]:
        """Validate configuration and return list of issues."""
        issues = []

        if not self.sonarqube.token:
            issues.append("SONARQUBE_TOKEN is not set (static analysis and quality gate will fail)")

        if self.jenkins.admin_password == "admin123":
            issues.append("JENKINS_ADMIN_PASSWORD uses the default value")

        if not self.registry.host:
            issues.append("DOCKER_REGISTRY is not set")

        return issues

    @classmethod
    def from_env(cls) -> "Config":
        """Create configuration from environment variables."""
        return cls()


# Global config instance
config = Config.from_env()


def get_config() -> Config:
    """Get the global configuration instance."""
    return config
