"""
Host bootstrap - brings the platform stack up on a Docker host.

Steps:
1. Prerequisites (docker, docker compose, running daemon)
2. Directory layout
3. Port conflict check
4. Pull, build and start the compose stack
5. Wait for Jenkins and SonarQube
"""

import asyncio
import re
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from ..config import Config, get_config
from ..core.errors import PlatformError, PortConflictError, PrerequisiteError
from ..core.executor import CommandExecutor
from ..core.logger import StageLogger

READY_PATTERN = re.compile(r"healthy|running")

# Services waited on after `docker compose up`; a required one that never
# comes up aborts the setup.
READINESS_CHECKS = [
    ("jenkins", "Jenkins", True),
    ("sonarqube", "SonarQube", False),
]


def is_port_in_use(port: int, host: str = "127.0.0.1", timeout: float = 0.5) -> bool:
    """Return True when something is listening on host:port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(timeout)
        return sock.connect_ex((host, port)) == 0


@dataclass
class BootstrapResult:
    """Outcome of a platform setup run."""
    directories: List[str] = field(default_factory=list)
    services_ready: Dict[str, bool] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "directories": self.directories,
            "services_ready": self.services_ready,
            "warnings": self.warnings,
        }


class PlatformBootstrap:
    """
    Prepares the host and starts the CI/CD stack with docker compose.

    Usage:
        bootstrap = PlatformBootstrap()
        result = await bootstrap.run()
    """

    def __init__(self, config: Config = None, executor: CommandExecutor = None):
        self.config = config or get_config()
        self.platform = self.config.platform
        self.root = Path(self.platform.root_dir)
        self.logger = StageLogger("Setup")
        self.executor = executor or CommandExecutor(working_dir=self.root, logger=self.logger)

    async def run(self, pull: bool = True) -> BootstrapResult:
        """
        Run every setup step in order.

        Raises:
            PrerequisiteError: docker, compose or the daemon is unavailable
            PortConflictError: a required port is already taken
            PlatformError: a compose command failed or Jenkins never came up
        """
        result = BootstrapResult()

        self.logger.step("Checking prerequisites", 1)
        await self.check_prerequisites()

        self.logger.step("Creating directories", 2)
        result.directories = [str(path) for path in self.create_directories()]
        self.logger.success("Directories created")

        self.logger.step("Checking for port conflicts", 3)
        self.check_ports()
        self.logger.success("All required ports are available")

        self.logger.step("Starting services", 4)
        await self.start_stack(pull=pull)

        self.logger.step("Waiting for services to initialize", 5)
        for service, label, required in READINESS_CHECKS:
            ready = await self.wait_for_service(service)
            result.services_ready[service] = ready
            if ready:
                self.logger.success(f"{label} is ready")
                continue
            message = f"{label} failed to start. Check logs with: docker compose logs {service}"
            if required:
                raise PlatformError(message)
            self.logger.error(message)
            result.warnings.append(message)

        return result

    async def check_prerequisites(self) -> None:
        """Verify docker, the compose plugin and the daemon, in that order."""
        if not await self.executor.check_tool_exists("docker"):
            raise PrerequisiteError("Docker is not installed. Please install Docker first.")
        self.logger.success("Docker is installed")

        compose = await self.executor.run("docker compose version", timeout=30)
        if not compose.success:
            raise PrerequisiteError("Docker Compose is not installed. Please install Docker Compose first.")
        self.logger.success("Docker Compose is installed")

        daemon = await self.executor.run("docker info", timeout=30)
        if not daemon.success:
            raise PrerequisiteError("Docker daemon is not running. Please start Docker first.")
        self.logger.success("Docker daemon is running")

    def create_directories(self) -> List[Path]:
        created = []
        for directory in self.platform.directories:
            path = self.root / directory
            path.mkdir(parents=True, exist_ok=True)
            created.append(path)
        return created

    def find_port_conflicts(self) -> Dict[str, int]:
        """Map service name to port for every required port already listening."""
        conflicts = {}
        for name, port in self.platform.service_ports.items():
            if is_port_in_use(port):
                self.logger.error(f"Port {port} is already in use (needed for {name})")
                conflicts[name] = port
        return conflicts

    def check_ports(self) -> None:
        conflicts = self.find_port_conflicts()
        if conflicts:
            self.logger.info("You can check what's using a port with: sudo lsof -i :<port>")
            raise PortConflictError(conflicts)

    async def start_stack(self, pull: bool = True) -> None:
        commands = []
        if pull:
            commands.append(("docker compose pull", "Docker images pulled"))
        commands.extend([
            ("docker compose build jenkins", "Jenkins image built"),
            ("docker compose up -d", "Services started"),
        ])

        for command, done in commands:
            result = await self.executor.run(command, timeout=1800, stream_output=True)
            if not result.success:
                raise PlatformError(result.describe_failure(f"'{command}'"))
            self.logger.success(done)

    async def wait_for_service(self, service: str) -> bool:
        """Poll `docker compose ps` until the service reports healthy or running."""
        for attempt in range(self.platform.readiness_attempts):
            result = await self.executor.run(f"docker compose ps {service}", timeout=30)
            if result.success and READY_PATTERN.search(result.stdout):
                return True
            self.logger.debug(f"{service} not ready", attempt=attempt + 1)
            await asyncio.sleep(self.platform.readiness_interval_seconds)
        return False


def access_summary(config: Config = None) -> List[Dict[str, str]]:
    """Service URLs and default credentials shown after setup."""
    config = config or get_config()
    ports = config.platform.service_ports
    jenkins = config.jenkins

    def url(name: str) -> str:
        return f"http://localhost:{ports[name]}"

    return [
        {"service": "Jenkins", "url": url("Jenkins"),
         "credentials": f"{jenkins.admin_user} / {jenkins.admin_password}"},
        {"service": "SonarQube", "url": url("SonarQube"),
         "credentials": "admin / admin (change on first login)"},
        {"service": "Grafana", "url": url("Grafana"),
         "credentials": f"admin / {config.platform.grafana_admin_password}"},
        {"service": "Prometheus", "url": url("Prometheus"), "credentials": ""},
        {"service": "Alertmanager", "url": url("Alertmanager"), "credentials": ""},
        {"service": "Docker Registry", "url": url("Docker Registry"), "credentials": ""},
    ]


NEXT_STEPS = [
    "Open Jenkins and run 'Scan Multibranch Pipeline Now' on the pipeline job",
    "Push the repository and branches with: cicd-platform github",
    "Add a GitHub webhook pointing at http://<server>:8080/github-webhook/",
    "View logs with: docker compose logs -f [service]",
    "Stop everything with: docker compose down (add -v to remove data)",
]
