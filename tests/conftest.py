"""Shared fixtures."""

import re
from typing import List, Tuple

import pytest

from cicd_platform.config import PipelineSettings
from cicd_platform.core.errors import SecurityError
from cicd_platform.core.executor import CommandResult
from cicd_platform.core.security import InputValidator


class FakeExecutor:
    """Stands in for CommandExecutor; fails commands matching a configured regex.

    Commands are validated the way the real executor validates them, so a
    command it would reject fails here too.
    """

    def __init__(self, failures: List[str] = None, outputs: List[Tuple[str, str]] = None):
        self.failures = failures or []
        self.outputs = outputs or []
        self.commands: List[str] = []
        self.missing_tools: List[str] = []

    async def run(self, command: str, timeout: int = 300, env: dict = None,
                  stream_output: bool = False, on_output=None) -> CommandResult:
        self.commands.append(command)
        try:
            InputValidator.validate_command(command)
        except SecurityError as e:
            return CommandResult.not_run(command, f"Security validation failed: {e}")

        failed = any(re.search(pattern, command) for pattern in self.failures)
        stdout = next((out for pattern, out in self.outputs if pattern in command), "")
        return CommandResult(
            command=command,
            return_code=1 if failed else 0,
            stdout=stdout,
            stderr="boom" if failed else "",
            success=not failed,
            duration_seconds=0.0,
        )

    async def check_tool_exists(self, tool: str) -> bool:
        self.commands.append(f"command -v {tool}")
        return tool not in self.missing_tools

    def ran(self, fragment: str) -> bool:
        return any(fragment in command for command in self.commands)


@pytest.fixture
def fake_executor():
    return FakeExecutor()


@pytest.fixture
def pipeline_settings(tmp_path):
    return PipelineSettings(
        project_key="demo",
        image_name="microservice-demo",
        base_version="1.0",
        workspace_dir=tmp_path,
        quality_gate_timeout_seconds=1,
        quality_gate_poll_seconds=0,
    )
