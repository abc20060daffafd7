"""
Subprocess runner for the external tools behind every pipeline stage and
setup step: docker, git, trivy, sonar-scanner and dependency-check.

Commands run through ``/bin/sh``. ``InputValidator`` checks the unquoted
parts first, so arguments quoted with ``shlex.quote`` may carry any
character. Nothing here raises for a failed command; callers turn an
unsuccessful ``CommandResult`` into their own error with
``describe_failure``.
"""

import asyncio
import os
import shlex
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .errors import SecurityError
from .logger import StageLogger
from .security import InputValidator, SecretsMasker

OutputCallback = Callable[[str], None]


@dataclass
class CommandResult:
    """Outcome of one command."""
    command: str
    return_code: int
    stdout: str
    stderr: str
    success: bool
    duration_seconds: float

    @classmethod
    def not_run(cls, command: str, reason: str, duration_seconds: float = 0.0) -> "CommandResult":
        """A command that was rejected, timed out or never started."""
        return cls(
            command=command,
            return_code=-1,
            stdout="",
            stderr=reason,
            success=False,
            duration_seconds=duration_seconds,
        )

    @property
    def output(self) -> str:
        """Combined stdout and stderr."""
        return f"{self.stdout}\n{self.stderr}".strip()

    @property
    def last_line(self) -> str:
        """Last non-blank line of stderr, or of stdout when stderr is empty."""
        for stream in (self.stderr, self.stdout):
            lines = [line.strip() for line in stream.splitlines() if line.strip()]
            if lines:
                return lines[-1]
        return ""

    def describe_failure(self, step: str) -> str:
        """One-line error message for a failed ``step``, secrets masked."""
        message = f"{step} failed with exit code {self.return_code}"
        if self.last_line:
            message += f": {self.last_line}"
        return SecretsMasker.mask_secrets(message)

    def to_dict(self) -> dict:
        """Convert to dictionary with secrets masked."""
        return {
            "command": SecretsMasker.mask_secrets(self.command),
            "return_code": self.return_code,
            "stdout": SecretsMasker.mask_secrets(self.stdout),
            "stderr": SecretsMasker.mask_secrets(self.stderr),
            "success": self.success,
            "duration_seconds": self.duration_seconds,
        }


class CommandExecutor:
    """Runs tool commands in one working directory, logging through a StageLogger."""

    def __init__(
        self,
        working_dir: Path = None,
        logger: StageLogger = None,
        allowed_commands: List[str] = None,
        validate_commands: bool = True,
    ):
        self.working_dir = Path(working_dir) if working_dir else Path.cwd()
        self.logger = logger or StageLogger("Executor")
        self.allowed_commands = allowed_commands
        self.validate_commands = validate_commands

    def _environment(self, extra: Optional[dict]) -> Dict[str, str]:
        environment = os.environ.copy()
        if extra:
            environment.update(extra)
        return environment

    async def run(
        self,
        command: str,
        timeout: float = 300,
        env: dict = None,
        stream_output: bool = False,
        on_output: OutputCallback = None,
    ) -> CommandResult:
        """
        Run a command and wait for it.

        Args:
            command: Shell command line
            timeout: Seconds before the process is killed
            env: Variables added to the inherited environment
            stream_output: Forward output lines to ``on_output`` as they arrive
            on_output: Line callback used with ``stream_output``

        Returns:
            CommandResult; rejected, timed-out and unstartable commands
            come back with ``return_code`` -1
        """
        if self.validate_commands:
            try:
                InputValidator.validate_command(command, self.allowed_commands)
            except SecurityError as e:
                self.logger.error(f"Command rejected: {e}")
                return CommandResult.not_run(command, f"Security validation failed: {e}")

        self.logger.debug("Executing command", command=command, cwd=str(self.working_dir))
        started = time.monotonic()

        try:
            process = await asyncio.create_subprocess_shell(
                command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.working_dir,
                env=self._environment(env),
            )
        except OSError as e:
            self.logger.error(f"Could not start command: {e}", exc=e)
            return CommandResult.not_run(command, str(e), time.monotonic() - started)

        try:
            stdout, stderr = await asyncio.wait_for(
                self._collect(process, on_output if stream_output else None),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            self.logger.error(f"Command timed out after {timeout}s: {command}")
            return CommandResult.not_run(
                command,
                f"Command timed out after {timeout} seconds",
                time.monotonic() - started,
            )

        result = CommandResult(
            command=command,
            return_code=process.returncode,
            stdout=stdout,
            stderr=stderr,
            success=process.returncode == 0,
            duration_seconds=time.monotonic() - started,
        )
        self.logger.debug(
            "Command finished",
            command=command,
            return_code=result.return_code,
            duration=round(result.duration_seconds, 2),
        )
        return result

    @staticmethod
    async def _collect(process, on_output: Optional[OutputCallback]) -> Tuple[str, str]:
        """Read both pipes to EOF, forwarding lines when a callback is given."""
        if on_output is None:
            stdout, stderr = await process.communicate()
            return stdout.decode(errors="replace"), stderr.decode(errors="replace")

        async def drain(stream) -> str:
            lines = []
            while True:
                line = await stream.readline()
                if not line:
                    break
                decoded = line.decode(errors="replace")
                lines.append(decoded)
                on_output(decoded)
            return "".join(lines)

        stdout, stderr = await asyncio.gather(drain(process.stdout), drain(process.stderr))
        await process.wait()
        return stdout, stderr

    async def check_tool_exists(self, tool: str) -> bool:
        """Check if a command-line tool is on PATH."""
        result = await self.run(f"command -v {shlex.quote(tool)}", timeout=10)
        return result.success
