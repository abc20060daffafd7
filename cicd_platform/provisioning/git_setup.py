"""
Git bootstrap - prepares a repository for the multibranch pipeline.

Makes sure the repository has an identity, an ``origin`` remote, a
.gitignore, an initial commit and the develop/test/prod branches, then
optionally pushes them.
"""

import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import typer

from ..core.errors import PlatformError, SecurityError
from ..core.executor import CommandExecutor
from ..core.logger import StageLogger
from ..core.security import InputValidator
from ..models.pipeline import Branch

PIPELINE_BRANCHES = [branch.value for branch in Branch]

INITIAL_COMMIT_MESSAGE = "Initial commit - Jenkins CI/CD Platform"

DEFAULT_GITIGNORE = """\
# Python
__pycache__/
*.py[cod]
.venv/
*.egg-info/

# Test output
.pytest_cache/
.coverage
reports/
artifacts/

# Security reports
trivy-report.json
dependency-check-report/

# IDE
.vscode/
.idea/

# OS
.DS_Store

# Environment
.env
.env.local

# Backups
backups/
*.tar.gz
"""


@dataclass
class GitSetupResult:
    """What the Git bootstrap did."""
    user: str = ""
    remote_url: str = ""
    created_branches: List[str] = field(default_factory=list)
    home_branch: str = ""
    pushed: List[str] = field(default_factory=list)
    push_failures: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user,
            "remote_url": self.remote_url,
            "created_branches": self.created_branches,
            "home_branch": self.home_branch,
            "pushed": self.pushed,
            "push_failures": self.push_failures,
        }


class GitSetup:
    """
    Interactive Git repository bootstrap.

    Prompts go through ``typer.prompt``/``typer.confirm`` unless other
    callables are supplied.
    """

    def __init__(
        self,
        root: Path = None,
        executor: CommandExecutor = None,
        prompt: Callable[..., str] = None,
        confirm: Callable[..., bool] = None,
    ):
        self.root = Path(root or Path.cwd())
        self.logger = StageLogger("Git")
        self.executor = executor or CommandExecutor(working_dir=self.root, logger=self.logger)
        self.prompt = prompt or typer.prompt
        self.confirm = confirm or typer.confirm

    async def run(self, push: Optional[bool] = None) -> GitSetupResult:
        """
        Run the bootstrap.

        Args:
            push: Push without asking (True), never push (False), or ask (None)
        """
        result = GitSetupResult()

        result.user = await self.ensure_identity()
        self.logger.success(f"Git configured: {result.user}")

        await self.ensure_repository()
        result.remote_url = await self.ensure_remote()
        self.ensure_gitignore()
        await self.ensure_initial_commit()

        result.created_branches = await self.ensure_branches()
        result.home_branch = await self.return_home()

        if push is None:
            push = self.confirm("Push all branches to GitHub now?", default=False)
        if push:
            await self.push_branches(result)
        else:
            self.logger.info("Skipped push. Push later with: git push -u origin <branch>")

        return result

    async def _git(self, args: str, check: bool = True):
        result = await self.executor.run(f"git {args}", timeout=120)
        if check and not result.success:
            raise PlatformError(result.describe_failure(f"git {args.split()[0]}"))
        return result

    async def ensure_identity(self) -> str:
        """Make sure user.name and user.email are set, prompting for missing ones."""
        values = {}
        for key, label in (("user.name", "name"), ("user.email", "email")):
            current = await self._git(f"config {key}", check=False)
            value = current.stdout.strip() if current.success else ""
            if not value:
                self.logger.warning(f"Git {label} not configured")
                value = self.prompt(f"Enter your Git {label}").strip()
                await self._git(f"config {key} {shlex.quote(value)}")
            values[key] = value
        return f"{values['user.name']} <{values['user.email']}>"

    async def ensure_repository(self) -> bool:
        """Initialise the repository; returns True when it was created."""
        if (self.root / ".git").exists():
            self.logger.info("Git repository already initialized")
            return False
        await self._git("init")
        self.logger.success("Git repository initialized")
        return True

    def ask_remote_url(self, message: str) -> str:
        """Prompt until the answer is a usable https:// or git@ remote."""
        while True:
            answer = self.prompt(message, default="", show_default=False)
            try:
                return InputValidator.validate_git_remote(answer)
            except SecurityError as e:
                self.logger.error(f"{e}. Please try again.")

    async def ensure_remote(self) -> str:
        remotes = await self._git("remote", check=False)
        if "origin" not in remotes.stdout.split():
            self.logger.info("No remote configured")
            url = self.ask_remote_url("Enter GitHub repository URL (https://github.com/username/repo.git)")
            await self._git(f"remote add origin {shlex.quote(url)}")
            self.logger.success(f"Remote added: {url}")
            return url

        current = await self._git("remote get-url origin", check=False)
        current_url = current.stdout.strip() if current.success else ""
        try:
            current_url = InputValidator.validate_git_remote(current_url)
        except SecurityError:
            self.logger.error("Remote exists but URL is invalid or empty")
            url = self.ask_remote_url("Enter GitHub repository URL")
        else:
            self.logger.info(f"Current remote: {current_url}")
            if not self.confirm("Update remote?", default=False):
                return current_url
            url = self.ask_remote_url("Enter new GitHub repository URL")

        await self._git(f"remote set-url origin {shlex.quote(url)}")
        self.logger.success(f"Remote updated to: {url}")
        return url

    def ensure_gitignore(self) -> bool:
        path = self.root / ".gitignore"
        if path.exists():
            return False
        path.write_text(DEFAULT_GITIGNORE)
        self.logger.success(".gitignore created")
        return True

    async def ensure_initial_commit(self) -> bool:
        head = await self._git("rev-parse HEAD", check=False)
        if head.success:
            self.logger.info("Repository already has commits")
            return False
        await self._git("add .")
        await self._git(f"commit -m {shlex.quote(INITIAL_COMMIT_MESSAGE)}")
        self.logger.success("Initial commit created")
        return True

    async def _branch_exists(self, name: str) -> bool:
        result = await self._git(f"show-ref --verify --quiet refs/heads/{name}", check=False)
        return result.success

    async def ensure_branches(self) -> List[str]:
        """Create the pipeline branches that do not exist yet."""
        created = []
        for name in PIPELINE_BRANCHES:
            if await self._branch_exists(name):
                self.logger.info(f"Branch '{name}' already exists")
                continue
            await self._git(f"branch {name}")
            self.logger.success(f"Branch '{name}' created")
            created.append(name)
        return created

    async def return_home(self) -> str:
        """Check out main or master, creating main when neither exists."""
        for name in ("main", "master"):
            if await self._branch_exists(name):
                await self._git(f"checkout {name}")
                return name
        await self._git("checkout -b main")
        return "main"

    async def push_branches(self, result: GitSetupResult) -> None:
        current = await self._git("branch --show-current", check=False)
        targets = [current.stdout.strip()] if current.stdout.strip() else []
        targets += [name for name in PIPELINE_BRANCHES if name not in targets]

        for name in targets:
            pushed = await self.executor.run(f"git push -u origin {name}", timeout=300)
            if pushed.success:
                result.pushed.append(name)
            else:
                self.logger.warning(f"Failed to push {name} (may already exist)")
                result.push_failures.append(name)

        if not result.push_failures:
            self.logger.success("All branches pushed to GitHub!")


NEXT_STEPS = [
    "Point the Jenkins multibranch job at your repository URL",
    "Add a GitHub webhook: http://YOUR_SERVER_IP:8080/github-webhook/ (application/json, push events)",
    "For private repositories add credentials under Manage Jenkins > Credentials",
    "Push a change to develop and watch Jenkins build it",
]
