"""
CI/CD Platform - Main Entry Point
CLI for provisioning the Jenkins platform and running its pipeline locally.
"""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from cicd_platform.config import get_config
from cicd_platform.core.errors import PlatformError
from cicd_platform.core.executor import CommandExecutor
from cicd_platform.core.logger import setup_logging
from cicd_platform.demo_app.app import serve as serve_demo_app
from cicd_platform.integrations.registry import RegistryClient
from cicd_platform.models.pipeline import PipelineStatus, StageName, StageStatus
from cicd_platform.pipeline.policy import policy_for
from cicd_platform.pipeline.runner import run_pipeline
from cicd_platform.provisioning import bootstrap, git_setup
from cicd_platform.provisioning.bootstrap import PlatformBootstrap, access_summary, is_port_in_use
from cicd_platform.provisioning.git_setup import GitSetup
from cicd_platform.provisioning.renderer import render_platform
from cicd_platform.utils.helpers import format_duration

# CLI app
app = typer.Typer(
    name="cicd-platform",
    help="Jenkins CI/CD platform: provisioning, branch-gated pipeline and demo service",
    add_completion=False,
)

registry_app = typer.Typer(
    name="registry",
    help="Browse the platform's Docker registry",
)
app.add_typer(registry_app, name="registry")

console = Console()

STATUS_STYLES = {
    StageStatus.SUCCESS: "[green]success[/green]",
    StageStatus.UNSTABLE: "[yellow]unstable[/yellow]",
    StageStatus.FAILED: "[red]failed[/red]",
    StageStatus.SKIPPED: "[dim]skipped[/dim]",
}


def print_header(title: str):
    """Print a command header."""
    console.print(Panel.fit(
        f"[bold blue]{title}[/bold blue]",
        border_style="blue",
    ))


def _fail(error: Exception):
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def _print_steps(title: str, steps: List[str]):
    console.print(f"\n[bold]{title}[/bold]")
    for i, step in enumerate(steps, 1):
        console.print(f"  {i}. {step}")


@app.command()
def setup(
    root: Optional[Path] = typer.Option(
        None,
        "--root", "-r",
        help="Platform directory holding docker-compose.yml",
        file_okay=False,
    ),
    skip_pull: bool = typer.Option(
        False,
        "--skip-pull",
        help="Do not pull images before starting the stack",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Start the CI/CD stack on this Docker host.

    Checks docker and free ports, then pulls, builds and starts the
    compose services and waits for Jenkins and SonarQube.
    """
    print_header("Jenkins CI/CD Platform Setup")
    setup_logging(verbose)

    config = get_config()
    if root:
        config.platform.root_dir = root

    try:
        result = asyncio.run(PlatformBootstrap(config).run(pull=not skip_pull))
    except PlatformError as e:
        _fail(e)

    table = Table(title="Access your services")
    table.add_column("Service", style="cyan")
    table.add_column("URL")
    table.add_column("Credentials", style="dim")
    for entry in access_summary(config):
        table.add_row(entry["service"], entry["url"], entry["credentials"])
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")

    _print_steps("Next steps", bootstrap.NEXT_STEPS)


@app.command()
def github(
    path: Path = typer.Option(
        Path("."),
        "--path", "-p",
        help="Repository directory",
        file_okay=False,
    ),
    push: Optional[bool] = typer.Option(
        None,
        "--push/--no-push",
        help="Push branches without asking (default: ask)",
    ),
):
    """
    Prepare a Git repository for the multibranch pipeline.

    Configures identity and the origin remote, creates the develop, test
    and prod branches, and optionally pushes them.
    """
    print_header("GitHub Integration Setup for Jenkins")
    setup_logging(False)

    try:
        result = asyncio.run(GitSetup(root=path).run(push=push))
    except PlatformError as e:
        _fail(e)

    console.print(f"\n[bold]Remote:[/bold] {result.remote_url}")
    console.print(f"[bold]Branch:[/bold] {result.home_branch}")
    if result.created_branches:
        console.print(f"[bold]Created:[/bold] {', '.join(result.created_branches)}")
    for name in result.push_failures:
        console.print(f"[yellow]⚠ Failed to push {name}[/yellow]")

    _print_steps("Next steps", git_setup.NEXT_STEPS)


async def _collect_checks(executor: CommandExecutor) -> List[tuple]:
    checks = []
    for tool in ("docker", "git", "trivy", "sonar-scanner"):
        checks.append((tool, await executor.check_tool_exists(tool), tool == "docker"))
    compose = await executor.run("docker compose version", timeout=30)
    checks.append(("docker compose", compose.success, True))
    daemon = await executor.run("docker info", timeout=30)
    checks.append(("docker daemon", daemon.success, True))
    return checks


@app.command()
def check():
    """
    Check host prerequisites, port availability and configuration.
    """
    print_header("Platform Check")
    setup_logging(False)
    config = get_config()

    checks = asyncio.run(_collect_checks(CommandExecutor()))

    table = Table(title="Prerequisites")
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Required")
    for name, ok, required in checks:
        table.add_row(name, "[green]✓[/green]" if ok else "[red]✗[/red]", "yes" if required else "no")
    console.print(table)

    ports = Table(title="Ports")
    ports.add_column("Service", style="cyan")
    ports.add_column("Port")
    ports.add_column("Status")
    for name, port in config.platform.service_ports.items():
        in_use = is_port_in_use(port)
        ports.add_row(name, str(port), "[red]in use[/red]" if in_use else "[green]free[/green]")
    console.print(ports)

    issues = config.validate()
    if issues:
        console.print("[yellow]Configuration warnings:[/yellow]")
        for issue in issues:
            console.print(f"  • {issue}")

    if not all(ok for _, ok, required in checks if required):
        raise typer.Exit(1)


@app.command()
def render(
    output: Path = typer.Option(
        Path("."),
        "--output", "-o",
        help="Directory to write the platform files to",
        file_okay=False,
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
):
    """
    Generate Jenkinsfile, Jenkins init script, compose stack and Prometheus config.
    """
    setup_logging(False)
    try:
        written = asyncio.run(render_platform(output, get_config(), overwrite=force))
    except PlatformError as e:
        _fail(e)

    for path in written:
        console.print(f"  [green]✓[/green] {path}")


@app.command()
def policy(
    branch: str = typer.Argument(..., help="Branch name"),
):
    """
    Show which stages run on a branch and how their failures are handled.
    """
    branch_policy = policy_for(branch)

    table = Table(title=f"Stage policy for '{branch}' ({branch_policy.name})")
    table.add_column("Stage", style="cyan")
    table.add_column("Runs")
    table.add_column("On failure")
    for stage in StageName:
        enabled = branch_policy.enabled(stage)
        table.add_row(
            stage.title,
            "[green]yes[/green]" if enabled else "[dim]-[/dim]",
            branch_policy.failure_mode(stage).value if enabled else "",
        )
    console.print(table)


@app.command()
def pipeline(
    branch: str = typer.Argument(..., help="Branch to build"),
    build_number: int = typer.Option(..., "--build-number", "-n", help="Build number"),
    output_json: bool = typer.Option(False, "--json", help="Output the report as JSON"),
    report_file: Optional[Path] = typer.Option(
        None,
        "--report",
        help="Write a markdown report to this file",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
    """
    Run the branch-gated pipeline locally.

    Exits 0 on success or unstable, 1 when the build failed.
    """
    setup_logging(verbose)

    try:
        report = asyncio.run(run_pipeline(branch, build_number))
    except PlatformError as e:
        _fail(e)

    if output_json:
        typer.echo(json.dumps(report.to_dict(), indent=2))
    else:
        table = Table(title=f"Pipeline {report.pipeline_id}")
        table.add_column("Stage", style="cyan")
        table.add_column("Status")
        table.add_column("Duration")
        table.add_column("Details")
        for stage, result in report.stages.items():
            table.add_row(
                stage.title,
                STATUS_STYLES.get(result.status, result.status.value),
                format_duration(result.duration_seconds),
                result.message,
            )
        console.print(table)
        console.print(f"\n[bold]Status:[/bold] {report.status.value.upper()}")
        for ref in report.pushed_images:
            console.print(f"  • {ref}")

    if report_file:
        report_file.write_text(report.to_markdown())

    if report.status == PipelineStatus.FAILED:
        raise typer.Exit(1)


async def _registry_call(method: str, *args):
    registry = get_config().registry
    async with RegistryClient(registry.url, registry.username, registry.password) as client:
        return await getattr(client, method)(*args)


@registry_app.command("list")
def registry_list():
    """List repositories in the registry."""
    try:
        repositories = asyncio.run(_registry_call("list_repositories"))
    except PlatformError as e:
        _fail(e)

    if not repositories:
        console.print("[dim]No repositories[/dim]")
    for name in repositories:
        console.print(name)


@registry_app.command("tags")
def registry_tags(
    image: str = typer.Argument(..., help="Repository name, e.g. microservice-demo"),
):
    """List tags of a repository."""
    try:
        tags = asyncio.run(_registry_call("list_tags", image))
    except PlatformError as e:
        _fail(e)

    if not tags:
        console.print(f"[dim]No tags for {image}[/dim]")
    for tag in tags:
        console.print(tag)


@app.command()
def serve(
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: $PORT or 3000)"),
):
    """Run the demo microservice."""
    setup_logging(False)
    if not serve_demo_app(port=port):
        console.print("[yellow]Environment is 'test'; server not started[/yellow]")


@app.command()
def version():
    """Show version information."""
    from cicd_platform import __version__
    console.print(f"cicd-platform v{__version__}")


if __name__ == "__main__":
    app()
