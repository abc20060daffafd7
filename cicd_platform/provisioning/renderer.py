"""
Renders the platform files (Jenkinsfile, Jenkins init script, compose
stack, Prometheus config) from configuration and the branch policy.
"""

from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import aiofiles.os
from jinja2 import BaseLoader, Environment

from ..config import Config, get_config
from ..core.errors import PlatformError
from ..core.logger import StageLogger
from ..models.pipeline import StageName
from ..pipeline.policy import BLOCKING_CVSS, BLOCKING_SEVERITIES, branches_for
from .templates import PLATFORM_TEMPLATES

jinja_env = Environment(
    loader=BaseLoader(),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
)


def template_context(config: Config) -> Dict[str, Any]:
    """Values available to every platform template."""
    return {
        "jenkins": config.jenkins,
        "sonarqube": config.sonarqube,
        "registry": config.registry,
        "pipeline": config.pipeline,
        "demo_app": config.demo_app,
        "platform": config.platform,
        "ports": config.platform.service_ports,
        "gates": {stage.value: branches_for(stage) for stage in StageName},
        "quality_gate_minutes": max(1, int(config.pipeline.quality_gate_timeout_seconds // 60)),
        "blocking_cvss": BLOCKING_CVSS,
        "blocking_severities": ",".join(BLOCKING_SEVERITIES),
    }


def render_template(template_str: str, context: Dict[str, Any]) -> str:
    """Render a Jinja2 template string with context."""
    return jinja_env.from_string(template_str).render(**context)


def render_all(config: Config = None) -> Dict[str, str]:
    """Render every platform file in memory, keyed by relative path."""
    context = template_context(config or get_config())
    return {
        relative: render_template(template, context)
        for relative, template in PLATFORM_TEMPLATES.items()
    }


async def render_platform(
    output_dir: Path,
    config: Config = None,
    overwrite: bool = False,
) -> List[Path]:
    """
    Write the rendered platform files under output_dir.

    Args:
        output_dir: Directory the files are written to
        config: Configuration to render from (global config by default)
        overwrite: Replace files that already exist

    Returns:
        Paths of the files written

    Raises:
        PlatformError: A target file exists and overwrite is False
    """
    logger = StageLogger("Render")
    output_dir = Path(output_dir)
    rendered = render_all(config)

    existing = [relative for relative in rendered if (output_dir / relative).exists()]
    if existing and not overwrite:
        raise PlatformError(
            f"Refusing to overwrite existing files: {', '.join(existing)} (use --force)"
        )

    written = []
    for relative, content in rendered.items():
        path = output_dir / relative
        await aiofiles.os.makedirs(path.parent, exist_ok=True)
        async with aiofiles.open(path, "w") as f:
            await f.write(content)
        logger.debug(f"Written to {path}")
        written.append(path)

    logger.success(f"Rendered {len(written)} file(s) into {output_dir}")
    return written
