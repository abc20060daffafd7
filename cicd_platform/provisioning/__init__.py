"""Host, repository and configuration provisioning."""

from .bootstrap import BootstrapResult, PlatformBootstrap, access_summary, is_port_in_use
from .git_setup import GitSetup, GitSetupResult
from .renderer import render_all, render_platform

__all__ = [
    "BootstrapResult",
    "PlatformBootstrap",
    "access_summary",
    "is_port_in_use",
    "GitSetup",
    "GitSetupResult",
    "render_all",
    "render_platform",
]
