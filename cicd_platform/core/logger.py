"""
Structured logging for the CI/CD platform.
Uses structlog for contextual logs and rich for operator-facing output.
"""

import structlog
from rich.console import Console
from rich.markup import escape
from rich.theme import Theme
from typing import Any, Dict

from .security import SecretsMasker

# Custom theme for rich output
custom_theme = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "success": "bold green",
    "step": "bold magenta",
})

console = Console(theme=custom_theme)


def setup_logging(verbose: bool = False) -> None:
    """Configure structlog; JSON lines unless ``verbose`` asks for the console renderer."""
    renderer = structlog.dev.ConsoleRenderer(colors=True) if verbose else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(0),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance with the given name."""
    return structlog.get_logger(name)


class StageLogger:
    """
    Logger for pipeline stages and setup steps.

    Every call prints one line on the rich console and emits one structlog
    event. Messages and string fields go through ``SecretsMasker`` first,
    because they routinely embed command lines with tokens and passwords.

    Build context (branch, build number, stage) is attached with ``bind``;
    the stage, when bound, also shows up in the console label.
    """

    ICONS = {
        "step": "→",
        "success": "✓",
        "warning": "⚠",
        "error": "✗",
        "info": "ℹ",
    }

    def __init__(self, component: str, **context: Any):
        self.component = component
        self.context: Dict[str, Any] = context
        self.logger = get_logger(component).bind(**context)

    def bind(self, **context: Any) -> "StageLogger":
        """Return a logger for the same component with extra context."""
        return StageLogger(self.component, **{**self.context, **context})

    @property
    def label(self) -> str:
        stage = self.context.get("stage")
        return f"{self.component}/{stage}" if stage else self.component

    def _print(self, style: str, marker: str, message: str) -> None:
        console.print(
            f"[{style}]{escape(marker)}[/{style}] {escape(f'[{self.label}]')} "
            f"{escape(SecretsMasker.mask_secrets(message))}"
        )

    @staticmethod
    def _fields(fields: Dict[str, Any]) -> Dict[str, Any]:
        return SecretsMasker.mask_dict(fields)

    def step(self, message: str, step_num: int = None) -> None:
        """Log the start of a numbered step."""
        self._print("step", f"[Step {step_num}]" if step_num else f"[{self.ICONS['step']}]", message)
        self.logger.info(SecretsMasker.mask_secrets(message), step=step_num)

    def success(self, message: str) -> None:
        self._print("success", self.ICONS["success"], message)
        self.logger.info(SecretsMasker.mask_secrets(message), status="success")

    def warning(self, message: str) -> None:
        self._print("warning", self.ICONS["warning"], message)
        self.logger.warning(SecretsMasker.mask_secrets(message))

    def error(self, message: str, exc: Exception = None) -> None:
        self._print("error", self.ICONS["error"], message)
        self.logger.error(SecretsMasker.mask_secrets(message), exc_info=exc)

    def info(self, message: str, **kwargs: Any) -> None:
        self._print("info", self.ICONS["info"], message)
        self.logger.info(SecretsMasker.mask_secrets(message), **self._fields(kwargs))

    def debug(self, message: str, **kwargs: Any) -> None:
        """Structured event only; nothing is printed."""
        self.logger.debug(SecretsMasker.mask_secrets(message), **self._fields(kwargs))
