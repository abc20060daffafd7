"""Core module initialization."""

from .executor import CommandExecutor, CommandResult
from .logger import get_logger, setup_logging, StageLogger
from .errors import (
    PlatformError,
    SecurityError,
    PrerequisiteError,
    PortConflictError,
    StageFailure,
    QualityGateTimeout,
    RegistryError,
    CalculationError,
)
from .security import InputValidator, SecretsMasker, mask_secrets


__all__ = [
    "CommandExecutor",
    "CommandResult",
    "get_logger",
    "setup_logging",
    "StageLogger",
    # Errors
    "PlatformError",
    "SecurityError",
    "PrerequisiteError",
    "PortConflictError",
    "StageFailure",
    "QualityGateTimeout",
    "RegistryError",
    "CalculationError",
    # Security
    "InputValidator",
    "SecretsMasker",
    "mask_secrets",
]
