"""Exception hierarchy for the CI/CD platform."""


class PlatformError(Exception):
    """Base class for all platform errors."""
    pass


class SecurityError(PlatformError):
    """Raised when a security violation is detected."""
    pass


class PrerequisiteError(PlatformError):
    """Raised when a host prerequisite (docker, compose, daemon) is missing."""
    pass


class PortConflictError(PlatformError):
    """Raised when ports required by the stack are already in use."""

    def __init__(self, conflicts: dict):
        self.conflicts = conflicts
        super().__init__(
            f"{len(conflicts)} port(s) are already in use: "
            + ", ".join(f"{port} ({name})" for name, port in conflicts.items())
        )


class StageFailure(PlatformError):
    """Raised inside a stage when one of its steps fails."""

    def __init__(self, message: str, output: str = ""):
        self.output = output
        super().__init__(message)


class QualityGateTimeout(PlatformError):
    """Raised when the quality gate does not report a final status in time."""
    pass


class RegistryError(PlatformError):
    """Raised when the Docker registry API returns an error."""

    def __init__(self, message: str, status_code: int = None, url: str = None):
        self.status_code = status_code
        self.url = url
        super().__init__(message)


class CalculationError(PlatformError):
    """Raised for invalid calculator input; maps to HTTP 400."""
    pass
