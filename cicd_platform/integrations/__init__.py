"""HTTP integrations with the platform's services."""

from .registry import RegistryClient
from .sonarqube import SonarQubeClient, QualityGateResult

__all__ = ["RegistryClient", "SonarQubeClient", "QualityGateResult"]
