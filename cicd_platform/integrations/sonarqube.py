"""
SonarQube API client used by the quality-gate stage.
"""
import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from .base import BaseIntegration
from ..core.errors import QualityGateTimeout
from ..core.logger import get_logger

FINAL_STATUSES = ("OK", "WARN", "ERROR")


@dataclass
class QualityGateResult:
    """Quality gate status for a project."""
    project_key: str
    status: str
    conditions: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return self.status in FINAL_STATUSES

    @property
    def passed(self) -> bool:
        # WARN only exists on older SonarQube versions and never blocks
        return self.status in ("OK", "WARN")

    @property
    def failed_conditions(self) -> List[str]:
        return [
            f"{c.get('metricKey')} {c.get('comparator', '')} {c.get('errorThreshold', '')} "
            f"(actual {c.get('actualValue')})".strip()
            for c in self.conditions
            if c.get("status") == "ERROR"
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "project_key": self.project_key,
            "status": self.status,
            "failed_conditions": self.failed_conditions,
        }


class SonarQubeClient(BaseIntegration):
    """SonarQube web API client (token passed as basic-auth username)."""

    name = "sonarqube"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            auth=(token, "") if token else None,
            transport=transport,
        )
        self.logger = get_logger("SonarQubeClient")

    async def health_check(self) -> bool:
        try:
            response = await self.get("/api/system/status")
            return response.status_code == 200 and response.json().get("status") == "UP"
        except httpx.HTTPError:
            return False

    async def get_quality_gate_status(self, project_key: str) -> QualityGateResult:
        """Get quality gate status for a project"""
        response = await self.get(
            "/api/qualitygates/project_status",
            params={"projectKey": project_key},
        )
        response.raise_for_status()
        project_status = response.json().get("projectStatus", {})
        return QualityGateResult(
            project_key=project_key,
            status=project_status.get("status", "NONE"),
            conditions=project_status.get("conditions", []),
        )

    async def wait_for_quality_gate(
        self,
        project_key: str,
        timeout: float = 600,
        poll_interval: float = 10.0,
    ) -> QualityGateResult:
        """
        Poll until the analysis has a final gate status.

        Raises:
            QualityGateTimeout: if no final status arrives within ``timeout``
        """
        deadline = time.monotonic() + timeout
        attempts = 0

        while True:
            attempts += 1
            result = await self.get_quality_gate_status(project_key)
            if result.is_final:
                self.logger.info(
                    "quality gate resolved",
                    project_key=project_key,
                    status=result.status,
                    attempts=attempts,
                )
                return result

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise QualityGateTimeout(
                    f"Quality gate for {project_key} still {result.status} after {timeout:.0f}s"
                )
            await asyncio.sleep(min(poll_interval, remaining))
