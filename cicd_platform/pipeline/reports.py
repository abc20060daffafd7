"""
Security scan report parsing.

Summarizes the JSON reports written by Trivy and OWASP Dependency-Check so
the pipeline can log findings and archive a compact summary.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Union

from ..core.logger import get_logger
from .policy import BLOCKING_SEVERITIES

logger = get_logger("ScanReports")

SEVERITIES = ("CRITICAL", "HIGH", "MEDIUM", "LOW", "UNKNOWN")

# Dependency-Check reports some CVSS v2 scores as "MODERATE"
_SEVERITY_ALIASES = {"MODERATE": "MEDIUM", "INFO": "LOW"}

ReportSource = Union[str, Path, Dict[str, Any], None]


@dataclass
class ScanSummary:
    """Per-severity vulnerability counts for one scanner report."""
    scanner: str
    counts: Dict[str, int] = field(default_factory=lambda: {s: 0 for s in SEVERITIES})
    findings: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    report_found: bool = True

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def blocking(self) -> bool:
        return any(self.counts.get(severity, 0) for severity in BLOCKING_SEVERITIES)

    def add(self, severity: str, finding_id: str) -> None:
        severity = _normalize_severity(severity)
        self.counts[severity] = self.counts.get(severity, 0) + 1
        if severity in BLOCKING_SEVERITIES:
            self.findings.append(f"{severity}: {finding_id}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scanner": self.scanner,
            "counts": self.counts,
            "total": self.total,
            "blocking": self.blocking,
            "findings": self.findings,
            "report_found": self.report_found,
        }


def _normalize_severity(severity: str) -> str:
    severity = (severity or "UNKNOWN").upper()
    severity = _SEVERITY_ALIASES.get(severity, severity)
    return severity if severity in SEVERITIES else "UNKNOWN"


def _load(source: ReportSource, summary: ScanSummary) -> Dict[str, Any]:
    """Load a report from a path or pass a parsed dict through."""
    if isinstance(source, dict):
        return source
    if source is None:
        summary.report_found = False
        summary.warnings.append("No report provided")
        return {}

    path = Path(source)
    if not path.exists():
        summary.report_found = False
        summary.warnings.append(f"Report not found: {path}")
        logger.warning("scan report missing", scanner=summary.scanner, path=str(path))
        return {}

    try:
        return json.loads(path.read_text())
    except json.JSONDecodeError as e:
        summary.warnings.append(f"Invalid JSON in {path}: {e}")
        logger.warning("scan report unreadable", scanner=summary.scanner, path=str(path))
        return {}


def summarize_trivy(source: ReportSource) -> ScanSummary:
    """Count vulnerabilities across ``Results[].Vulnerabilities[]``."""
    summary = ScanSummary(scanner="trivy")
    data = _load(source, summary)

    for result in data.get("Results") or []:
        for vuln in result.get("Vulnerabilities") or []:
            finding = f"{vuln.get('VulnerabilityID', '?')} in {vuln.get('PkgName', result.get('Target', '?'))}"
            summary.add(vuln.get("Severity"), finding)

    return summary


def summarize_dependency_check(source: ReportSource) -> ScanSummary:
    """Count vulnerabilities across ``dependencies[].vulnerabilities[]``."""
    summary = ScanSummary(scanner="dependency-check")
    data = _load(source, summary)

    for dependency in data.get("dependencies") or []:
        for vuln in dependency.get("vulnerabilities") or []:
            finding = f"{vuln.get('name', '?')} in {dependency.get('fileName', '?')}"
            summary.add(vuln.get("severity"), finding)

    return summary
