"""
Unit tests for scan report summaries.
"""

import json

from cicd_platform.pipeline.reports import summarize_dependency_check, summarize_trivy


TRIVY_REPORT = {
    "Results": [
        {
            "Target": "requirements.txt",
            "Vulnerabilities": [
                {"VulnerabilityID": "CVE-2023-0001", "PkgName": "flask", "Severity": "HIGH"},
                {"VulnerabilityID": "CVE-2023-0002", "PkgName": "jinja2", "Severity": "LOW"},
            ],
        },
        {"Target": "Dockerfile", "Vulnerabilities": None},
    ]
}

DEPENDENCY_CHECK_REPORT = {
    "dependencies": [
        {
            "fileName": "httpx-0.25.0.tar.gz",
            "vulnerabilities": [
                {"name": "CVE-2024-1111", "severity": "CRITICAL"},
                {"name": "CVE-2024-2222", "severity": "MODERATE"},
            ],
        },
        {"fileName": "rich-13.0.tar.gz"},
    ]
}


class TestTrivySummary:
    """Test Trivy report parsing."""

    def test_counts_by_severity(self):
        summary = summarize_trivy(TRIVY_REPORT)

        assert summary.total == 2
        assert summary.counts["HIGH"] == 1
        assert summary.counts["LOW"] == 1
        assert summary.blocking is True
        assert summary.findings == ["HIGH: CVE-2023-0001 in flask"]

    def test_reads_file(self, tmp_path):
        path = tmp_path / "trivy-report.json"
        path.write_text(json.dumps(TRIVY_REPORT))

        summary = summarize_trivy(path)
        assert summary.report_found is True
        assert summary.total == 2

    def test_missing_file_is_a_warning(self, tmp_path):
        summary = summarize_trivy(tmp_path / "missing.json")

        assert summary.report_found is False
        assert summary.total == 0
        assert summary.warnings

    def test_invalid_json_is_a_warning(self, tmp_path):
        path = tmp_path / "trivy-report.json"
        path.write_text("{not json")

        summary = summarize_trivy(path)
        assert summary.total == 0
        assert "Invalid JSON" in summary.warnings[0]

    def test_clean_report_does_not_block(self):
        summary = summarize_trivy({"Results": []})
        assert summary.blocking is False


class TestDependencyCheckSummary:
    """Test OWASP Dependency-Check report parsing."""

    def test_counts_and_aliases(self):
        summary = summarize_dependency_check(DEPENDENCY_CHECK_REPORT)

        assert summary.counts["CRITICAL"] == 1
        assert summary.counts["MEDIUM"] == 1
        assert summary.blocking is True
        assert summary.to_dict()["total"] == 2

    def test_none_source(self):
        summary = summarize_dependency_check(None)
        assert summary.report_found is False
