"""
Unit tests for the SonarQube and Docker registry clients.
"""

import httpx
import pytest

from cicd_platform.core.errors import QualityGateTimeout, RegistryError
from cicd_platform.integrations.registry import RegistryClient
from cicd_platform.integrations.sonarqube import SonarQubeClient


def _transport(routes):
    """MockTransport answering path -> (status, json) and recording requests."""
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        status, body = routes.get(request.url.path, (404, {"errors": [{"code": "NAME_UNKNOWN"}]}))
        return httpx.Response(status, json=body)

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


class TestRegistryClient:
    """Tests for RegistryClient."""

    @pytest.mark.asyncio
    async def test_list_repositories(self):
        transport = _transport({"/v2/_catalog": (200, {"repositories": ["microservice-demo", "other"]})})

        async with RegistryClient("http://localhost:5000/", transport=transport) as client:
            repositories = await client.list_repositories()

        assert repositories == ["microservice-demo", "other"]
        assert transport.seen[0].url.params["n"] == "100"

    @pytest.mark.asyncio
    async def test_list_tags_sorted(self):
        transport = _transport({
            "/v2/microservice-demo/tags/list": (200, {"name": "microservice-demo", "tags": ["test-2", "latest", "prod-1.0.1"]}),
        })

        async with RegistryClient("http://localhost:5000", transport=transport) as client:
            tags = await client.list_tags("microservice-demo")

        assert tags == ["latest", "prod-1.0.1", "test-2"]

    @pytest.mark.asyncio
    async def test_null_tags_is_empty(self):
        transport = _transport({"/v2/gone/tags/list": (200, {"name": "gone", "tags": None})})

        async with RegistryClient("http://localhost:5000", transport=transport) as client:
            assert await client.list_tags("gone") == []

    @pytest.mark.asyncio
    async def test_unknown_repository_raises(self):
        async with RegistryClient("http://localhost:5000", transport=_transport({})) as client:
            with pytest.raises(RegistryError) as exc_info:
                await client.list_tags("missing")

        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_non_json_reply_raises_registry_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>login</html>"))

        async with RegistryClient("http://localhost:5000", transport=transport) as client:
            with pytest.raises(RegistryError, match="non-JSON"):
                await client.list_repositories()

    @pytest.mark.asyncio
    async def test_non_object_reply_raises_registry_error(self):
        transport = _transport({"/v2/_catalog": (200, ["microservice-demo"])})

        async with RegistryClient("http://localhost:5000", transport=transport) as client:
            with pytest.raises(RegistryError, match="unexpected response"):
                await client.list_repositories()

    @pytest.mark.asyncio
    async def test_basic_auth_sent(self):
        transport = _transport({"/v2/_catalog": (200, {"repositories": []})})

        async with RegistryClient("http://localhost:5000", "admin", "secret", transport=transport) as client:
            await client.list_repositories()

        assert transport.seen[0].headers["Authorization"].startswith("Basic ")

    @pytest.mark.asyncio
    async def test_ping_accepts_unauthorized(self):
        async with RegistryClient("http://localhost:5000", transport=_transport({"/v2/": (401, {})})) as client:
            assert await client.ping() is True


class TestSonarQubeClient:
    """Tests for SonarQubeClient."""

    @pytest.mark.asyncio
    async def test_quality_gate_status(self):
        transport = _transport({
            "/api/qualitygates/project_status": (200, {"projectStatus": {
                "status": "ERROR",
                "conditions": [{
                    "status": "ERROR",
                    "metricKey": "coverage",
                    "comparator": "LT",
                    "errorThreshold": "80",
                    "actualValue": "42",
                }],
            }}),
        })

        async with SonarQubeClient("http://sonarqube:9000", token="squ_x", transport=transport) as client:
            result = await client.wait_for_quality_gate("demo", timeout=1, poll_interval=0)

        assert result.status == "ERROR"
        assert result.passed is False
        assert result.failed_conditions == ["coverage LT 80 (actual 42)"]
        assert transport.seen[0].url.params["projectKey"] == "demo"

    @pytest.mark.asyncio
    async def test_quality_gate_timeout(self):
        transport = _transport({
            "/api/qualitygates/project_status": (200, {"projectStatus": {"status": "NONE"}}),
        })

        async with SonarQubeClient("http://sonarqube:9000", transport=transport) as client:
            with pytest.raises(QualityGateTimeout):
                await client.wait_for_quality_gate("demo", timeout=0, poll_interval=0)

    @pytest.mark.asyncio
    async def test_health_check(self):
        transport = _transport({"/api/system/status": (200, {"status": "UP"})})

        async with SonarQubeClient("http://sonarqube:9000", transport=transport) as client:
            assert await client.health_check() is True
