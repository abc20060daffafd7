"""
Base class for HTTP tool integrations
"""
from typing import Any, Dict, Optional

import httpx


class BaseIntegration:
    """Base class for the SonarQube and registry HTTP clients."""

    name = "integration"

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        auth: Optional[tuple] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._auth = auth
        self.client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _get_headers(self) -> Dict[str, str]:
        return {"Accept": "application/json"}

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict] = None,
        headers: Optional[Dict] = None,
    ) -> httpx.Response:
        """Make an HTTP request to the tool API"""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        req_headers = self._get_headers()
        if headers:
            req_headers.update(headers)

        return await self.client.request(
            method=method,
            url=url,
            params=params,
            headers=req_headers,
            auth=self._auth,
        )

    async def get(self, endpoint: str, params: Optional[Dict] = None, **kwargs: Any) -> httpx.Response:
        return await self._request("GET", endpoint, params=params, **kwargs)

    async def close(self) -> None:
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
