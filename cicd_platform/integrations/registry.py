"""
Docker Registry HTTP API v2 client (read-only).
"""
from typing import List, Optional

import httpx

from .base import BaseIntegration
from ..core.errors import RegistryError


class RegistryClient(BaseIntegration):
    """Lists repositories and tags of the platform's Docker registry."""

    name = "registry"

    def __init__(
        self,
        base_url: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            base_url,
            timeout=timeout,
            auth=(username, password) if username and password else None,
            transport=transport,
        )

    async def _get_json(self, endpoint: str, params: Optional[dict] = None) -> dict:
        try:
            response = await self.get(endpoint, params=params)
        except httpx.HTTPError as e:
            raise RegistryError(f"Registry request failed: {e}", url=f"{self.base_url}{endpoint}") from e

        if response.status_code >= 400:
            raise RegistryError(
                f"Registry returned {response.status_code} for {endpoint}",
                status_code=response.status_code,
                url=str(response.url),
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RegistryError(
                f"Registry returned a non-JSON response for {endpoint}",
                status_code=response.status_code,
                url=str(response.url),
            ) from e
        if not isinstance(data, dict):
            raise RegistryError(
                f"Registry returned an unexpected response for {endpoint}",
                status_code=response.status_code,
                url=str(response.url),
            )
        return data

    async def ping(self) -> bool:
        """True when ``/v2/`` answers (200, or 401 when auth is required)."""
        try:
            response = await self.get("/v2/")
        except httpx.HTTPError:
            return False
        return response.status_code in (200, 401)

    async def list_repositories(self, page_size: int = 100) -> List[str]:
        data = await self._get_json("/v2/_catalog", params={"n": page_size})
        return data.get("repositories") or []

    async def list_tags(self, image: str) -> List[str]:
        data = await self._get_json(f"/v2/{image}/tags/list")
        # The registry reports tags: null once every tag of a repository is deleted
        return sorted(data.get("tags") or [])
