"""
InfluxDB v2 API client.

Thin aiohttp client for the organization, bucket and DBRP endpoints used by
the reconcilers. Each call opens its own session, so one client can be shared
by reconcilers running concurrently.
"""

import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from config import InfluxDBConfig

logger = logging.getLogger(__name__)


class InfluxDBError(Exception):
    """Raised when an InfluxDB call fails."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class APIError(InfluxDBError):
    """Raised when the InfluxDB API answers with a non-2xx status."""

    def __init__(self, status: int, message: str):
        self.status = status
        super().__init__(f"HTTP {status}: {message}")

    @property
    def not_found(self) -> bool:
        return self.status == 404


class InfluxDBClient:
    """Client for the InfluxDB v2 HTTP API."""

    def __init__(self, endpoint: str, token: str = "", timeout: int = 30):
        self.endpoint = endpoint.rstrip("/")
        self.api_base_url = f"{self.endpoint}/api/v2"
        self.token = token
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: InfluxDBConfig) -> "InfluxDBClient":
        return cls(config.endpoint, config.token, config.timeout)

    # Organizations

    async def find_organization_by_name(self, name: str) -> Dict[str, Any]:
        """
        Find an organization by exact name.

        Raises:
            InfluxDBError: If no organization has that name. The message reads
                "organization '<name>' not found".
        """
        data = await self._request("GET", "/orgs", params={"org": name})
        orgs = (data or {}).get("orgs") or []
        if not orgs:
            raise InfluxDBError(f"organization '{name}' not found")
        return orgs[0]

    async def create_organization(self, org: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/orgs", json=org)

    async def update_organization(self, org: Dict[str, Any]) -> Dict[str, Any]:
        body = {k: v for k, v in org.items() if k in ("name", "description")}
        return await self._request("PATCH", f"/orgs/{org['id']}", json=body)

    async def delete_organization(self, org_id: str) -> None:
        await self._request("DELETE", f"/orgs/{org_id}")

    # Buckets

    async def find_bucket_by_name(self, name: str) -> Dict[str, Any]:
        """
        Find a bucket by exact name.

        Raises:
            InfluxDBError: If no bucket has that name. The message reads
                "bucket '<name>' not found".
        """
        data = await self._request("GET", "/buckets", params={"name": name})
        buckets = (data or {}).get("buckets") or []
        if not buckets:
            raise InfluxDBError(f"bucket '{name}' not found")
        return buckets[0]

    async def create_bucket(self, bucket: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/buckets", json=bucket)

    async def update_bucket(self, bucket: Dict[str, Any]) -> Dict[str, Any]:
        body = {
            k: v
            for k, v in bucket.items()
            if k in ("name", "description", "retentionRules")
        }
        return await self._request("PATCH", f"/buckets/{bucket['id']}", json=body)

    async def delete_bucket(self, bucket_id: str) -> None:
        await self._request("DELETE", f"/buckets/{bucket_id}")

    # Database retention policy mappings

    async def get_dbrps(
        self,
        org: Optional[str] = None,
        org_id: Optional[str] = None,
        dbrp_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """List DBRP mappings. The mappings are under the "content" key."""
        params = {"org": org, "orgID": org_id, "id": dbrp_id}
        return await self._request("GET", "/dbrps", params=params) or {}

    async def post_dbrp(self, body: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request("POST", "/dbrps", json=body)

    async def patch_dbrp(
        self, dbrp_id: str, body: Dict[str, Any], org: Optional[str] = None
    ) -> Dict[str, Any]:
        return await self._request(
            "PATCH", f"/dbrps/{dbrp_id}", params={"org": org}, json=body
        )

    async def delete_dbrp(self, dbrp_id: str, org: Optional[str] = None) -> None:
        await self._request("DELETE", f"/dbrps/{dbrp_id}", params={"org": org})

    # Private helper methods

    def _get_headers(self) -> Dict[str, str]:
        """Get HTTP headers for InfluxDB API requests."""
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Token {self.token}"
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Optional[str]]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Send a request to the API and decode the JSON response.

        Returns:
            The decoded body, or None for empty responses.

        Raises:
            APIError: If the API answers with a status of 400 or above.
        """
        url = f"{self.api_base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        logger.debug(f"{method} {url} params={params}")
        async with aiohttp.ClientSession(timeout=timeout) as session:
            async with session.request(
                method,
                url,
                headers=self._get_headers(),
                params=params or None,
                json=json,
            ) as response:
                if response.status >= 400:
                    raise APIError(response.status, await _error_message(response))
                if response.status == 204:
                    return None
                text = await response.text()
                return _decode(text)


async def _error_message(response: Any) -> str:
    """Extract the error message of an InfluxDB error response."""
    text = await response.text()
    try:
        body = json.loads(text)
    except ValueError:
        return text
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return text


def _decode(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    return json.loads(text)
