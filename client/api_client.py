"""
HTTP client for the Mentara sessions API
Builds the edge-function base URL from the project id and sends every
request with a bearer token and a bounded timeout
"""
import logging
import os
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

from utils.errors import ApiError, NetworkError

load_dotenv()

logger = logging.getLogger(__name__)

FUNCTION_NAME = "make-server-a40ffbb5"
DEFAULT_TIMEOUT = float(os.getenv("MENTARA_REQUEST_TIMEOUT", "10"))


def build_base_url(project_id: str) -> str:
    return f"https://{project_id}.supabase.co/functions/v1/{FUNCTION_NAME}"


class MentaraApiClient:
    """
    Thin async wrapper over httpx.AsyncClient

    Args:
        project_id: Supabase project id (MENTARA_PROJECT_ID)
        anon_key: public anonymous key (MENTARA_ANON_KEY), used when no access token is given
        access_token: signed-in user's token; required for per-user endpoints
        base_url: overrides the URL derived from project_id (MENTARA_API_BASE_URL)
        timeout: seconds before a request counts as a network failure
        transport: optional httpx transport (e.g. ASGITransport for in-process use)
    """

    def __init__(
        self,
        project_id: Optional[str] = None,
        anon_key: Optional[str] = None,
        access_token: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        project_id = project_id or os.getenv("MENTARA_PROJECT_ID")
        base_url = base_url or os.getenv("MENTARA_API_BASE_URL")
        if not base_url:
            if not project_id:
                raise ValueError("MENTARA_PROJECT_ID or MENTARA_API_BASE_URL must be configured")
            base_url = build_base_url(project_id)

        token = access_token or anon_key or os.getenv("MENTARA_ANON_KEY")
        headers = {"Authorization": f"Bearer {token}"} if token else {}

        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Send a request and return the decoded JSON body

        Raises:
            NetworkError: connection failure or timeout
            ApiError: non-2xx response or a body with success == false
        """
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.error(f"{method} {path} timed out")
            raise NetworkError(f"Request to {path} timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Network error during {method} {path}: {e}")
            raise NetworkError(f"Network error during request to {path}: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {"data": payload}

        if not response.is_success or payload.get("success") is False:
            message = payload.get("error") or f"Request failed with status {response.status_code}"
            raise ApiError(message, response.status_code, payload.get("code"), payload)

        return payload

    async def get(self, path: str) -> Dict[str, Any]:
        return await self.request("GET", path)

    async def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Dict[str, Any]:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
