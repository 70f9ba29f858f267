"""
REST API Client for the Gym Management Backend.

Thin async wrapper around httpx that turns backend responses into one of
three outcomes:
- success: ApiResponse with the decoded JSON body
- HTTP 429: ApiResponse with rate_limited=True and the server's retry hint
- anything else: ApiRejectedError / ApiNetworkError

A fresh AsyncClient is opened per request so the client can be driven from
event loops that are created and closed per UI action.
"""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from gymdesk.core.config import DashboardSettings, get_settings
from gymdesk.utils.errors import ApiNetworkError, ApiRejectedError

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Request failed"
DEFAULT_RETRY_AFTER = "a few minutes"


@dataclass
class ApiResponse:
    """Decoded response from the backend."""

    status_code: int
    data: Any = None
    rate_limited: bool = False
    retry_after: Optional[str] = None

    @property
    def success(self) -> bool:
        return not self.rate_limited


def extract_error_message(payload: Any, default: str = DEFAULT_ERROR_MESSAGE) -> str:
    """
    Pull a human readable message out of an error body.

    Validation failures carry the individual messages under ``details``;
    every other error uses ``error`` (or ``message``).
    """
    if not isinstance(payload, dict):
        if isinstance(payload, str) and payload.strip():
            return payload.strip()
        return default

    details = payload.get("details")
    if isinstance(details, list) and details:
        messages = [
            str(d.get("msg")) for d in details if isinstance(d, dict) and d.get("msg")
        ]
        if messages:
            return "; ".join(messages)

    for key in ("error", "message"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return default


def extract_retry_after(response: httpx.Response, payload: Any) -> str:
    """Retry hint from the body (retryAfter) or the Retry-After header."""
    if isinstance(payload, dict):
        for key in ("retryAfter", "retry_after"):
            value = payload.get(key)
            if value not in (None, ""):
                return str(value)
    header = response.headers.get("Retry-After")
    if header:
        return f"{header} seconds" if header.isdigit() else header
    return DEFAULT_RETRY_AFTER


class DashboardApiClient:
    """
    Async client for the gym management REST API.

    Example:
        >>> client = DashboardApiClient()
        >>> response = await client.get("/members", params={"status": "active"})
        >>> response.data["members"]
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        settings: Optional[DashboardSettings] = None,
    ):
        self._settings = settings or get_settings()
        self.base_url = (base_url or self._settings.API_BASE_URL).rstrip("/")
        self.timeout = timeout or self._settings.REQUEST_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        )

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[dict[str, str]] = None,
    ) -> ApiResponse:
        """
        Issue one request. No automatic retries.

        Raises:
            ApiRejectedError: non-success status other than 429
            ApiNetworkError: the request never produced a response
        """
        try:
            async with self._client() as client:
                response = await client.request(
                    method, path, params=params, json=json, headers=headers
                )
        except httpx.TransportError as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise ApiNetworkError(original_error=e) from e

        payload = self._decode(response)

        if response.status_code == 429:
            retry_after = extract_retry_after(response, payload)
            logger.info(f"{method} {path} rate limited, retry after {retry_after}")
            return ApiResponse(
                status_code=429,
                data=payload,
                rate_limited=True,
                retry_after=retry_after,
            )

        if response.is_error:
            message = extract_error_message(
                payload, default=f"{DEFAULT_ERROR_MESSAGE} ({response.status_code})"
            )
            logger.warning(f"{method} {path} rejected ({response.status_code}): {message}")
            raise ApiRejectedError(
                message, status_code=response.status_code, payload=payload
            )

        logger.debug(f"{method} {path} -> {response.status_code}")
        return ApiResponse(status_code=response.status_code, data=payload)

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> ApiResponse:
        return await self.request("GET", path, params=params)

    async def post(
        self, path: str, json: Any = None, headers: Optional[dict[str, str]] = None
    ) -> ApiResponse:
        return await self.request("POST", path, json=json, headers=headers)

    async def put(self, path: str, json: Any = None) -> ApiResponse:
        return await self.request("PUT", path, json=json)

    async def delete(
        self, path: str, json: Any = None, headers: Optional[dict[str, str]] = None
    ) -> ApiResponse:
        return await self.request("DELETE", path, json=json, headers=headers)
