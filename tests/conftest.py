"""
Pytest Configuration and Fixtures.
Shared test fixtures for all test modules.

The backend is faked with httpx.MockTransport: tests register canned
responses (or handlers) per method and path, and every request the client
issues is recorded for assertions.
"""

import inspect
import json
from typing import Any, Callable, Optional, Union

import httpx
import pytest

from gymdesk.core.config import DashboardSettings, reset_settings
from gymdesk.gateways.api_client import DashboardApiClient

BASE_URL = "http://testserver/api"

Handler = Callable[[httpx.Request], Any]


class FakeBackend:
    """In-memory stand-in for the gym management REST API."""

    def __init__(self):
        self.routes: dict[tuple[str, str], Union[Handler, tuple]] = {}
        self.requests: list[httpx.Request] = []

    def add(
        self,
        method: str,
        path: str,
        json_body: Any = None,
        status: int = 200,
        headers: Optional[dict[str, str]] = None,
        handler: Optional[Handler] = None,
    ) -> None:
        key = (method.upper(), "/api" + path)
        self.routes[key] = handler if handler is not None else (status, json_body, headers)

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            result = route(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        status, body, headers = route
        if body is None:
            return httpx.Response(status, headers=headers)
        return httpx.Response(status, json=body, headers=headers)

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            r
            for r in self.requests
            if (method is None or r.method == method.upper())
            and (path is None or r.url.path == "/api" + path)
        ]

    def mutating_calls(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method in ("POST", "PUT", "DELETE")]

    @staticmethod
    def body(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None


@pytest.fixture
def settings():
    """Settings isolated from the developer's environment and .env file."""
    reset_settings()
    yield DashboardSettings(_env_file=None, API_BASE_URL=BASE_URL)
    reset_settings()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(backend, settings):
    return DashboardApiClient(
        transport=httpx.MockTransport(backend),
        settings=settings,
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "asyncio: mark test as async"
    )
