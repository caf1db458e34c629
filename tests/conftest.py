"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock

import pytest
from aiohttp import ClientSession, web


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable

    from aiohttp.test_utils import TestClient


@dataclass
class RecordedRequest:
    """A request received by the scripted server."""

    method: str
    path: str
    authorization: str | None
    json: Any


@dataclass
class ScriptedServer:
    """In-process PowerShades API stand-in.

    Responses are queued per path and consumed in order. A request for a
    path with no queued response gets a 500, so unexpected calls fail loudly.
    """

    responses: dict[str, list[tuple[int, Any]]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)

    def add(self, path: str, status: int = HTTPStatus.OK, body: Any = None) -> None:
        """Queue a response for a path."""
        self.responses.setdefault(path, []).append((status, body))

    @property
    def paths(self) -> list[str]:
        """Get request paths in the order received."""
        return [request.path for request in self.requests]

    async def handle(self, request: web.Request) -> web.Response:
        """Record the request and return the next queued response."""
        payload = await request.json() if request.can_read_body else None
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                authorization=request.headers.get("Authorization"),
                json=payload,
            )
        )

        queue = self.responses.get(request.path)
        if not queue:
            return web.Response(status=HTTPStatus.INTERNAL_SERVER_ERROR, text="No mock response configured")

        status, body = queue.pop(0)
        if body is None:
            return web.Response(status=status)
        if isinstance(body, str):
            return web.Response(status=status, text=body)
        return web.json_response(body, status=status)

    def make_app(self) -> web.Application:
        """Create an aiohttp application routing every path to this server."""
        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self.handle)
        return app


@pytest.fixture
def server() -> ScriptedServer:
    """Create a scripted API server."""
    return ScriptedServer()


@pytest.fixture
async def http_client(aiohttp_client: Callable[..., Any], server: ScriptedServer) -> TestClient:
    """Start the scripted server and return its test client."""
    return await aiohttp_client(server.make_app())


@pytest.fixture
def base_url(http_client: TestClient) -> str:
    """Get the base URL of the scripted server."""
    return str(http_client.make_url("")).rstrip("/")


@pytest.fixture
async def mock_session() -> AsyncGenerator[ClientSession]:
    """Create a mock aiohttp ClientSession.

    Yields:
        Mock ClientSession for testing.
    """
    session = AsyncMock(spec=ClientSession)
    session.closed = False

    async def mock_close() -> None:
        session.closed = True

    session.close = mock_close

    yield session

    if not session.closed:
        await session.close()
