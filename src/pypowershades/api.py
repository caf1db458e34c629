"""Low-level API client for PowerShades cloud endpoints.

This module provides authenticated HTTP communication with the PowerShades
API. List endpoints are normalized to plain lists of raw records; every
other failure surfaces as an exception from pypowershades.exceptions.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from aiohttp import ClientError, ClientSession, ClientTimeout, TCPConnector

from pypowershades.const import (
    CONNECTION_LIMIT,
    DEFAULT_TIMEOUT,
    GROUP_MOVE_PATH,
    GROUPS_PATH,
    KEEPALIVE_TIMEOUT,
    SCENES_PATH,
    SCHEDULES_PATH,
    SHADE_ATTRIBUTES_PATH,
    SHADE_MOVE_PATH,
    SHADES_PATH,
)
from pypowershades.exceptions import (
    ApiError,
    AuthBackoffActiveError,
    AuthenticationError,
    PowerShadesConnectionError,
    PowerShadesTimeoutError,
    ReloginFailedError,
    TokenRefreshFailedError,
)
from pypowershades.parsers import clamp_position, normalize_list


if TYPE_CHECKING:
    from types import TracebackType

    from pypowershades.auth import AuthenticationHandler

_LOGGER = logging.getLogger(__name__)


def create_session() -> ClientSession:
    """Create a ClientSession with a keep-alive connection pool."""
    connector = TCPConnector(limit=CONNECTION_LIMIT, keepalive_timeout=KEEPALIVE_TIMEOUT)
    return ClientSession(connector=connector)


class PowerShadesAPI:
    """Low-level API client for the PowerShades cloud service.

    This class handles raw HTTP communication with the PowerShades API,
    including authentication headers, the 401 recovery protocol and
    response normalization.

    401 recovery happens at most once per logical call:
    - With a refresh token, tokens are refreshed and the call is retried.
    - With email/password and no refresh token, the client logs in again
      and retries.
    - With a static token, the rejection is permanent: the failure is
      counted and ApiError is raised.

    Example:
        ```python
        from pypowershades.api import PowerShadesAPI
        from pypowershades.auth import AuthenticationHandler

        auth = AuthenticationHandler(api_token="my-token")
        async with PowerShadesAPI(auth_handler=auth) as api:
            shades = await api.get_shades()
            await api.move_shade(shades[0]["name"], 50)
        ```
    """

    def __init__(
        self,
        *,
        auth_handler: AuthenticationHandler,
        session: ClientSession | None = None,
    ) -> None:
        """Initialize the API client.

        Args:
            auth_handler: AuthenticationHandler for managing tokens and backoff.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
        """
        self._auth_handler = auth_handler
        self._session = session
        self._owns_session = session is None

        if session is not None:
            auth_handler.set_session(session)

    @property
    def auth_handler(self) -> AuthenticationHandler:
        """Get the authentication handler."""
        return self._auth_handler

    async def __aenter__(self) -> PowerShadesAPI:
        """Enter the context manager.

        Creates a keep-alive session if needed and shares it with the auth handler.

        Returns:
            Self for use in async with statements.
        """
        if self._session is None:
            self._session = create_session()
            self._owns_session = True

        self._auth_handler.set_session(self._session)
        await self._auth_handler.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if owned."""
        await self._auth_handler.__aexit__(exc_type, exc_val, exc_tb)

        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
        authenticated: bool = True,
        retry_on_401: bool = True,
    ) -> Any:
        """Make an API request against the active base URL.

        Args:
            method: HTTP method (GET, POST).
            path: API endpoint path (e.g., "/shades/").
            json_data: Optional JSON data for request body.
            authenticated: Whether to attach the bearer token.
            retry_on_401: Whether a 401 may trigger token recovery and one retry.

        Returns:
            Decoded JSON body, or None for 204 and empty responses.

        Raises:
            AuthBackoffActiveError: If an auth backoff window is open.
            LoginFailedError: If the initial login fails.
            TokenRefreshFailedError: If a 401 could not be recovered by refreshing.
            ReloginFailedError: If a 401 could not be recovered by logging in again.
            ApiError: For any other non-2xx response.
            PowerShadesTimeoutError: If the request times out.
            PowerShadesConnectionError: If a connection error occurs.
        """
        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self._session.closed:
            msg = "Session is closed. Cannot make request."
            raise RuntimeError(msg)

        headers: dict[str, str] = {}
        if authenticated:
            backoff = self._auth_handler.backoff
            if backoff.is_active():
                remaining = backoff.remaining_seconds()
                msg = f"Auth in backoff, retry in {remaining:.0f}s"
                raise AuthBackoffActiveError(msg, retry_after=remaining)

            if not self._auth_handler.access_token:
                await self._auth_handler.login()
            headers["Authorization"] = f"Bearer {self._auth_handler.access_token}"

        url = f"{self._auth_handler.base_url}{path}"
        status, data, body = await self._send(method, url, path, json_data=json_data, headers=headers)

        if status == HTTPStatus.UNAUTHORIZED and authenticated and retry_on_401:
            return await self._recover_unauthorized(method, path, json_data=json_data, body=body)

        if not HTTPStatus.OK <= status < HTTPStatus.MULTIPLE_CHOICES:
            msg = f"API error {status} on {path}: {body}"
            raise ApiError(msg, status=status, path=path, body=body)

        return data

    async def _recover_unauthorized(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None,
        body: str,
    ) -> Any:
        """Recover from a 401 and retry the call once."""
        auth = self._auth_handler

        if auth.refresh_token:
            _LOGGER.debug("Received 401 on %s, refreshing tokens", path)
            try:
                await auth.refresh_tokens()
            except AuthenticationError as exc:
                msg = "Token refresh failed"
                raise TokenRefreshFailedError(msg, status=HTTPStatus.UNAUTHORIZED, path=path, body=body) from exc
            return await self.request(method, path, json_data=json_data, retry_on_401=False)

        if not auth.uses_static_token:
            _LOGGER.debug("Received 401 on %s without refresh token, logging in again", path)
            auth.clear_access_token()
            try:
                await auth.login()
            except AuthenticationError as exc:
                msg = "Re-login failed"
                raise ReloginFailedError(msg, status=HTTPStatus.UNAUTHORIZED, path=path, body=body) from exc
            return await self.request(method, path, json_data=json_data, retry_on_401=False)

        _LOGGER.warning("API token rejected on %s", path)
        auth.handle_auth_failure()
        msg = f"API error {HTTPStatus.UNAUTHORIZED} on {path}: {body}"
        raise ApiError(msg, status=HTTPStatus.UNAUTHORIZED, path=path, body=body)

    async def _send(
        self,
        method: str,
        url: str,
        path: str,
        *,
        json_data: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> tuple[int, Any, str]:
        """Execute a single HTTP exchange.

        Returns:
            Tuple of (status_code, decoded_body, error_body_text).
        """
        assert self._session is not None
        timeout = ClientTimeout(total=DEFAULT_TIMEOUT)

        _LOGGER.debug("%s %s", method, url)

        try:
            async with self._session.request(
                method,
                url,
                json=json_data,
                headers=headers,
                timeout=timeout,
            ) as response:
                if response.status == HTTPStatus.NO_CONTENT:
                    return response.status, None, ""

                if HTTPStatus.OK <= response.status < HTTPStatus.MULTIPLE_CHOICES:
                    return response.status, await response.json(content_type=None), ""

                return response.status, None, await response.text()

        except TimeoutError as exc:
            msg = f"Request to {url} timed out"
            raise PowerShadesTimeoutError(msg) from exc

        except ClientError as exc:
            msg = f"Connection error for {url}: {exc}"
            raise PowerShadesConnectionError(msg) from exc

        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON response on {path}: {exc}"
            raise ApiError(msg, path=path) from exc

    # -------------------------------------------------------------------------
    # Shade Endpoints
    # -------------------------------------------------------------------------

    async def get_shades(self) -> list[dict[str, Any]]:
        """Get the list of shade records.

        Returns:
            List of records such as {"id": 1, "name": "Living Room", "current_position": 40}.
        """
        return normalize_list(await self.request("GET", SHADES_PATH))

    async def get_shade_attributes(self) -> list[dict[str, Any]]:
        """Get shade attribute records (battery, signal and similar)."""
        return normalize_list(await self.request("GET", SHADE_ATTRIBUTES_PATH))

    async def move_shade(self, name: str, percentage: float) -> Any:
        """Move a shade by name.

        The command is fire-and-forget: success means the service accepted it,
        not that the shade reached the target.

        Args:
            name: Shade name.
            percentage: Target position, clamped to 0-100.

        Returns:
            Opaque response body, or None for 204.
        """
        return await self.request(
            "POST",
            SHADE_MOVE_PATH,
            json_data={"shade_name": name, "percentage": clamp_position(percentage)},
        )

    # -------------------------------------------------------------------------
    # Group Endpoints
    # -------------------------------------------------------------------------

    async def get_groups(self) -> list[dict[str, Any]]:
        """Get the list of group records.

        Returns:
            List of records such as {"id": 1, "name": "Bedroom", "shades": [1, 2]}.
        """
        return normalize_list(await self.request("GET", GROUPS_PATH))

    async def move_group(self, group_id: Any, percentage: float) -> Any:
        """Move every shade in a group.

        Args:
            group_id: Group identifier.
            percentage: Target position, clamped to 0-100.

        Returns:
            Opaque response body, or None for 204.
        """
        return await self.request(
            "POST",
            GROUP_MOVE_PATH.format(group_id=group_id),
            json_data={"percentage": clamp_position(percentage)},
        )

    # -------------------------------------------------------------------------
    # Scene and Schedule Endpoints
    # -------------------------------------------------------------------------

    async def get_scenes(self) -> list[dict[str, Any]]:
        """Get the list of scene records."""
        return normalize_list(await self.request("GET", SCENES_PATH))

    async def get_schedules(self) -> list[dict[str, Any]]:
        """Get the list of schedule records."""
        return normalize_list(await self.request("GET", SCHEDULES_PATH))
