"""Authentication handler for PowerShades API."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from http import HTTPStatus
from typing import TYPE_CHECKING, Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from pypowershades.const import DEFAULT_BASE_URL, DEFAULT_TIMEOUT, LOGIN_PATH, REFRESH_PATH
from pypowershades.exceptions import (
    ApiError,
    AuthBackoffActiveError,
    LoginFailedError,
    MissingRefreshTokenError,
    PowerShadesConnectionError,
    PowerShadesError,
    PowerShadesTimeoutError,
    TokenRefreshFailedError,
)
from pypowershades.models import Credentials, SessionState
from pypowershades.parsers import build_base_candidates
from pypowershades.resilience import AuthBackoff


if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

_LOGGER = logging.getLogger(__name__)


class AuthenticationHandler:
    """Handle authentication with the PowerShades API.

    This class owns the session tokens and the auth backoff state for one
    client instance. It supports two credential modes:

    - **Static token**: the operator-supplied API token is used directly as
      the bearer token. There is no refresh token; login only pins the
      primary base URL.
    - **Email/password**: login exchanges credentials for a JWT access and
      refresh token pair at ``/auth/jwt/``, trying each base URL candidate
      in order. The refresh token is exchanged at ``/auth/jwt/refresh/``.

    Every failed exchange is recorded with the AuthBackoff instance. Once
    the failure streak reaches the configured threshold, login attempts are
    refused with AuthBackoffActiveError until the window closes.

    Example:
        async with ClientSession() as session:
            handler = AuthenticationHandler(
                email="user@example.com",
                password="password",
                session=session,
            )
            await handler.login()
            print(handler.active_base, handler.access_token)

    Attributes:
        credentials: Configured credentials (immutable).
        base_candidates: Ordered base URLs tried during login.
        state: Current tokens and active base URL.
        backoff: Auth failure tracker gating login attempts.
        last_authenticated_at: Timestamp of last successful exchange (None if never).
    """

    def __init__(
        self,
        *,
        email: str | None = None,
        password: str | None = None,
        api_token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        session: ClientSession | None = None,
        backoff: AuthBackoff | None = None,
        on_session_updated: Callable[[AuthenticationHandler], None] | None = None,
    ) -> None:
        """Initialize the authentication handler.

        Args:
            email: Account email address.
            password: Account password.
            api_token: Static API token. Takes precedence over email/password.
            base_url: Base URL for the API. Defaults to PowerShades production API.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            backoff: Optional AuthBackoff instance. A default one is created if omitted.
            on_session_updated: Optional callback invoked after a successful login
                or refresh. Receives the handler instance with updated tokens.
        """
        self.credentials = Credentials(api_token=api_token, email=email, password=password)
        self.base_candidates = build_base_candidates(base_url)
        self.state = SessionState(access_token=api_token or None)
        self.backoff = backoff if backoff is not None else AuthBackoff()
        self.last_authenticated_at: datetime | None = None

        self._session = session
        self._owns_session = session is None
        self._on_session_updated = on_session_updated

    def set_session(self, session: ClientSession) -> None:
        """Set the aiohttp session for this handler.

        The handler will not take ownership and will not close this session.

        Args:
            session: The aiohttp ClientSession to use for requests.
        """
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> AuthenticationHandler:
        """Enter the context manager, creating a session if needed."""
        if self._session is None:
            self._session = ClientSession()
            self._owns_session = True
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, closing the session if owned."""
        if self._owns_session and self._session is not None:
            await self._session.close()

    # -------------------------------------------------------------------------
    # State accessors
    # -------------------------------------------------------------------------

    @property
    def access_token(self) -> str | None:
        """Get the current bearer token."""
        return self.state.access_token

    @property
    def refresh_token(self) -> str | None:
        """Get the current refresh token."""
        return self.state.refresh_token

    @property
    def active_base(self) -> str | None:
        """Get the base URL that last succeeded."""
        return self.state.active_base

    @property
    def base_url(self) -> str:
        """Get the base URL for the next request.

        Returns the active base if set, else the first candidate.
        """
        return self.state.active_base or self.base_candidates[0]

    @property
    def uses_static_token(self) -> bool:
        """Check if a static API token is configured."""
        return self.credentials.uses_api_token

    def is_authenticated(self) -> bool:
        """Check if an access token is held."""
        return self.state.access_token is not None

    def clear_access_token(self) -> None:
        """Drop the access token so the next authenticated call logs in."""
        self.state.access_token = None
        _LOGGER.debug("Access token cleared")

    def _validate_session(self) -> None:
        """Validate that the session is initialized and open.

        Raises:
            RuntimeError: If session is not initialized or is closed.
        """
        if self._session is None:
            msg = "Session not initialized. Use 'async with' or provide a session."
            raise RuntimeError(msg)

        if self._session.closed:
            msg = "Session is closed. Cannot make requests."
            raise RuntimeError(msg)

    # -------------------------------------------------------------------------
    # Auth protocol
    # -------------------------------------------------------------------------

    async def login(self) -> None:
        """Establish an authenticated session.

        With a static token this pins the primary base URL and succeeds
        without a network call. Otherwise the credential exchange is tried
        against each base URL candidate in order; the first candidate that
        returns an access token becomes the active base.

        Raises:
            AuthBackoffActiveError: If a backoff window is open (no network call is made).
            LoginFailedError: If every candidate failed.
            RuntimeError: If the session is not initialized.
        """
        if self.backoff.is_active():
            remaining = self.backoff.remaining_seconds()
            msg = f"Auth in backoff, retry in {remaining:.0f}s"
            raise AuthBackoffActiveError(msg, retry_after=remaining)

        if self.uses_static_token:
            self.state.active_base = self.base_candidates[0]
            self.state.access_token = self.credentials.api_token
            self._mark_authenticated()
            _LOGGER.debug("Using static API token against %s", self.state.active_base)
            return

        self._validate_session()

        payload = {"email": self.credentials.email, "password": self.credentials.password}
        last_error: Exception | None = None

        for base in self.base_candidates:
            try:
                data = await self._post(base, LOGIN_PATH, payload)
            except PowerShadesError as exc:
                _LOGGER.debug("Login against %s failed: %s", base, exc)
                last_error = exc
                continue

            access = _extract_access_token(data)
            if not access:
                last_error = LoginFailedError("No access token returned")
                _LOGGER.debug("Login against %s returned no access token", base)
                continue

            self.state.active_base = base
            self.state.access_token = access
            self.state.refresh_token = data.get("refresh") if isinstance(data, dict) else None
            self._mark_authenticated()
            _LOGGER.info("Login successful against %s", base)
            return

        self.handle_auth_failure()
        msg = f"Login failed: {last_error}"
        raise LoginFailedError(msg) from last_error

    async def refresh_tokens(self) -> None:
        """Exchange the refresh token for a new access token.

        On failure the refresh token is dropped, the access token falls back
        to the static token (or None) and the failure is counted.

        Raises:
            MissingRefreshTokenError: If no refresh token is held (not counted as a failure).
            TokenRefreshFailedError: If the exchange failed.
        """
        refresh = self.state.refresh_token
        if not refresh:
            msg = "Missing refresh token"
            raise MissingRefreshTokenError(msg)

        self._validate_session()

        try:
            data = await self._post(self.base_url, REFRESH_PATH, {"refresh": refresh})
        except PowerShadesError as exc:
            self.state.refresh_token = None
            self.state.access_token = self.credentials.api_token or None
            _LOGGER.warning("Token refresh failed: %s", exc)
            self.handle_auth_failure()
            msg = f"Token refresh failed: {exc}"
            raise TokenRefreshFailedError(
                msg,
                status=getattr(exc, "status", None),
                path=REFRESH_PATH,
                body=getattr(exc, "body", None),
            ) from exc

        self.state.access_token = _extract_access_token(data) or self.state.access_token
        if isinstance(data, dict) and data.get("refresh"):
            self.state.refresh_token = data["refresh"]
        self._mark_authenticated()
        _LOGGER.debug("Access token refreshed")

    def handle_auth_failure(self) -> None:
        """Record an authentication failure with the backoff tracker."""
        self.backoff.record_failure()

    def _mark_authenticated(self) -> None:
        """Reset backoff state and notify the session update callback."""
        self.backoff.record_success()
        self.last_authenticated_at = datetime.now(UTC)

        if self._on_session_updated is not None:
            self._on_session_updated(self)

    async def _post(self, base: str, path: str, payload: dict[str, Any]) -> Any:
        """POST an unauthenticated JSON body.

        Args:
            base: Base URL to send to.
            path: Endpoint path.
            payload: JSON body.

        Returns:
            Decoded JSON response (None for empty bodies).

        Raises:
            ApiError: If the response status is not 2xx or the body is not JSON.
            PowerShadesTimeoutError: If the request times out.
            PowerShadesConnectionError: If a connection error occurs.
        """
        assert self._session is not None

        url = f"{base}{path}"
        timeout = ClientTimeout(total=DEFAULT_TIMEOUT)

        try:
            async with self._session.post(url, json=payload, timeout=timeout) as response:
                if response.status == HTTPStatus.NO_CONTENT:
                    return None

                if not HTTPStatus.OK <= response.status < HTTPStatus.MULTIPLE_CHOICES:
                    body = await response.text()
                    msg = f"API error {response.status} on {path}: {body}"
                    raise ApiError(msg, status=response.status, path=path, body=body)

                return await response.json(content_type=None)

        except TimeoutError as exc:
            msg = f"Request to {url} timed out"
            raise PowerShadesTimeoutError(msg) from exc

        except ClientError as exc:
            msg = f"Failed to connect to API: {exc}"
            raise PowerShadesConnectionError(msg) from exc

        except json.JSONDecodeError as exc:
            msg = f"Invalid JSON response from API: {exc}"
            raise ApiError(msg, path=path) from exc


def _extract_access_token(data: Any) -> str | None:
    """Get the access token from a login or refresh response."""
    if not isinstance(data, dict):
        return None
    return data.get("access") or data.get("token") or None
