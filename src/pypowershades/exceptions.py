"""Custom exceptions for pypowershades library."""

from __future__ import annotations

from typing import Any


class PowerShadesError(Exception):
    """Base exception for all PowerShades errors."""


class AuthenticationError(PowerShadesError):
    """Exception raised for authentication failures."""


class AuthBackoffActiveError(AuthenticationError):
    """Exception raised when an auth attempt is refused during a backoff window.

    Attributes:
        retry_after: Seconds remaining until authentication may be retried.
    """

    def __init__(self, message: str = "", retry_after: float | None = None) -> None:
        """Initialize AuthBackoffActiveError.

        Args:
            message: Error message.
            retry_after: Optional number of seconds until the window closes.
        """
        super().__init__(message)
        self.retry_after = retry_after


class LoginFailedError(AuthenticationError):
    """Exception raised when login failed against every base URL candidate."""


class MissingRefreshTokenError(AuthenticationError):
    """Exception raised when a refresh is requested without a refresh token."""


class ApiError(PowerShadesError):
    """Exception raised for a failed remote call.

    Attributes:
        status: HTTP status code, if a response was received.
        path: Request path that failed.
        body: Raw response body text.
    """

    def __init__(
        self,
        message: str = "",
        *,
        status: int | None = None,
        path: str | None = None,
        body: str | None = None,
    ) -> None:
        """Initialize ApiError.

        Args:
            message: Error message.
            status: Optional HTTP status code.
            path: Optional request path.
            body: Optional response body.
        """
        super().__init__(message)
        self.status = status
        self.path = path
        self.body = body


class TokenRefreshFailedError(ApiError, AuthenticationError):
    """Exception raised when a 401 could not be recovered by refreshing tokens."""


class ReloginFailedError(ApiError, AuthenticationError):
    """Exception raised when a 401 could not be recovered by logging in again."""


class PowerShadesConnectionError(PowerShadesError):
    """Exception raised for connection failures."""


class PowerShadesTimeoutError(PowerShadesError):
    """Exception raised when API requests timeout."""


class InvalidParameterError(PowerShadesError):
    """Exception raised for invalid parameter values.

    Attributes:
        parameter_name: Optional name of the invalid parameter.
        value: Optional value that was invalid.
    """

    def __init__(
        self,
        message: str = "",
        parameter_name: str | None = None,
        value: Any = None,
    ) -> None:
        """Initialize InvalidParameterError.

        Args:
            message: Error message.
            parameter_name: Optional name of the invalid parameter.
            value: Optional value that was invalid.
        """
        super().__init__(message)
        self.parameter_name = parameter_name
        self.value = value
