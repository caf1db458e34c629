"""Authentication backoff (circuit breaker for repeated auth failures)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from pypowershades.const import (
    DEFAULT_AUTH_FAILURE_BACKOFF_MS,
    DEFAULT_MAX_AUTH_FAILURES,
    DEFAULT_MAX_BACKOFF_MS,
)
from pypowershades.models import BackoffState


_LOGGER = logging.getLogger(__name__)


@dataclass
class AuthBackoffConfig:
    """Configuration for authentication backoff.

    Attributes:
        max_auth_failures: Consecutive failures tolerated before a backoff window opens.
        auth_failure_backoff_ms: Window length at the threshold, doubled per further failure.
        max_backoff_ms: Upper bound for a single window.
    """

    max_auth_failures: int = DEFAULT_MAX_AUTH_FAILURES
    auth_failure_backoff_ms: int = DEFAULT_AUTH_FAILURE_BACKOFF_MS
    max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS


class AuthBackoff:
    """Track consecutive authentication failures and gate new attempts.

    Failures below the threshold are only counted. Once the streak reaches
    ``max_auth_failures`` every further failure opens a window during which
    auth attempts are refused without contacting the remote service:

        backoff_ms = min(auth_failure_backoff_ms * 2 ** (count - max_auth_failures), max_backoff_ms)

    A successful login or refresh resets the state.

    Example:
        backoff = AuthBackoff(max_auth_failures=3, auth_failure_backoff_ms=60_000)

        if backoff.is_active():
            raise AuthBackoffActiveError("Auth in backoff")

        try:
            await login()
            backoff.record_success()
        except LoginFailedError:
            backoff.record_failure()
            raise
    """

    def __init__(
        self,
        max_auth_failures: int = DEFAULT_MAX_AUTH_FAILURES,
        auth_failure_backoff_ms: int = DEFAULT_AUTH_FAILURE_BACKOFF_MS,
        max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS,
    ) -> None:
        """Initialize auth backoff.

        Args:
            max_auth_failures: Consecutive failures before a window opens.
            auth_failure_backoff_ms: Base window length in milliseconds.
            max_backoff_ms: Maximum window length in milliseconds.
        """
        self.config = AuthBackoffConfig(
            max_auth_failures=max_auth_failures,
            auth_failure_backoff_ms=auth_failure_backoff_ms,
            max_backoff_ms=max_backoff_ms,
        )
        self.state = BackoffState()

    @property
    def consecutive_failures(self) -> int:
        """Get current consecutive failure count."""
        return self.state.consecutive_auth_failures

    @property
    def next_retry_time(self) -> datetime | None:
        """Get the end of the current backoff window, if any."""
        return self.state.next_auth_retry_time

    def is_active(self) -> bool:
        """Check if a backoff window is currently open.

        Returns:
            True if auth attempts must be refused, False otherwise.
        """
        retry_time = self.state.next_auth_retry_time
        return retry_time is not None and datetime.now(UTC) < retry_time

    def remaining_seconds(self) -> float:
        """Get seconds left in the current window (0 when inactive)."""
        retry_time = self.state.next_auth_retry_time
        if retry_time is None:
            return 0.0
        return max((retry_time - datetime.now(UTC)).total_seconds(), 0.0)

    def calculate_backoff_ms(self, failures: int) -> int:
        """Calculate the window length for a given failure count.

        Args:
            failures: Consecutive failure count.

        Returns:
            Window length in milliseconds (0 below the threshold).
        """
        if failures < self.config.max_auth_failures:
            return 0
        exponent = failures - self.config.max_auth_failures
        delay = self.config.auth_failure_backoff_ms * (2**exponent)
        return min(delay, self.config.max_backoff_ms)

    def record_failure(self) -> int:
        """Record a failed authentication exchange.

        Returns:
            Length of the window opened by this failure in milliseconds (0 if none).
        """
        self.state.consecutive_auth_failures += 1
        failures = self.state.consecutive_auth_failures

        if failures < self.config.max_auth_failures:
            _LOGGER.warning(
                "Auth failure %d/%d",
                failures,
                self.config.max_auth_failures,
            )
            return 0

        backoff_ms = self.calculate_backoff_ms(failures)
        self.state.next_auth_retry_time = datetime.now(UTC) + timedelta(milliseconds=backoff_ms)
        _LOGGER.error(
            "Too many auth failures (%d), backing off for %.0fs",
            failures,
            backoff_ms / 1000,
        )
        return backoff_ms

    def record_success(self) -> None:
        """Record a successful authentication exchange."""
        if self.state.consecutive_auth_failures > 0:
            _LOGGER.debug("Auth backoff resetting failure count after success")
        self.state.consecutive_auth_failures = 0
        self.state.next_auth_retry_time = None

    def reset(self) -> None:
        """Reset backoff state manually."""
        _LOGGER.info("Auth backoff manually reset")
        self.state.consecutive_auth_failures = 0
        self.state.next_auth_retry_time = None
