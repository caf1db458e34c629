"""Data models for PowerShades API state and responses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


__all__ = [
    "BackoffState",
    "Credentials",
    "Group",
    "ListCache",
    "SessionState",
    "Shade",
]


@dataclass(frozen=True)
class Credentials:
    """Operator-supplied credentials.

    Either a static API token or an email/password pair. When both are
    present the token takes precedence.

    Attributes:
        api_token: Long-lived bearer token (bypasses login).
        email: Account email address.
        password: Account password.
    """

    api_token: str | None = None
    email: str | None = None
    password: str | None = None

    @property
    def uses_api_token(self) -> bool:
        """Check if a static API token is configured."""
        return bool(self.api_token)


@dataclass
class SessionState:
    """Tokens and the base URL that last succeeded.

    Attributes:
        access_token: Bearer token used on authenticated calls.
        refresh_token: Token used to obtain a new access token (None for static tokens).
        active_base: Base URL that last succeeded, sticky across calls.
    """

    access_token: str | None = None
    refresh_token: str | None = None
    active_base: str | None = None


@dataclass
class BackoffState:
    """Authentication failure tracking.

    Attributes:
        consecutive_auth_failures: Failures since the last successful login or refresh.
        next_auth_retry_time: Earliest time a new auth attempt is allowed (None when unset).
    """

    consecutive_auth_failures: int = 0
    next_auth_retry_time: datetime | None = None


@dataclass
class Shade:
    """A remote shade record.

    Attributes:
        shade_id: Remote identifier (may be None on malformed records).
        name: Shade name, used as the move target.
        position: Last reported position (0-100).
        raw_data: Original API record.
    """

    shade_id: Any
    name: str
    position: int
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class Group:
    """A remote shade group.

    Attributes:
        group_id: Remote identifier.
        name: Group name.
        shade_ids: Identifiers of member shades.
        raw_data: Original API record.
    """

    group_id: Any
    name: str
    shade_ids: list[Any] = field(default_factory=list)
    raw_data: dict[str, Any] = field(default_factory=dict)


@dataclass
class ListCache:
    """Cached entity list with its own time-to-live.

    Attributes:
        ttl: Maximum age in seconds before the list is considered stale.
        entries: Cached entities.
        fetched_at: When the list was last fetched (None if never).
    """

    ttl: float
    entries: list[Any] = field(default_factory=list)
    fetched_at: datetime | None = None

    @property
    def age_seconds(self) -> float | None:
        """Get the age of the cached list in seconds, or None if never fetched."""
        if self.fetched_at is None:
            return None
        return (datetime.now(UTC) - self.fetched_at).total_seconds()

    def needs_refresh(self, *, force: bool = False) -> bool:
        """Check if the list must be fetched again.

        A list is refreshed when forced, when empty, or when older than its TTL.
        """
        if force or not self.entries:
            return True
        age = self.age_seconds
        return age is None or age > self.ttl

    def store(self, entries: list[Any]) -> None:
        """Replace the cached entries and stamp the fetch time."""
        self.entries = entries
        self.fetched_at = datetime.now(UTC)
