"""Configuration for PowerShadesClient."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pypowershades.const import (
    DEFAULT_AUTH_FAILURE_BACKOFF_MS,
    DEFAULT_BASE_URL,
    DEFAULT_FAST_POLL_DURATION,
    DEFAULT_FAST_POLL_INTERVAL,
    DEFAULT_MAX_AUTH_FAILURES,
    DEFAULT_MAX_BACKOFF_MS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SHADE_LIST_CACHE_TTL,
    MIN_FAST_POLL_DURATION,
    MIN_FAST_POLL_INTERVAL,
    MIN_POLL_INTERVAL,
)
from pypowershades.exceptions import InvalidParameterError


if TYPE_CHECKING:
    from collections.abc import Mapping

_LOGGER = logging.getLogger(__name__)


def _number(value: Any, default: float, minimum: float | None = None) -> float:
    """Coerce an option to a number, falling back to the default for falsy or invalid input."""
    try:
        number = float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        number = 0.0
    if not number or math.isnan(number):
        number = default
    if minimum is not None:
        number = max(number, minimum)
    return number


@dataclass
class PowerShadesConfig:
    """Options recognized by PowerShadesClient.

    Intervals and TTLs are in seconds; backoff lengths are in milliseconds.

    Attributes:
        api_token: Static API token. Wins over email/password when both are set.
        email: Account email address.
        password: Account password.
        base_url: API base URL (the "/api" variant is tried as a fallback).
        poll_interval: Idle poll interval (minimum 2).
        fast_poll_interval: Poll interval after user activity (minimum 1).
        fast_poll_duration: How long fast polling lasts after activity (minimum 5).
        shade_list_cache_ttl: Shade list cache lifetime.
        group_list_cache_ttl: Group list cache lifetime (defaults to the shade TTL).
        expose_groups: Names of groups to expose as accessories.
        max_auth_failures: Consecutive auth failures before backoff starts.
        auth_failure_backoff_ms: Initial backoff window.
        max_backoff_ms: Maximum backoff window.
    """

    api_token: str | None = None
    email: str | None = None
    password: str | None = None
    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    fast_poll_interval: float = DEFAULT_FAST_POLL_INTERVAL
    fast_poll_duration: float = DEFAULT_FAST_POLL_DURATION
    shade_list_cache_ttl: float = DEFAULT_SHADE_LIST_CACHE_TTL
    group_list_cache_ttl: float | None = None
    expose_groups: list[str] = field(default_factory=list)
    max_auth_failures: int = DEFAULT_MAX_AUTH_FAILURES
    auth_failure_backoff_ms: int = DEFAULT_AUTH_FAILURE_BACKOFF_MS
    max_backoff_ms: int = DEFAULT_MAX_BACKOFF_MS

    def __post_init__(self) -> None:
        """Validate credentials and apply minimum intervals.

        Raises:
            InvalidParameterError: If neither an API token nor email and password are set.
        """
        if not self.api_token and not (self.email and self.password):
            msg = "Missing credentials: provide either 'apiToken' or 'email' and 'password'"
            raise InvalidParameterError(msg, parameter_name="credentials")

        if self.api_token and (self.email or self.password):
            _LOGGER.warning("Both 'apiToken' and 'email'/'password' are configured; using 'apiToken'")

        self.poll_interval = max(self.poll_interval, MIN_POLL_INTERVAL)
        self.fast_poll_interval = max(self.fast_poll_interval, MIN_FAST_POLL_INTERVAL)
        self.fast_poll_duration = max(self.fast_poll_duration, MIN_FAST_POLL_DURATION)
        if self.group_list_cache_ttl is None:
            self.group_list_cache_ttl = self.shade_list_cache_ttl

    @property
    def uses_api_token(self) -> bool:
        """Check if the static API token will be used."""
        return bool(self.api_token)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> PowerShadesConfig:
        """Build a config from a platform-style mapping with camelCase keys.

        Falsy or non-numeric values fall back to their defaults.

        Args:
            data: Mapping such as {"email": ..., "password": ..., "pollInterval": 10}.

        Returns:
            PowerShadesConfig instance.

        Raises:
            InvalidParameterError: If credentials are missing or exposeGroups is malformed.
        """
        expose_groups = data.get("exposeGroups") or []
        if isinstance(expose_groups, str):
            expose_groups = [expose_groups]
        if not isinstance(expose_groups, list | tuple):
            msg = "exposeGroups must be a list of group names"
            raise InvalidParameterError(msg, parameter_name="exposeGroups", value=expose_groups)

        shade_ttl = _number(data.get("shadeListCacheTTL"), DEFAULT_SHADE_LIST_CACHE_TTL)
        group_ttl = data.get("groupListCacheTTL")

        return cls(
            api_token=data.get("apiToken") or None,
            email=data.get("email") or None,
            password=data.get("password") or None,
            base_url=data.get("baseUrl") or DEFAULT_BASE_URL,
            poll_interval=_number(data.get("pollInterval"), DEFAULT_POLL_INTERVAL, MIN_POLL_INTERVAL),
            fast_poll_interval=_number(
                data.get("fastPollInterval"), DEFAULT_FAST_POLL_INTERVAL, MIN_FAST_POLL_INTERVAL
            ),
            fast_poll_duration=_number(
                data.get("fastPollDuration"), DEFAULT_FAST_POLL_DURATION, MIN_FAST_POLL_DURATION
            ),
            shade_list_cache_ttl=shade_ttl,
            group_list_cache_ttl=_number(group_ttl, shade_ttl) if group_ttl is not None else None,
            expose_groups=[str(name) for name in expose_groups],
            max_auth_failures=int(_number(data.get("maxAuthFailures"), DEFAULT_MAX_AUTH_FAILURES)),
            auth_failure_backoff_ms=int(_number(data.get("authFailureBackoffMs"), DEFAULT_AUTH_FAILURE_BACKOFF_MS)),
            max_backoff_ms=int(_number(data.get("maxBackoffMs"), DEFAULT_MAX_BACKOFF_MS)),
        )
