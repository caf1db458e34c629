"""Python client library for PowerShades motorized shades.

This package provides an async client for the PowerShades cloud API with
authentication-failure backoff and an adaptive poll loop.

The library is organized into three layers:
1. **API Layer** (pypowershades.api): Authenticated HTTP communication with token recovery
2. **Client Layer** (pypowershades.client): Cached lists, commands and adaptive polling
3. **Accessory Layer** (pypowershades.accessories): Position holders with change listeners

Example:
    Basic usage:

    ```python
    from pypowershades import PowerShadesClient, PowerShadesConfig

    config = PowerShadesConfig(email="user@example.com", password="password")

    async with PowerShadesClient(config) as client:
        # Register accessories for every shade and start polling
        await client.discover()
        client.start()

        # Move a shade (polling switches to the fast cadence)
        await client.move_shade("Living Room", 50)
    ```

    Direct API access:

    ```python
    from pypowershades import AuthenticationHandler, PowerShadesAPI

    auth = AuthenticationHandler(api_token="my-token")
    async with PowerShadesAPI(auth_handler=auth) as api:
        scenes = await api.get_scenes()
    ```
"""

from __future__ import annotations

from pypowershades.accessories import GroupAccessory, ShadeAccessory
from pypowershades.api import PowerShadesAPI
from pypowershades.auth import AuthenticationHandler
from pypowershades.client import PowerShadesClient
from pypowershades.config import PowerShadesConfig
from pypowershades.exceptions import (
    ApiError,
    AuthBackoffActiveError,
    AuthenticationError,
    InvalidParameterError,
    LoginFailedError,
    MissingRefreshTokenError,
    PowerShadesConnectionError,
    PowerShadesError,
    PowerShadesTimeoutError,
    ReloginFailedError,
    TokenRefreshFailedError,
)
from pypowershades.models import BackoffState, Credentials, Group, ListCache, SessionState, Shade
from pypowershades.parsers import (
    build_base_candidates,
    calculate_group_position,
    clamp_position,
    normalize_list,
    normalize_position,
)
from pypowershades.resilience import AuthBackoff
from pypowershades.scheduler import PollScheduler


__version__ = "0.1.0"

__all__ = [
    "ApiError",
    "AuthBackoff",
    "AuthBackoffActiveError",
    "AuthenticationError",
    "AuthenticationHandler",
    "BackoffState",
    "Credentials",
    "Group",
    "GroupAccessory",
    "InvalidParameterError",
    "ListCache",
    "LoginFailedError",
    "MissingRefreshTokenError",
    "PollScheduler",
    "PowerShadesAPI",
    "PowerShadesClient",
    "PowerShadesConfig",
    "PowerShadesConnectionError",
    "PowerShadesError",
    "PowerShadesTimeoutError",
    "ReloginFailedError",
    "SessionState",
    "Shade",
    "ShadeAccessory",
    "TokenRefreshFailedError",
    "__version__",
    "build_base_candidates",
    "calculate_group_position",
    "clamp_position",
    "normalize_list",
    "normalize_position",
]
