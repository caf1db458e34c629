"""Shade coordinator and adaptive poller for PowerShades.

This module provides high-level management: cached entity lists, the
accessory registry consumed by a home-automation bridge, move commands and
the poll loop whose cadence follows recent user activity.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pypowershades.accessories import GroupAccessory, ShadeAccessory, group_key, shade_key
from pypowershades.api import PowerShadesAPI
from pypowershades.auth import AuthenticationHandler
from pypowershades.exceptions import PowerShadesError
from pypowershades.models import Group, ListCache, Shade
from pypowershades.parsers import calculate_group_position, clamp_position, parse_group, parse_shade
from pypowershades.resilience import AuthBackoff
from pypowershades.scheduler import PollScheduler


if TYPE_CHECKING:
    from types import TracebackType

    from aiohttp import ClientSession

    from pypowershades.config import PowerShadesConfig

_LOGGER = logging.getLogger(__name__)


class PowerShadesClient:
    """Coordinator for PowerShades shades and groups.

    The client wraps the low-level PowerShadesAPI with list caches, keeps a
    registry of ShadeAccessory/GroupAccessory objects and drives a
    PollScheduler that pushes fresh positions onto registered accessories.

    Polling alternates between two cadences: ``fast_poll_interval`` for
    ``fast_poll_duration`` seconds after a successful move, and
    ``poll_interval`` otherwise. A successful move restarts the scheduler so
    the next poll happens at the fast cadence.

    Example:
        ```python
        from pypowershades import PowerShadesClient, PowerShadesConfig

        config = PowerShadesConfig(email="user@example.com", password="password")

        async with PowerShadesClient(config) as client:
            await client.discover()
            client.start()

            await client.move_shade("Living Room", 40)
            print(client.get_shade_position(1))
        ```

    Attributes:
        config: Active configuration.
        last_activity_time: Time of the last successful move (None if none yet).
    """

    def __init__(
        self,
        config: PowerShadesConfig,
        *,
        session: ClientSession | None = None,
        auth_handler: AuthenticationHandler | None = None,
    ) -> None:
        """Initialize the PowerShades client.

        Args:
            config: Client configuration.
            session: Optional aiohttp ClientSession. If not provided, one will be
                created when entering the context manager.
            auth_handler: Optional pre-configured AuthenticationHandler. If not provided,
                one will be created from the config.
        """
        self.config = config

        if auth_handler is not None:
            self._auth_handler = auth_handler
        else:
            self._auth_handler = AuthenticationHandler(
                email=config.email,
                password=config.password,
                api_token=config.api_token,
                base_url=config.base_url,
                session=session,
                backoff=AuthBackoff(
                    max_auth_failures=config.max_auth_failures,
                    auth_failure_backoff_ms=config.auth_failure_backoff_ms,
                    max_backoff_ms=config.max_backoff_ms,
                ),
            )

        self._api = PowerShadesAPI(auth_handler=self._auth_handler, session=session)

        self._shade_cache = ListCache(ttl=config.shade_list_cache_ttl)
        self._group_cache = ListCache(ttl=config.group_list_cache_ttl or config.shade_list_cache_ttl)

        # Accessory registry keyed by derived identity
        self._shade_accessories: dict[str, ShadeAccessory] = {}
        self._group_accessories: dict[str, GroupAccessory] = {}

        self.last_activity_time: datetime | None = None
        self._scheduler = PollScheduler(self.poll, self.current_poll_interval)

    @property
    def api(self) -> PowerShadesAPI:
        """Get the underlying API client."""
        return self._api

    @property
    def auth_handler(self) -> AuthenticationHandler:
        """Get the authentication handler."""
        return self._auth_handler

    @property
    def scheduler(self) -> PollScheduler:
        """Get the poll scheduler."""
        return self._scheduler

    @property
    def shade_accessories(self) -> dict[str, ShadeAccessory]:
        """Get registered shade accessories keyed by identity."""
        return self._shade_accessories

    @property
    def group_accessories(self) -> dict[str, GroupAccessory]:
        """Get registered group accessories keyed by identity."""
        return self._group_accessories

    async def __aenter__(self) -> PowerShadesClient:
        """Enter the context manager, creating the session if needed."""
        await self._api.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit the context manager, stopping polling and closing the API client."""
        await self.stop()
        await self._api.__aexit__(exc_type, exc_val, exc_tb)

    # -------------------------------------------------------------------------
    # Cached lists
    # -------------------------------------------------------------------------

    async def get_shades(self, *, force_refresh: bool = False) -> list[Shade]:
        """Get the shade list, fetching it when forced, empty or stale.

        Args:
            force_refresh: If True, always fetch from the API.

        Returns:
            List of Shade instances.
        """
        if self._shade_cache.needs_refresh(force=force_refresh):
            records = await self._api.get_shades()
            self._shade_cache.store([parse_shade(record) for record in records if isinstance(record, dict)])
            _LOGGER.debug("Refreshed shade list cache (%d shades)", len(self._shade_cache.entries))
        return list(self._shade_cache.entries)

    async def get_groups(self, *, force_refresh: bool = False) -> list[Group]:
        """Get the group list, fetching it when forced, empty or stale.

        Args:
            force_refresh: If True, always fetch from the API.

        Returns:
            List of Group instances.
        """
        if self._group_cache.needs_refresh(force=force_refresh):
            records = await self._api.get_groups()
            self._group_cache.store([parse_group(record) for record in records if isinstance(record, dict)])
            _LOGGER.debug("Refreshed group list cache (%d groups)", len(self._group_cache.entries))
        return list(self._group_cache.entries)

    def get_shade_position(self, shade_id: Any) -> int | None:
        """Get the cached position of a shade.

        Args:
            shade_id: Shade identifier.

        Returns:
            Cached position, or None if the shade is not cached.
        """
        for shade in self._shade_cache.entries:
            if shade.shade_id == shade_id:
                return shade.position
        return None

    def get_group_position(self, group: Group) -> int:
        """Get the derived position of a group from the cached shade list."""
        return calculate_group_position(group, self._shade_cache.entries)

    async def get_shade_attributes(self) -> list[dict[str, Any]]:
        """Get shade attribute records."""
        return await self._api.get_shade_attributes()

    async def get_scenes(self) -> list[dict[str, Any]]:
        """Get scene records."""
        return await self._api.get_scenes()

    async def get_schedules(self) -> list[dict[str, Any]]:
        """Get schedule records."""
        return await self._api.get_schedules()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------

    async def move_shade(self, name: str, percentage: float) -> None:
        """Move a shade and switch polling to the fast cadence.

        Args:
            name: Shade name.
            percentage: Target position, clamped to 0-100.

        Raises:
            PowerShadesError: If the command is rejected.
        """
        target = clamp_position(percentage)
        _LOGGER.info('Setting "%s" to %d%%', name, target)
        try:
            await self._api.move_shade(name, target)
        except PowerShadesError as exc:
            _LOGGER.error("Move failed for shade %s: %s", name, exc)
            raise
        self._record_activity()

    async def move_group(self, group_id: Any, percentage: float) -> None:
        """Move a group and switch polling to the fast cadence.

        Args:
            group_id: Group identifier.
            percentage: Target position, clamped to 0-100.

        Raises:
            PowerShadesError: If the command is rejected.
        """
        target = clamp_position(percentage)
        _LOGGER.info("Setting group %s to %d%%", group_id, target)
        try:
            await self._api.move_group(group_id, target)
        except PowerShadesError as exc:
            _LOGGER.error("Move failed for group %s: %s", group_id, exc)
            raise
        self._record_activity()

    def _record_activity(self) -> None:
        self.last_activity_time = datetime.now(UTC)
        self._scheduler.restart()

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    def current_poll_interval(self) -> float:
        """Get the poll interval for the next tick.

        Returns:
            ``fast_poll_interval`` while within ``fast_poll_duration`` seconds
            of the last successful move, else ``poll_interval``.
        """
        if self.last_activity_time is not None:
            since_activity = (datetime.now(UTC) - self.last_activity_time).total_seconds()
            if since_activity < self.config.fast_poll_duration:
                return self.config.fast_poll_interval
        return self.config.poll_interval

    def start(self) -> None:
        """Start the poll loop."""
        self._scheduler.start()

    async def stop(self) -> None:
        """Stop the poll loop."""
        await self._scheduler.stop()

    async def poll(self) -> None:
        """Refresh cached lists and push positions onto registered accessories.

        Entities without a registered accessory are skipped. Errors propagate
        to the scheduler, which logs them and keeps polling.
        """
        shades = await self.get_shades()
        for shade in shades:
            accessory = self._shade_accessories.get(shade_key(shade))
            if accessory is not None:
                accessory.update(shade)

        if not self.config.expose_groups:
            return

        groups = await self.get_groups()
        for group in groups:
            group_accessory = self._group_accessories.get(group_key(group))
            if group_accessory is not None:
                group_accessory.update(group, self.get_group_position(group))

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    async def discover(self) -> None:
        """Fetch all entities and register or update their accessories.

        Each phase (shades, then exposed groups) catches and logs its own
        failure so one failing phase does not abort the other. Accessories
        whose entity is no longer returned are removed.
        """
        try:
            shades = await self.get_shades(force_refresh=True)
        except Exception:
            _LOGGER.exception("Failed to fetch shades")
        else:
            _LOGGER.info("Found %d shades", len(shades))
            seen = {self.register_shade(shade).key for shade in shades}
            self._prune(self._shade_accessories, seen)

        if not self.config.expose_groups:
            return

        try:
            groups = await self.get_groups(force_refresh=True)
        except Exception:
            _LOGGER.exception("Failed to fetch groups")
        else:
            exposed = [group for group in groups if group.name in self.config.expose_groups]
            _LOGGER.info("Found %d groups, exposing %d", len(groups), len(exposed))
            seen = {self.register_group(group).key for group in exposed}
            self._prune(self._group_accessories, seen)

    def register_shade(self, shade: Shade) -> ShadeAccessory:
        """Register a shade accessory, or update the existing one.

        Args:
            shade: Shade record.

        Returns:
            The registered ShadeAccessory.
        """
        key = shade_key(shade)
        accessory = self._shade_accessories.get(key)
        if accessory is not None:
            _LOGGER.debug("Updating existing shade accessory: %s", shade.name)
            accessory.update(shade)
        else:
            _LOGGER.info("Adding new shade accessory: %s", shade.name)
            accessory = ShadeAccessory(self, shade)
            self._shade_accessories[key] = accessory
        return accessory

    def register_group(self, group: Group) -> GroupAccessory:
        """Register a group accessory, or update the existing one.

        Args:
            group: Group record.

        Returns:
            The registered GroupAccessory.
        """
        key = group_key(group)
        position = self.get_group_position(group)
        accessory = self._group_accessories.get(key)
        if accessory is not None:
            _LOGGER.debug("Updating existing group accessory: %s", group.name)
            accessory.update(group, position)
        else:
            _LOGGER.info("Adding new group accessory: %s", group.name)
            accessory = GroupAccessory(self, group, position)
            self._group_accessories[key] = accessory
        return accessory

    def get_shade_accessory(self, key: str) -> ShadeAccessory | None:
        """Get a registered shade accessory by key."""
        return self._shade_accessories.get(key)

    def get_group_accessory(self, key: str) -> GroupAccessory | None:
        """Get a registered group accessory by key."""
        return self._group_accessories.get(key)

    @staticmethod
    def _prune(registry: dict[str, Any], seen: set[str]) -> None:
        for key in [key for key in registry if key not in seen]:
            _LOGGER.info("Removing stale accessory: %s", registry[key].name)
            del registry[key]
