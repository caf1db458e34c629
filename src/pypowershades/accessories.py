"""Consumer-facing accessory objects for shades and groups.

Accessories hold the position last seen by the poll loop and notify
listeners whenever it is pushed. They are the hand-off point to a
home-automation bridge, which renders them into platform-specific devices.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable  # noqa: TC003 - Used at runtime for type hints
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pypowershades.const import GROUP_KEY_PREFIX, POSITION_STATE_STOPPED, SHADE_KEY_PREFIX
from pypowershades.parsers import clamp_position


if TYPE_CHECKING:
    from pypowershades.client import PowerShadesClient
    from pypowershades.models import Group, Shade

_LOGGER = logging.getLogger(__name__)


def shade_key(shade: Shade) -> str:
    """Derive the registry key for a shade (id, falling back to name when the id is empty)."""
    identity = shade.shade_id or shade.name
    return f"{SHADE_KEY_PREFIX}{identity}"


def group_key(group: Group) -> str:
    """Derive the registry key for a group."""
    return f"{GROUP_KEY_PREFIX}{group.group_id}"


class _Accessory(ABC):
    """Shared position and listener handling."""

    def __init__(self, client: PowerShadesClient, key: str, position: int) -> None:
        self._client = client
        self.key = key
        self._current_position = position
        self._target_position = position
        self._last_update: datetime = datetime.now(UTC)
        self._listeners: list[Callable[[Any], None]] = []

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the display name."""

    @property
    def current_position(self) -> int:
        """Get the last polled position (0-100)."""
        return self._current_position

    @property
    def target_position(self) -> int:
        """Get the last requested position (0-100)."""
        return self._target_position

    @property
    def position_state(self) -> str:
        """Get the motion state.

        The service provides no motion telemetry, so this is always "stopped".
        """
        return POSITION_STATE_STOPPED

    @property
    def last_update(self) -> datetime:
        """Get timestamp of the last position push."""
        return self._last_update

    def _set_position(self, position: int) -> None:
        self._current_position = position
        self._target_position = position
        self._last_update = datetime.now(UTC)
        self._notify_listeners()

    async def _move(self, value: float, move: Callable[[], Awaitable[Any]]) -> None:
        """Apply an optimistic target, reverting it if the command fails."""
        old_target = self._target_position
        self._target_position = clamp_position(value)
        self._notify_listeners()

        try:
            await move()
        except Exception:
            self._target_position = old_target
            self._notify_listeners()
            raise

    def _notify_listeners(self) -> None:
        """Notify all registered listeners of a position change.

        If a listener raises an exception, it is logged but doesn't affect
        other listeners.
        """
        for listener in self._listeners:
            try:
                listener(self)
            except Exception:
                _LOGGER.exception("Error in position listener for %s", self.key)

    def add_listener(self, callback: Callable[[Any], None]) -> None:
        """Register a callback fired when the position is pushed.

        Args:
            callback: Callable that takes the accessory instance.
        """
        if callback not in self._listeners:
            self._listeners.append(callback)
            _LOGGER.debug("Added position listener for %s", self.key)

    def remove_listener(self, callback: Callable[[Any], None]) -> None:
        """Unregister a position callback."""
        if callback in self._listeners:
            self._listeners.remove(callback)
            _LOGGER.debug("Removed position listener for %s", self.key)

    def __str__(self) -> str:
        """Return string representation of the accessory."""
        return f"{self.name} ({self.key})"


class ShadeAccessory(_Accessory):
    """Stateful representation of a shade for the consumer layer.

    Example:
        ```python
        def on_change(accessory: ShadeAccessory) -> None:
            print(f"{accessory.name}: {accessory.current_position}%")


        accessory = client.get_shade_accessory("powershades-shade-1")
        accessory.add_listener(on_change)

        # Optimistic target, reverted if the command is rejected
        await accessory.set_target_position(75)
        ```
    """

    def __init__(self, client: PowerShadesClient, shade: Shade) -> None:
        """Initialize the accessory.

        Args:
            client: Owning client, used to issue move commands.
            shade: Initial shade record.
        """
        super().__init__(client, shade_key(shade), shade.position)
        self._shade = shade

    @property
    def shade(self) -> Shade:
        """Get the last shade record."""
        return self._shade

    @property
    def name(self) -> str:
        """Get the shade name."""
        return self._shade.name

    def update(self, shade: Shade) -> None:
        """Apply a freshly polled shade record and notify listeners."""
        self._shade = shade
        self._set_position(shade.position)

    async def set_target_position(self, value: float) -> None:
        """Move the shade.

        Args:
            value: Target position, clamped to 0-100.

        Raises:
            PowerShadesError: If the command is rejected.
        """
        await self._move(value, lambda: self._client.move_shade(self.name, value))

    def __repr__(self) -> str:
        """Return detailed string representation of the accessory."""
        return f"ShadeAccessory(key='{self.key}', name='{self.name}')"


class GroupAccessory(_Accessory):
    """Stateful representation of a shade group.

    The position is derived from member shades by PowerShadesClient on
    every poll; it is never fetched directly.
    """

    def __init__(self, client: PowerShadesClient, group: Group, position: int) -> None:
        """Initialize the accessory.

        Args:
            client: Owning client, used to issue move commands.
            group: Initial group record.
            position: Initial derived position.
        """
        super().__init__(client, group_key(group), position)
        self._group = group

    @property
    def group(self) -> Group:
        """Get the last group record."""
        return self._group

    @property
    def name(self) -> str:
        """Get the group name."""
        return self._group.name

    def update(self, group: Group, position: int) -> None:
        """Apply a freshly polled group record and derived position."""
        self._group = group
        self._set_position(position)

    async def set_target_position(self, value: float) -> None:
        """Move every shade in the group.

        Args:
            value: Target position, clamped to 0-100.

        Raises:
            PowerShadesError: If the command is rejected.
        """
        await self._move(value, lambda: self._client.move_group(self._group.group_id, value))

    def __repr__(self) -> str:
        """Return detailed string representation of the accessory."""
        return f"GroupAccessory(key='{self.key}', name='{self.name}')"
