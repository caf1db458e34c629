"""Tests for the PowerShades client (caches, commands, polling, discovery)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from http import HTTPStatus
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from pypowershades.client import PowerShadesClient
from pypowershades.config import PowerShadesConfig
from pypowershades.exceptions import ApiError


if TYPE_CHECKING:
    from aiohttp.test_utils import TestClient

    from tests.conftest import ScriptedServer


SHADES = [
    {"id": 1, "name": "Living Room", "current_position": 20},
    {"id": 2, "name": "Kitchen", "current_position": 30},
    {"id": 3, "name": "Office", "current_position": 100},
]
GROUPS = [
    {"id": 10, "name": "Downstairs", "shades": [1, 2, 3]},
    {"id": 11, "name": "Hidden", "shades": [1]},
]


def make_client(http_client: TestClient, base_url: str, **options: Any) -> PowerShadesClient:
    """Create a client bound to the scripted server with a static token."""
    config = PowerShadesConfig(api_token="tok", base_url=base_url, **options)
    return PowerShadesClient(config, session=http_client.session)


class TestListCache:
    """Test cached shade and group lists."""

    async def test_shades_are_cached(self, server: ScriptedServer, http_client: TestClient, base_url: str) -> None:
        """Test that a fresh list is served from cache."""
        server.add("/shades/", body=SHADES)
        client = make_client(http_client, base_url)

        first = await client.get_shades()
        second = await client.get_shades()

        assert [shade.name for shade in first] == ["Living Room", "Kitchen", "Office"]
        assert second == first
        assert server.paths == ["/shades/"]

    async def test_force_refresh(self, server: ScriptedServer, http_client: TestClient, base_url: str) -> None:
        """Test that force_refresh always fetches."""
        server.add("/shades/", body=SHADES)
        server.add("/shades/", body=SHADES[:1])
        client = make_client(http_client, base_url)

        await client.get_shades()
        shades = await client.get_shades(force_refresh=True)

        assert len(shades) == 1
        assert server.paths == ["/shades/", "/shades/"]

    async def test_stale_list_is_refetched(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a list older than its TTL is fetched again."""
        server.add("/shades/", body=SHADES)
        server.add("/shades/", body=SHADES)
        client = make_client(http_client, base_url, shade_list_cache_ttl=60)

        await client.get_shades()
        client._shade_cache.fetched_at = datetime.now(UTC) - timedelta(seconds=61)
        await client.get_shades()

        assert len(server.requests) == 2

    async def test_empty_list_is_refetched(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that an empty cached list does not count as fresh."""
        server.add("/groups/", body=[])
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url)

        assert await client.get_groups() == []
        groups = await client.get_groups()

        assert [group.name for group in groups] == ["Downstairs", "Hidden"]

    async def test_positions_from_cache(self, server: ScriptedServer, http_client: TestClient, base_url: str) -> None:
        """Test cached shade lookups and derived group position."""
        server.add("/shades/", body=SHADES)
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url)

        await client.get_shades()
        groups = await client.get_groups()

        assert client.get_shade_position(2) == 30
        assert client.get_shade_position(99) is None
        assert client.get_group_position(groups[0]) == 50


class TestCommands:
    """Test move commands and the activity clock."""

    async def test_idle_interval(self, http_client: TestClient, base_url: str) -> None:
        """Test that the idle interval is used without recent activity."""
        client = make_client(http_client, base_url, poll_interval=10, fast_poll_interval=1)

        assert client.current_poll_interval() == 10

    async def test_move_switches_to_fast_polling(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a successful move restarts the poll loop at the fast interval."""
        server.add("/shades/move/", HTTPStatus.NO_CONTENT)
        client = make_client(http_client, base_url, poll_interval=10, fast_poll_interval=1)
        client.start()
        assert client.scheduler.next_interval == 10

        await client.move_shade("Office", 150)

        assert client.last_activity_time is not None
        assert client.current_poll_interval() == 1
        assert client.scheduler.next_interval == 1
        assert server.requests[0].json == {"shade_name": "Office", "percentage": 100}
        await client.stop()

    async def test_fast_polling_expires(self, http_client: TestClient, base_url: str) -> None:
        """Test that the idle interval returns once the fast window has passed."""
        client = make_client(http_client, base_url, poll_interval=10, fast_poll_duration=30)
        client.last_activity_time = datetime.now(UTC) - timedelta(seconds=31)

        assert client.current_poll_interval() == 10

    async def test_move_group(self, server: ScriptedServer, http_client: TestClient, base_url: str) -> None:
        """Test that a group move is sent and recorded as activity."""
        server.add("/groups/10/move/", body={})
        client = make_client(http_client, base_url)

        await client.move_group(10, 40)

        assert server.requests[0].json == {"percentage": 40}
        assert client.last_activity_time is not None

    async def test_failed_move_propagates(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a rejected move raises and does not touch the activity clock."""
        server.add("/shades/move/", HTTPStatus.BAD_REQUEST, "unknown shade")
        client = make_client(http_client, base_url)

        with pytest.raises(ApiError):
            await client.move_shade("Nope", 10)

        assert client.last_activity_time is None

    async def test_pass_through_endpoints(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test scenes, schedules and shade attributes."""
        server.add("/scenes/", body=[{"id": 1}])
        server.add("/schedules/", body={"results": [{"id": 2}]})
        server.add("/shadeattributes/", body=[{"id": 3}])
        client = make_client(http_client, base_url)

        assert await client.get_scenes() == [{"id": 1}]
        assert await client.get_schedules() == [{"id": 2}]
        assert await client.get_shade_attributes() == [{"id": 3}]


class TestDiscovery:
    """Test accessory discovery and registry."""

    async def test_discover_registers_shades_and_exposed_groups(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that every shade and only exposed groups are registered."""
        server.add("/shades/", body=SHADES)
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])

        await client.discover()

        assert sorted(client.shade_accessories) == [
            "powershades-shade-1",
            "powershades-shade-2",
            "powershades-shade-3",
        ]
        assert list(client.group_accessories) == ["powershades-group-10"]
        group = client.get_group_accessory("powershades-group-10")
        assert group is not None
        assert group.current_position == 50

    async def test_discover_without_exposed_groups_skips_groups(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that groups are not fetched when none are exposed."""
        server.add("/shades/", body=SHADES)
        client = make_client(http_client, base_url)

        await client.discover()

        assert server.paths == ["/shades/"]
        assert client.group_accessories == {}

    async def test_group_failure_keeps_shades(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a failing group phase does not undo the shade phase."""
        server.add("/shades/", body=SHADES)
        server.add("/groups/", HTTPStatus.INTERNAL_SERVER_ERROR, "boom")
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])

        await client.discover()

        assert len(client.shade_accessories) == 3
        assert client.group_accessories == {}

    async def test_shade_failure_still_runs_group_phase(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a failing shade phase still lets groups register."""
        server.add("/shades/", HTTPStatus.INTERNAL_SERVER_ERROR, "boom")
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])

        await client.discover()

        assert client.shade_accessories == {}
        assert list(client.group_accessories) == ["powershades-group-10"]

    async def test_unexpected_shade_error_still_runs_group_phase(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a non-API failure in the shade phase is logged and groups still register."""
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])

        with patch.object(client, "get_shades", AsyncMock(side_effect=TypeError("bad record"))):
            await client.discover()

        assert client.shade_accessories == {}
        assert list(client.group_accessories) == ["powershades-group-10"]

    async def test_infinite_position_does_not_break_discovery(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a shade reporting an infinite position is clamped and registered."""
        server.add("/shades/", body=[{"id": 1, "name": "Living Room", "current_position": "Infinity"}])
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])

        await client.discover()

        accessory = client.get_shade_accessory("powershades-shade-1")
        assert accessory is not None
        assert accessory.current_position == 100
        assert list(client.group_accessories) == ["powershades-group-10"]

    async def test_rediscovery_updates_and_prunes(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that existing accessories are reused and vanished ones removed."""
        server.add("/shades/", body=SHADES)
        server.add("/shades/", body=[{"id": 1, "name": "Living Room", "current_position": 90}])
        client = make_client(http_client, base_url)

        await client.discover()
        accessory = client.get_shade_accessory("powershades-shade-1")
        await client.discover()

        assert list(client.shade_accessories) == ["powershades-shade-1"]
        assert client.get_shade_accessory("powershades-shade-1") is accessory
        assert accessory is not None
        assert accessory.current_position == 90


class TestPoll:
    """Test the poll tick."""

    async def test_poll_updates_registered_accessories(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that poll pushes fresh shade and derived group positions and skips unregistered entities."""
        moved = [*SHADES[:2], {"id": 3, "name": "Office", "current_position": 10}]
        server.add("/shades/", body=SHADES)
        server.add("/groups/", body=GROUPS)
        server.add("/shades/", body=[*moved, {"id": 4, "name": "Attic", "current_position": 5}])
        server.add("/groups/", body=GROUPS)
        client = make_client(http_client, base_url, expose_groups=["Downstairs"])
        await client.discover()
        group = client.get_group_accessory("powershades-group-10")
        assert group is not None
        assert group.current_position == 50
        listener = MagicMock()
        group.add_listener(listener)

        client._shade_cache.fetched_at = datetime.now(UTC) - timedelta(days=1)
        client._group_cache.fetched_at = datetime.now(UTC) - timedelta(days=1)
        await client.poll()

        assert group.current_position == 20
        listener.assert_called_once_with(group)
        office = client.get_shade_accessory("powershades-shade-3")
        assert office is not None
        assert office.current_position == 10
        assert "powershades-shade-4" not in client.shade_accessories
        assert len(server.requests) == 4

    async def test_poll_pushes_new_position(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that a changed position reaches accessory listeners."""
        server.add("/shades/", body=SHADES)
        server.add("/shades/", body=[{"id": 1, "name": "Living Room", "current_position": 65}])
        client = make_client(http_client, base_url)
        await client.discover()
        accessory = client.get_shade_accessory("powershades-shade-1")
        assert accessory is not None
        seen: list[int] = []
        accessory.add_listener(lambda acc: seen.append(acc.current_position))

        client._shade_cache.fetched_at = datetime.now(UTC) - timedelta(days=1)
        await client.poll()

        assert seen == [65]
        assert accessory.current_position == 65

    async def test_poll_uses_cache_when_fresh(
        self, server: ScriptedServer, http_client: TestClient, base_url: str
    ) -> None:
        """Test that poll does not fetch a fresh list again."""
        server.add("/shades/", body=SHADES)
        client = make_client(http_client, base_url)
        await client.discover()

        await client.poll()

        assert server.paths == ["/shades/"]

    async def test_context_manager_stops_polling(self, http_client: TestClient, base_url: str) -> None:
        """Test that leaving the context stops the scheduler."""
        async with make_client(http_client, base_url) as client:
            client.start()
            assert client.scheduler.is_running is True

        assert client.scheduler.is_running is False
