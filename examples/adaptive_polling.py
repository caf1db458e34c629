"""Accessory discovery and adaptive polling with pypowershades.

Polling runs every ``pollInterval`` seconds while idle and switches to
``fastPollInterval`` for ``fastPollDuration`` seconds after each move.
"""

import asyncio
import logging

from pypowershades import PowerShadesClient, PowerShadesConfig, ShadeAccessory


def on_position(accessory: ShadeAccessory) -> None:
    """Print position pushes from the poll loop."""
    print(f"{accessory.name}: {accessory.current_position}%")


async def main() -> None:
    """Discover shades, watch positions and move one."""
    logging.basicConfig(level=logging.INFO)

    config = PowerShadesConfig.from_dict(
        {
            "apiToken": "your_api_token",
            "pollInterval": 10,
            "fastPollInterval": 1,
            "fastPollDuration": 30,
            "exposeGroups": ["Downstairs"],
        }
    )

    async with PowerShadesClient(config) as client:
        await client.discover()

        for accessory in client.shade_accessories.values():
            accessory.add_listener(on_position)

        client.start()

        accessory = next(iter(client.shade_accessories.values()), None)
        if accessory is not None:
            # Optimistic target; polling switches to the fast cadence
            await accessory.set_target_position(0)

        await asyncio.sleep(60)


if __name__ == "__main__":
    asyncio.run(main())
