"""Basic usage example for pypowershades library."""

import asyncio

from pypowershades import PowerShadesClient, PowerShadesConfig


async def main() -> None:
    """Demonstrate basic usage of pypowershades."""
    # Either an API token or an email/password pair
    config = PowerShadesConfig(
        email="your@email.com",
        password="your_password",
    )

    async with PowerShadesClient(config) as client:
        print("Connected to PowerShades API")

        shades = await client.get_shades()
        print(f"Found {len(shades)} shade(s)")

        for shade in shades:
            print(f"\nShade: {shade.name}")
            print(f"  ID: {shade.shade_id}")
            print(f"  Position: {shade.position}%")

        groups = await client.get_groups()
        for group in groups:
            print(f"\nGroup: {group.name} ({len(group.shade_ids)} shades)")
            print(f"  Position: {client.get_group_position(group)}%")

        if shades:
            print(f"\nOpening {shades[0].name} halfway...")
            await client.move_shade(shades[0].name, 50)


if __name__ == "__main__":
    asyncio.run(main())
