"""Pytest configuration and fixtures for integration tests."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from dotenv import load_dotenv

from pypowershades import PowerShadesClient, PowerShadesConfig


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


# Load .env file from project root
env_path = Path(__file__).parents[2] / ".env"
load_dotenv(env_path)


@pytest.fixture(scope="session")
def integration_config() -> PowerShadesConfig:
    """Load integration test configuration from environment.

    Returns:
        Client configuration built from POWERSHADES_* variables.

    Raises:
        ValueError: If no credentials are configured.
    """
    api_token = os.getenv("POWERSHADES_API_TOKEN")
    email = os.getenv("POWERSHADES_EMAIL")
    password = os.getenv("POWERSHADES_PASSWORD")

    if not api_token and not (email and password):
        msg = (
            "Missing required environment variables. "
            "Please create .env file with POWERSHADES_API_TOKEN or POWERSHADES_EMAIL and POWERSHADES_PASSWORD"
        )
        raise ValueError(msg)

    return PowerShadesConfig.from_dict(
        {
            "apiToken": api_token,
            "email": email,
            "password": password,
            "baseUrl": os.getenv("POWERSHADES_BASE_URL"),
        }
    )


@pytest.fixture(scope="session")
def test_shade_name() -> str | None:
    """Get the shade to move in slow tests, or None to skip them."""
    return os.getenv("POWERSHADES_TEST_SHADE")


@pytest.fixture
async def client(integration_config: PowerShadesConfig) -> AsyncGenerator[PowerShadesClient]:
    """Create a client with its own session."""
    async with PowerShadesClient(integration_config) as client:
        yield client


@pytest.fixture(autouse=True)
async def rate_limit_delay() -> AsyncGenerator[None]:
    """Pause between integration tests to stay clear of API rate limits."""
    yield
    await asyncio.sleep(1.0)
