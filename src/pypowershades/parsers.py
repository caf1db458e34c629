"""Parsing utilities for PowerShades API responses.

This module provides shared parsing functions used by the API layer and
PowerShadesClient to convert raw API responses into data models.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Any

from pypowershades.const import (
    API_PATH_SUFFIX,
    DEFAULT_BASE_URL,
    POSITION_FIELDS,
    POSITION_MAX,
    POSITION_MIN,
)
from pypowershades.models import Group, Shade


if TYPE_CHECKING:
    from collections.abc import Iterable


__all__ = [
    "build_base_candidates",
    "calculate_group_position",
    "clamp_position",
    "normalize_list",
    "normalize_position",
    "parse_group",
    "parse_shade",
]


def normalize_list(data: Any) -> list[Any]:
    """Normalize a list endpoint response.

    The API returns either a bare array or an envelope object with a
    ``results`` array. Any other shape yields an empty list.

    Args:
        data: Decoded JSON response (may be None).

    Returns:
        List of records.
    """
    if isinstance(data, list):
        return data
    if isinstance(data, dict) and isinstance(data.get("results"), list):
        return data["results"]
    return []


def clamp_position(value: float) -> int:
    """Clamp a position percentage to 0-100.

    Infinite values clamp to the nearest bound; NaN maps to 0.

    Args:
        value: Requested position.

    Returns:
        Integer position within bounds.
    """
    if math.isnan(value):
        return POSITION_MIN
    # Bound first so infinities never reach round()
    return round(max(POSITION_MIN, min(POSITION_MAX, value)))


def normalize_position(record: dict[str, Any] | None) -> int:
    """Extract the position from a shade record.

    The first present field among ``current_position``, ``percentage``,
    ``position`` and ``shade_position`` is used. Missing or non-numeric
    values map to 0.

    Args:
        record: Raw shade record.

    Returns:
        Position clamped to 0-100.
    """
    if not record:
        return 0

    value: Any = 0
    for key in POSITION_FIELDS:
        if record.get(key) is not None:
            value = record[key]
            break

    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0

    return clamp_position(number)


def parse_shade(data: dict[str, Any]) -> Shade:
    """Parse a shade record from API response.

    Args:
        data: Raw shade record.

    Returns:
        Shade instance.
    """
    return Shade(
        shade_id=data.get("id"),
        name=data.get("name") or "PowerShade",
        position=normalize_position(data),
        raw_data=data,
    )


def parse_group(data: dict[str, Any]) -> Group:
    """Parse a group record from API response.

    Args:
        data: Raw group record in format {"id": ..., "name": ..., "shades": [...]}.

    Returns:
        Group instance.
    """
    shade_ids = data.get("shades")
    return Group(
        group_id=data.get("id"),
        name=data.get("name") or "",
        shade_ids=list(shade_ids) if isinstance(shade_ids, list) else [],
        raw_data=data,
    )


def calculate_group_position(group: Group, shades: Iterable[Shade]) -> int:
    """Calculate the derived position of a group.

    The position is the arithmetic mean of member shade positions,
    rounded to the nearest integer. Members missing from ``shades`` are
    skipped; a group with no known members reports 0.

    Args:
        group: Group whose position to compute.
        shades: Cached shade list.

    Returns:
        Derived position (0-100).
    """
    positions = {shade.shade_id: shade.position for shade in shades}
    members = [positions[shade_id] for shade_id in group.shade_ids if shade_id in positions]
    if not members:
        return 0
    # Round half up, not banker's rounding
    return math.floor(sum(members) / len(members) + 0.5)


def build_base_candidates(base_url: str | None) -> list[str]:
    """Build the ordered base URL candidates.

    The configured base comes first, followed by the same base with the
    trailing ``/api`` segment toggled. Duplicates are removed.

    Args:
        base_url: Configured base URL (defaults to the production API).

    Returns:
        Ordered, deduplicated list of candidates.

    Example:
        >>> build_base_candidates("https://host")
        ['https://host', 'https://host/api']
        >>> build_base_candidates("https://host/api")
        ['https://host/api', 'https://host']
    """
    trimmed = (base_url or DEFAULT_BASE_URL).rstrip("/")
    if trimmed.endswith(API_PATH_SUFFIX):
        toggled = trimmed[: -len(API_PATH_SUFFIX)]
    else:
        toggled = f"{trimmed}{API_PATH_SUFFIX}"

    candidates: list[str] = []
    for candidate in (trimmed, toggled):
        if candidate and candidate not in candidates:
            candidates.append(candidate)
    return candidates
