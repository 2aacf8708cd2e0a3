"""Small semantic-version helpers for compatibility windows."""

from __future__ import annotations

import re
from typing import Final

_NUMERIC_PREFIX: Final = re.compile(r"^(\d+)")
_REQUIREMENT: Final = re.compile(
    r"^\s*([a-z0-9][a-z0-9._-]*)\s*(?:>=\s*([0-9][0-9A-Za-z.+-]*))?\s*$"
)


def parse_version(value: str) -> tuple[int, int, int]:
    """Parse ``major.minor.patch``; missing or non-numeric parts count as zero.

    Pre-release and build suffixes (``1.2.0-beta+abc``) are ignored.
    """
    core = value.strip().lstrip("vV").split("+", 1)[0].split("-", 1)[0]
    parts: list[int] = []
    for segment in core.split(".")[:3]:
        match = _NUMERIC_PREFIX.match(segment)
        parts.append(int(match.group(1)) if match else 0)
    while len(parts) < 3:
        parts.append(0)
    return (parts[0], parts[1], parts[2])


def version_at_least(current: str, minimum: str) -> bool:
    return parse_version(current) >= parse_version(minimum)


def version_at_most(current: str, maximum: str) -> bool:
    return parse_version(current) <= parse_version(maximum)


def parse_requirement(requirement: str) -> tuple[str, str | None]:
    """Split ``"name"`` or ``"name>=1.2.0"`` into identifier and minimum version."""
    match = _REQUIREMENT.match(requirement)
    if match is None:
        raise ValueError(f"invalid plugin requirement {requirement!r}")
    return match.group(1), match.group(2)


__all__ = ["parse_requirement", "parse_version", "version_at_least", "version_at_most"]
