"""Centralised version and naming information for CatFinder.

Single source of truth for the application name and version; the HTTP
User-Agent and the CLI ``--version`` flag both read from here.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


APP_NAME: str = "CatFinder"
APP_EXE_NAME: str = "catfinder"
APP_VERSION: str = "1.0.0"
APP_DESCRIPTION: str = "CatFinder - swipe through random cats with a prefetching, tiered image cache."


@dataclass(frozen=True)
class VersionInfo:
    major: int
    minor: int
    patch: int

    def to_tuple(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_version(version_str: str = APP_VERSION) -> VersionInfo:
    """Parse ``MAJOR.MINOR.PATCH``; anything unparsable becomes ``0.0.0``."""
    try:
        parts = [int(p) for p in str(version_str).split(".")[:3]]
    except ValueError:
        return VersionInfo(0, 0, 0)
    while len(parts) < 3:
        parts.append(0)
    return VersionInfo(parts[0], parts[1], parts[2])


__all__ = [
    "APP_NAME",
    "APP_EXE_NAME",
    "APP_VERSION",
    "APP_DESCRIPTION",
    "VersionInfo",
    "parse_version",
]
