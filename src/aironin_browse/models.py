"""Shared models used across aironin-browse."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Optional

from .errors import PreconditionError

_PAIR_PATTERN = re.compile(r"^\s*(\d+)\s*,\s*(\d+)\s*$")


class ConnectionMode(str, enum.Enum):
    """How a session reaches its browser."""

    LOCAL = "local"
    REMOTE = "remote"


class SessionState(str, enum.Enum):
    """Lifecycle states of an automation session."""

    UNINITIALIZED = "uninitialized"
    LAUNCHING = "launching"
    READY = "ready"
    CLOSED = "closed"


class ScrollDirection(str, enum.Enum):
    UP = "up"
    DOWN = "down"

    @classmethod
    def parse(cls, value: str) -> "ScrollDirection":
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError) as exc:
            raise PreconditionError(
                f"Scroll direction must be 'up' or 'down', got {value!r}"
            ) from exc


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Where and how a session connects to its browser."""

    mode: ConnectionMode
    host_url: Optional[str] = None
    websocket_url: Optional[str] = None
    browser: Optional[str] = None
    protocol_version: Optional[str] = None

    @classmethod
    def local(cls) -> "ConnectionDescriptor":
        return cls(mode=ConnectionMode.LOCAL)

    @property
    def endpoint(self) -> Optional[str]:
        """Address handed to the CDP client when attaching."""

        return self.websocket_url or self.host_url


@dataclass(frozen=True)
class ActionResult:
    """Outcome of a single browser action."""

    current_url: str
    screenshot: Optional[bytes] = None
    logs: str = ""


@dataclass(frozen=True)
class Point:
    """Viewport coordinates in CSS pixels."""

    x: int
    y: int

    @classmethod
    def parse(cls, value: str) -> "Point":
        x, y = _parse_pair(value, "Coordinates", "x,y")
        return cls(x, y)

    def __str__(self) -> str:
        return f"{self.x},{self.y}"


@dataclass(frozen=True)
class Size:
    """Viewport dimensions in CSS pixels."""

    width: int
    height: int

    @classmethod
    def parse(cls, value: str) -> "Size":
        width, height = _parse_pair(value, "Size", "width,height")
        if width <= 0 or height <= 0:
            raise PreconditionError(f"Size must use positive integers, got {value!r}")
        return cls(width, height)

    def __str__(self) -> str:
        return f"{self.width},{self.height}"


def _parse_pair(value: str, label: str, shape: str) -> tuple[int, int]:
    if not isinstance(value, str):
        raise PreconditionError(f"{label} must be a string in {shape} format")
    match = _PAIR_PATTERN.match(value)
    if not match:
        raise PreconditionError(f"{label} must be in {shape} format, got {value!r}")
    return int(match.group(1)), int(match.group(2))
