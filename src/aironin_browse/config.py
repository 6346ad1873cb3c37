"""Configuration models for aironin-browse."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_VIEWPORT = "900x600"
DEFAULT_REMOTE_PORT = 9222


class SessionConfig(BaseModel):
    """Settings fixed for the whole lifetime of an automation session."""

    model_config = ConfigDict(frozen=True)

    viewport_width: int = Field(default=900, gt=0)
    viewport_height: int = Field(default=600, gt=0)
    screenshot_quality: int = Field(default=75, ge=1, le=100)
    remote_enabled: bool = False
    remote_host: Optional[str] = None
    remote_port: int = Field(default=DEFAULT_REMOTE_PORT, gt=0, lt=65536)
    headless: bool = False
    probe_timeout: float = Field(
        default=1.5,
        gt=0,
        le=10,
        description="Seconds to wait for each candidate endpoint during discovery.",
    )


class EnvironmentSettings(BaseSettings):
    """Environment variables understood by the tool."""

    model_config = SettingsConfigDict(
        env_file=(".env",),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    browser_viewport_size: str = DEFAULT_VIEWPORT
    screenshot_quality: int = 75
    remote_browser_enabled: bool = False
    remote_browser_host: Optional[str] = None
    remote_browser_port: int = DEFAULT_REMOTE_PORT
    browser_headless: bool = False

    def to_session_data(self) -> dict[str, Any]:
        width, height = parse_viewport(self.browser_viewport_size)
        return {
            "viewport_width": width,
            "viewport_height": height,
            "screenshot_quality": self.screenshot_quality,
            "remote_enabled": self.remote_browser_enabled,
            "remote_host": self.remote_browser_host or None,
            "remote_port": self.remote_browser_port,
            "headless": self.browser_headless,
        }


def parse_viewport(value: str) -> tuple[int, int]:
    """Parse a ``WIDTHxHEIGHT`` string such as ``900x600``."""

    width, sep, height = value.strip().lower().partition("x")
    if not sep:
        raise ValueError(f"Viewport must be in WIDTHxHEIGHT format, got {value!r}")
    try:
        return int(width), int(height)
    except ValueError as exc:
        raise ValueError(f"Viewport must be in WIDTHxHEIGHT format, got {value!r}") from exc


def load_config(
    path: Path | None = None,
    *,
    env_file: Path | None = None,
    **overrides: object,
) -> SessionConfig:
    """Build a session config from the environment, an optional file and overrides.

    Later layers win: environment, then the YAML file, then ``overrides``.
    """

    settings_kwargs: dict[str, object] = {}
    if env_file is not None:
        settings_kwargs["_env_file"] = env_file
    data = EnvironmentSettings(**settings_kwargs).to_session_data()
    if path:
        import yaml

        loaded = yaml.safe_load(path.read_text()) or {}
        if not isinstance(loaded, Mapping):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        data.update(_expand_viewport(loaded))
    if overrides:
        data.update(_expand_viewport(overrides))
    return SessionConfig.model_validate(data)


def _expand_viewport(values: Mapping[str, Any]) -> dict[str, Any]:
    """Replace a ``viewport`` shorthand with explicit width and height."""

    expanded = dict(values)
    viewport = expanded.pop("viewport", None)
    if viewport is not None:
        width, height = parse_viewport(str(viewport))
        expanded["viewport_width"] = width
        expanded["viewport_height"] = height
    return expanded
