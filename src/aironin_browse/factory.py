"""Factories for constructing components from configuration."""

from __future__ import annotations

from .browser.discovery import EndpointDiscovery, EndpointProber
from .browser.playwright_session import PlaywrightDriver
from .browser.session import AutomationSession
from .config import SessionConfig


def build_discovery(config: SessionConfig) -> EndpointDiscovery:
    return EndpointDiscovery(EndpointProber(config.probe_timeout))


def build_session(config: SessionConfig) -> AutomationSession:
    return AutomationSession(
        config,
        driver_factory=PlaywrightDriver,
        discovery=build_discovery(config),
    )
