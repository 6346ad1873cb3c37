"""Automation session: one browser connection driven one action at a time."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Optional
from urllib.parse import urlsplit

from ..config import SessionConfig
from ..errors import (
    CaptureDegraded,
    ConnectionLost,
    LaunchError,
    PreconditionError,
)
from ..models import (
    ActionResult,
    ConnectionDescriptor,
    Point,
    ScrollDirection,
    SessionState,
    Size,
)
from .base import BrowserDriver
from .discovery import EndpointDiscovery, resolve_descriptor
from .playwright_session import PlaywrightDriver

LOGGER = logging.getLogger(__name__)

DriverFactory = Callable[[], BrowserDriver]


class AutomationSession:
    """State machine owning at most one browser connection.

    ``uninitialized -> launching -> ready -> closed``. Actions are only accepted
    while ready; a lost connection closes the session for good. Callers must
    not issue a second action while one is outstanding.
    """

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        *,
        driver_factory: DriverFactory = PlaywrightDriver,
        discovery: Optional[EndpointDiscovery] = None,
    ) -> None:
        self._config = config or SessionConfig()
        self._driver_factory = driver_factory
        self._discovery = discovery
        self._state = SessionState.UNINITIALIZED
        self._driver: Optional[BrowserDriver] = None
        self._descriptor: Optional[ConnectionDescriptor] = None
        self._viewport = Size(self._config.viewport_width, self._config.viewport_height)
        self._logs: list[str] = []

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def descriptor(self) -> Optional[ConnectionDescriptor]:
        return self._descriptor

    async def __aenter__(self) -> "AutomationSession":
        await self.launch()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def launch(self, descriptor: Optional[ConnectionDescriptor] = None) -> ConnectionDescriptor:
        """Connect to a browser, resolving the target from the config if needed."""

        if self._state is not SessionState.UNINITIALIZED:
            raise PreconditionError(f"Cannot launch a session that is {self._state.value}")
        self._state = SessionState.LAUNCHING
        try:
            if descriptor is None:
                descriptor = await resolve_descriptor(self._config, self._discovery)
            driver = self._driver_factory()
            await driver.start(descriptor, self._config, self._record_console)
        except LaunchError:
            self._state = SessionState.UNINITIALIZED
            raise
        except Exception as exc:
            self._state = SessionState.UNINITIALIZED
            raise LaunchError(f"Could not launch browser: {exc}") from exc
        except BaseException:
            self._state = SessionState.UNINITIALIZED
            raise
        self._driver = driver
        self._descriptor = descriptor
        self._viewport = Size(self._config.viewport_width, self._config.viewport_height)
        self._logs.clear()
        self._state = SessionState.READY
        LOGGER.info(
            "Browser session ready (%s%s)",
            descriptor.mode.value,
            f" at {descriptor.host_url}" if descriptor.host_url else "",
        )
        return descriptor

    async def close(self) -> None:
        """Release the connection. Closing a closed session does nothing."""

        if self._state is SessionState.CLOSED:
            return
        driver, self._driver = self._driver, None
        self._state = SessionState.CLOSED
        self._logs.clear()
        if driver is not None:
            LOGGER.info("Closing browser session")
            await driver.stop()

    async def navigate(self, url: str) -> ActionResult:
        self._require_ready()
        target = _require_url(url)
        return await self._perform(f"navigate to {target}", lambda driver: driver.navigate(target))

    async def click(self, coordinates: str) -> ActionResult:
        self._require_ready()
        point = Point.parse(coordinates)
        return await self._perform(f"click at {point}", lambda driver: driver.click(point))

    async def hover(self, coordinates: str) -> ActionResult:
        self._require_ready()
        point = Point.parse(coordinates)
        return await self._perform(f"hover at {point}", lambda driver: driver.hover(point))

    async def type(self, text: str) -> ActionResult:
        self._require_ready()
        if not isinstance(text, str):
            raise PreconditionError("Text to type must be a string")
        return await self._perform("type text", lambda driver: driver.type_text(text))

    async def scroll(self, direction: str | ScrollDirection) -> ActionResult:
        self._require_ready()
        if not isinstance(direction, ScrollDirection):
            direction = ScrollDirection.parse(direction)
        delta = self._viewport.height
        if direction is ScrollDirection.UP:
            delta = -delta
        return await self._perform(
            f"scroll {direction.value}", lambda driver: driver.scroll(delta)
        )

    async def scroll_up(self) -> ActionResult:
        return await self.scroll(ScrollDirection.UP)

    async def scroll_down(self) -> ActionResult:
        return await self.scroll(ScrollDirection.DOWN)

    async def resize(self, size: str) -> ActionResult:
        self._require_ready()
        parsed = Size.parse(size)
        result = await self._perform(f"resize to {parsed}", lambda driver: driver.resize(parsed))
        self._viewport = parsed
        return result

    def _require_ready(self) -> BrowserDriver:
        if self._state is not SessionState.READY or self._driver is None:
            raise PreconditionError(
                f"Browser session is {self._state.value}; launch it before issuing actions"
            )
        return self._driver

    def _record_console(self, line: str) -> None:
        self._logs.append(line)

    def _drain_logs(self) -> str:
        logs = "\n".join(self._logs)
        self._logs.clear()
        return logs

    async def _perform(
        self,
        description: str,
        operation: Callable[[BrowserDriver], Awaitable[None]],
    ) -> ActionResult:
        driver = self._require_ready()
        LOGGER.info("Executing browser action: %s", description)
        try:
            await operation(driver)
            current_url = await driver.current_url()
            screenshot = await self._capture(driver)
        except ConnectionLost:
            LOGGER.error("Connection lost during %s; closing session", description)
            await self.close()
            raise
        return ActionResult(current_url=current_url, screenshot=screenshot, logs=self._drain_logs())

    async def _capture(self, driver: BrowserDriver) -> Optional[bytes]:
        try:
            return await driver.screenshot(self._config.screenshot_quality)
        except CaptureDegraded as exc:
            LOGGER.warning("Continuing without screenshot: %s", exc)
            return None


def _require_url(url: str) -> str:
    if not isinstance(url, str) or not url.strip():
        raise PreconditionError("A URL is required")
    target = url.strip()
    parts = urlsplit(target)
    if not parts.scheme or (parts.scheme in {"http", "https"} and not parts.netloc):
        raise PreconditionError(f"URL must be absolute, got {url!r}")
    return target
