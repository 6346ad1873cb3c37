from __future__ import annotations

from typing import Optional
from urllib.parse import urlsplit

import pytest

from aironin_browse.browser.base import BrowserDriver, ConsoleSink
from aironin_browse.browser.session import AutomationSession
from aironin_browse.config import SessionConfig
from aironin_browse.models import ConnectionDescriptor, Point, Size

ENV_VARS = (
    "BROWSER_VIEWPORT_SIZE",
    "SCREENSHOT_QUALITY",
    "REMOTE_BROWSER_ENABLED",
    "REMOTE_BROWSER_HOST",
    "REMOTE_BROWSER_PORT",
    "BROWSER_HEADLESS",
)


class StubDriver(BrowserDriver):
    """In-memory driver recording every call the session makes."""

    def __init__(self) -> None:
        self.calls: list[tuple[object, ...]] = []
        self.url = "about:blank"
        self.descriptor: Optional[ConnectionDescriptor] = None
        self.config: Optional[SessionConfig] = None
        self.on_console: Optional[ConsoleSink] = None
        self.start_error: Optional[Exception] = None
        self.action_error: Optional[Exception] = None
        self.screenshot_error: Optional[Exception] = None
        self.console_during_action: list[str] = []
        self.stopped = False

    async def start(self, descriptor, config, on_console) -> None:
        self.calls.append(("start", descriptor.mode))
        if self.start_error is not None:
            raise self.start_error
        self.descriptor = descriptor
        self.config = config
        self.on_console = on_console

    async def stop(self) -> None:
        self.calls.append(("stop",))
        self.stopped = True

    def emit(self, line: str) -> None:
        assert self.on_console is not None
        self.on_console(line)

    def _act(self, *call: object) -> None:
        self.calls.append(call)
        for line in self.console_during_action:
            self.emit(line)
        if self.action_error is not None:
            raise self.action_error

    async def navigate(self, url: str) -> None:
        self._act("navigate", url)
        self.url = url if urlsplit(url).path else f"{url}/"

    async def click(self, point: Point) -> None:
        self._act("click", point)

    async def hover(self, point: Point) -> None:
        self._act("hover", point)

    async def type_text(self, text: str) -> None:
        self._act("type", text)

    async def scroll(self, delta_y: int) -> None:
        self._act("scroll", delta_y)

    async def resize(self, size: Size) -> None:
        self._act("resize", size)

    async def current_url(self) -> str:
        return self.url

    async def screenshot(self, quality: int) -> bytes:
        self.calls.append(("screenshot", quality))
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return b"jpeg-bytes"


class DriverPool:
    """Driver factory handing out a fresh stub for every launch."""

    def __init__(self) -> None:
        self.drivers: list[StubDriver] = []
        self.prepared: list[StubDriver] = []

    def prepare(self) -> StubDriver:
        driver = StubDriver()
        self.prepared.append(driver)
        return driver

    def __call__(self) -> StubDriver:
        driver = self.prepared.pop(0) if self.prepared else StubDriver()
        self.drivers.append(driver)
        return driver

    @property
    def last(self) -> StubDriver:
        return self.drivers[-1]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def drivers() -> DriverPool:
    return DriverPool()


@pytest.fixture
def make_session(drivers: DriverPool):
    def _make(config: Optional[SessionConfig] = None, **kwargs) -> AutomationSession:
        return AutomationSession(config or SessionConfig(), driver_factory=drivers, **kwargs)

    return _make
