"""Playwright-powered browser driver."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Optional

from playwright.async_api import Browser, BrowserContext, Error, Page, Playwright, async_playwright
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import SessionConfig
from ..errors import BrowserActionError, CaptureDegraded, ConnectionLost, LaunchError
from ..models import ConnectionDescriptor, ConnectionMode, Point, Size
from .base import BrowserDriver, ConsoleSink

LOGGER = logging.getLogger(__name__)

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
SETTLE_TIMEOUT_MS = 3000
HOVER_SETTLE_MS = 150


class PlaywrightDriver(BrowserDriver):
    """Driver that launches Chromium locally or attaches to one over CDP."""

    def __init__(self) -> None:
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self._page: Optional[Page] = None
        self._disconnected = False

    async def start(
        self,
        descriptor: ConnectionDescriptor,
        config: SessionConfig,
        on_console: ConsoleSink,
    ) -> None:
        LOGGER.debug("Starting Playwright driver in %s mode", descriptor.mode.value)
        viewport = {"width": config.viewport_width, "height": config.viewport_height}
        try:
            self._playwright = await async_playwright().start()
            if descriptor.mode is ConnectionMode.REMOTE:
                await self._attach(descriptor, viewport)
            else:
                await self._launch(config, viewport)
        except BaseException as exc:
            await self.stop()
            if isinstance(exc, Error):
                raise LaunchError(f"Could not start browser: {exc.message}") from exc
            raise
        assert self._browser is not None and self._page is not None
        self._browser.on("disconnected", self._on_disconnected)
        self._page.on("console", lambda message: on_console(f"[{message.type}] {message.text}"))
        self._page.on("pageerror", lambda error: on_console(f"[Page Error] {error}"))

    async def _launch(self, config: SessionConfig, viewport: dict[str, int]) -> None:
        assert self._playwright is not None
        self._browser = await self._playwright.chromium.launch(
            headless=config.headless,
            args=LAUNCH_ARGS,
        )
        self._context = await self._browser.new_context(viewport=viewport)
        self._page = await self._context.new_page()

    async def _attach(self, descriptor: ConnectionDescriptor, viewport: dict[str, int]) -> None:
        assert self._playwright is not None
        endpoint = descriptor.endpoint
        if not endpoint:
            raise LaunchError("Remote connection descriptor has no endpoint")
        LOGGER.info("Attaching to remote browser at %s", endpoint)
        self._browser = await self._playwright.chromium.connect_over_cdp(endpoint)
        # Reuse the remote browser's own tabs so state survives between runs.
        contexts = self._browser.contexts
        if contexts:
            context = contexts[0]
        else:
            context = self._context = await self._browser.new_context(viewport=viewport)
        pages = context.pages
        self._page = pages[0] if pages else await context.new_page()
        await self._page.set_viewport_size(viewport)

    async def stop(self) -> None:
        LOGGER.debug("Stopping Playwright driver")
        try:
            for resource in (self._context, self._browser):
                if resource is not None:
                    await _close_quietly(resource)
        finally:
            if self._playwright:
                await self._playwright.stop()
            self._context = None
            self._browser = None
            self._playwright = None
            self._page = None

    def is_connected(self) -> bool:
        return (
            not self._disconnected
            and self._browser is not None
            and self._browser.is_connected()
            and self._page is not None
            and not self._page.is_closed()
        )

    def _on_disconnected(self, _browser: Browser) -> None:
        LOGGER.warning("Browser disconnected")
        self._disconnected = True

    def _require_page(self) -> Page:
        if self._page is None:
            raise BrowserActionError("Browser driver is not started")
        if not self.is_connected():
            raise ConnectionLost("Browser connection is no longer available")
        return self._page

    @contextmanager
    def _translate_errors(self, action: str) -> Iterator[Page]:
        page = self._require_page()
        try:
            yield page
        except Error as exc:
            if not self.is_connected():
                raise ConnectionLost(f"Browser connection lost during {action}") from exc
            raise BrowserActionError(f"{action} failed: {exc.message}") from exc

    async def navigate(self, url: str) -> None:
        with self._translate_errors("navigate") as page:
            await page.goto(url, wait_until="domcontentloaded")
            await _settle(page)

    async def click(self, point: Point) -> None:
        with self._translate_errors("click") as page:
            await page.mouse.click(point.x, point.y)
            await _settle(page)

    async def hover(self, point: Point) -> None:
        with self._translate_errors("hover") as page:
            await page.mouse.move(point.x, point.y)
            await page.wait_for_timeout(HOVER_SETTLE_MS)

    async def type_text(self, text: str) -> None:
        with self._translate_errors("type") as page:
            await page.keyboard.type(text)

    async def scroll(self, delta_y: int) -> None:
        with self._translate_errors("scroll") as page:
            await page.mouse.wheel(0, delta_y)

    async def resize(self, size: Size) -> None:
        with self._translate_errors("resize") as page:
            await page.set_viewport_size({"width": size.width, "height": size.height})

    async def current_url(self) -> str:
        with self._translate_errors("read url") as page:
            return page.url

    async def screenshot(self, quality: int) -> bytes:
        page = self._require_page()
        try:
            return await page.screenshot(type="jpeg", quality=quality)
        except Error as exc:
            if not self.is_connected():
                raise ConnectionLost("Browser connection lost during screenshot") from exc
            raise CaptureDegraded(f"Screenshot failed: {exc.message}") from exc


async def _settle(page: Page) -> None:
    try:
        await page.wait_for_load_state("networkidle", timeout=SETTLE_TIMEOUT_MS)
    except PlaywrightTimeoutError:
        LOGGER.debug("Page did not reach network idle within %sms", SETTLE_TIMEOUT_MS)


async def _close_quietly(resource: Any) -> None:
    try:
        await resource.close()
    except Error as exc:
        LOGGER.debug("Ignoring close failure on %r: %s", resource, exc)
