"""Interactive command shell driving a single automation session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from rich.console import Console

from .browser.session import AutomationSession
from .errors import BrowseError, ConnectionLost, PreconditionError
from .models import ActionResult, ScrollDirection, SessionState

LOGGER = logging.getLogger(__name__)

PROMPT = "browser> "
DEFAULT_TEST_URL = "https://example.com"
HELP_TEXT = """\
  launch <url>     - Launch browser and navigate to URL
  click <x,y>      - Click at coordinates
  type <text>      - Type text
  scroll <up|down> - Scroll page
  hover <x,y>      - Hover at coordinates
  resize <w,h>     - Resize browser window
  close            - Close browser
  test             - Run connection test
  exit             - Exit interactive mode"""

SessionFactory = Callable[[], AutomationSession]
LineReader = Callable[[str], Awaitable[str]]


class InteractiveShell:
    """Read commands and apply them to one session at a time."""

    def __init__(
        self,
        session_factory: SessionFactory,
        console: Optional[Console] = None,
        *,
        test_url: str = DEFAULT_TEST_URL,
    ) -> None:
        self._session_factory = session_factory
        self._console = console or Console(markup=False)
        self._test_url = test_url
        self._session: Optional[AutomationSession] = None
        self._handlers: dict[str, Callable[[str], Awaitable[None]]] = {
            "help": self._help,
            "test": self._test,
            "launch": self._launch,
            "click": self._click,
            "type": self._type,
            "scroll": self._scroll,
            "hover": self._hover,
            "resize": self._resize,
            "close": self._close,
        }

    @property
    def session(self) -> Optional[AutomationSession]:
        return self._session

    async def ensure_ready(self) -> AutomationSession:
        """Return a ready session, launching a new one on first use."""

        session = self._session
        if session is not None and session.state is SessionState.READY:
            return session
        if session is None or session.state is SessionState.CLOSED:
            session = self._session = self._session_factory()
        await session.launch()
        return session

    async def run(self, read_line: Optional[LineReader] = None) -> None:
        reader = read_line or self._read_line
        self._console.print("🚀 Starting interactive browser automation mode", style="yellow")
        self._console.print("Type 'help' for available commands", style="dim")
        self._console.print("Type 'exit' to quit", style="dim")
        try:
            while True:
                try:
                    line = await reader(PROMPT)
                except EOFError:
                    break
                if not await self.handle(line):
                    break
        finally:
            if self._session is not None:
                await self._session.close()
        self._console.print("👋 Goodbye!", style="yellow")

    async def handle(self, line: str) -> bool:
        """Execute one command line. Returns ``False`` when the shell should exit."""

        command, _, rest = line.strip().partition(" ")
        if not command:
            return True
        name = command.lower()
        if name in {"exit", "quit"}:
            return False
        handler = self._handlers.get(name)
        if handler is None:
            self._console.print(f"❌ Unknown command: {command}", style="red")
            self._console.print("Type 'help' for available commands", style="dim")
            return True
        try:
            await handler(rest.strip())
        except ConnectionLost as exc:
            self._console.print(f"❌ Browser connection lost: {exc}", style="red")
            self._console.print("Use 'launch <url>' to start a new session", style="dim")
        except BrowseError as exc:
            LOGGER.debug("Command %r failed", line, exc_info=True)
            self._console.print(f"❌ Error: {exc}", style="red")
        return True

    async def _read_line(self, prompt: str) -> str:
        return await asyncio.to_thread(self._console.input, prompt)

    def _ready_session(self) -> AutomationSession:
        session = self._session
        if session is None or session.state is not SessionState.READY:
            raise PreconditionError("Browser not launched; use 'launch <url>' first")
        return session

    def _report(self, message: str, result: ActionResult) -> None:
        self._console.print(f"✅ {message}", style="green")
        if result.logs:
            self._console.print(result.logs, style="dim")

    async def _help(self, _args: str) -> None:
        self._console.print("Available commands:", style="cyan")
        self._console.print(HELP_TEXT, highlight=False)

    async def _test(self, _args: str) -> None:
        self._console.print("🧪 Running connection test...", style="yellow")
        session = await self.ensure_ready()
        result = await session.navigate(self._test_url)
        self._report("Test successful", result)
        self._console.print(f"Current URL: {result.current_url}", style="blue")

    async def _launch(self, args: str) -> None:
        if not args:
            self._console.print("❌ URL required", style="red")
            return
        session = await self.ensure_ready()
        result = await session.navigate(args.split()[0])
        self._report("Navigated successfully", result)
        self._console.print(f"Current URL: {result.current_url}", style="blue")

    async def _click(self, args: str) -> None:
        if not args:
            self._console.print("❌ Coordinates required (x,y format)", style="red")
            return
        result = await self._ready_session().click(args.split()[0])
        self._report("Clicked successfully", result)

    async def _type(self, args: str) -> None:
        if not args:
            self._console.print("❌ Text required", style="red")
            return
        result = await self._ready_session().type(args)
        self._report("Typed successfully", result)

    async def _scroll(self, args: str) -> None:
        try:
            direction = ScrollDirection.parse(args)
        except PreconditionError:
            self._console.print("❌ Direction required (up or down)", style="red")
            return
        result = await self._ready_session().scroll(direction)
        self._report(f"Scrolled {direction.value} successfully", result)

    async def _hover(self, args: str) -> None:
        if not args:
            self._console.print("❌ Coordinates required (x,y format)", style="red")
            return
        result = await self._ready_session().hover(args.split()[0])
        self._report("Hovered successfully", result)

    async def _resize(self, args: str) -> None:
        if not args:
            self._console.print("❌ Size required (width,height format)", style="red")
            return
        result = await self._ready_session().resize(args.split()[0])
        self._report("Resized successfully", result)

    async def _close(self, _args: str) -> None:
        if self._session is not None:
            await self._session.close()
        self._console.print("✅ Browser closed", style="green")
