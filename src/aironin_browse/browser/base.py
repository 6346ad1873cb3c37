"""Browser driver abstraction owned by an automation session."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from ..config import SessionConfig
from ..models import ConnectionDescriptor, Point, Size

ConsoleSink = Callable[[str], None]


class BrowserDriver(ABC):
    """A single connection to one browser page.

    Implementations raise :class:`~aironin_browse.errors.ConnectionLost` when the
    browser disappears and :class:`~aironin_browse.errors.BrowserActionError`
    for any other failed interaction.
    """

    @abstractmethod
    async def start(
        self,
        descriptor: ConnectionDescriptor,
        config: SessionConfig,
        on_console: ConsoleSink,
    ) -> None:
        """Open the connection described by ``descriptor``.

        Must release anything it created before raising.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Release the connection. Safe to call after a failure."""

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Load ``url`` in the current page."""

    @abstractmethod
    async def click(self, point: Point) -> None:
        """Click at ``point``."""

    @abstractmethod
    async def hover(self, point: Point) -> None:
        """Move the mouse to ``point``."""

    @abstractmethod
    async def type_text(self, text: str) -> None:
        """Send ``text`` as keyboard input to the focused element."""

    @abstractmethod
    async def scroll(self, delta_y: int) -> None:
        """Scroll vertically by ``delta_y`` pixels (positive is down)."""

    @abstractmethod
    async def resize(self, size: Size) -> None:
        """Change the page viewport."""

    @abstractmethod
    async def current_url(self) -> str:
        """Return the URL of the current page."""

    @abstractmethod
    async def screenshot(self, quality: int) -> bytes:
        """Capture the viewport as JPEG, raising ``CaptureDegraded`` on failure."""
