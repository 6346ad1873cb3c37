"""Error taxonomy shared by discovery, sessions and the command surface."""

from __future__ import annotations


class BrowseError(RuntimeError):
    """Base class for every error raised by aironin-browse."""


class DiscoveryFailure(BrowseError):
    """A candidate endpoint did not answer as a controllable browser."""


class LaunchError(BrowseError):
    """The session could not establish its browser connection."""


class PreconditionError(BrowseError):
    """An action was issued outside the ready state or with malformed input."""


class ConnectionLost(BrowseError):
    """The underlying browser went away while the session was ready."""


class BrowserActionError(BrowseError):
    """Raised when executing a browser action fails."""


class CaptureDegraded(BrowseError):
    """A screenshot could not be captured after an action."""
