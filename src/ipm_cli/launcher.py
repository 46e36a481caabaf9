"""Hand a URI to the platform's default handler.

Defines the UriLauncher interface and its implementations:
- WebBrowserLauncher: Uses the standard ``webbrowser`` module
- NullLauncher: Does nothing (headless use)
"""

from __future__ import annotations

import webbrowser
from abc import ABC, abstractmethod


class LaunchWarning(Exception):
    """Raised when a URI could not be handed to the OS.

    Never fatal: callers log it and continue with the printed URI.
    """


class UriLauncher(ABC):
    """Abstract capability for opening a URI outside this process."""

    @abstractmethod
    def launch(self, uri: str) -> None:
        """Open the URI with the platform's registered handler.

        Args:
            uri: The URI to open, possibly with a custom scheme.

        Raises:
            LaunchWarning: If no handler accepted the URI.
        """
        ...


class WebBrowserLauncher(UriLauncher):
    """Launcher backed by ``webbrowser.open``.

    On Linux this goes through xdg-open, on macOS through ``open``, and on
    Windows through ``os.startfile``, so custom schemes reach the desktop app.
    """

    def launch(self, uri: str) -> None:
        try:
            opened = webbrowser.open(uri)
        except webbrowser.Error as e:
            raise LaunchWarning(f"Could not open {uri}: {e}") from e
        if not opened:
            raise LaunchWarning(f"No handler available for {uri}")


class NullLauncher(UriLauncher):
    """Launcher that never opens anything."""

    def launch(self, uri: str) -> None:
        return None
