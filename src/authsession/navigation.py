"""User agent seam for redirects.

The session manager never talks to a browser directly. Hosts supply a
``UserAgent`` that can navigate away (login, logout) and replace the visible
location without a reload (stripping callback parameters).
"""

from __future__ import annotations

import logging
import webbrowser
from typing import Protocol

logger = logging.getLogger(__name__)


class UserAgent(Protocol):
    """Protocol for the component that owns the visible location."""

    def navigate(self, url: str) -> None:
        """Leave the application for ``url``."""
        ...

    def replace_location(self, url: str) -> None:
        """Rewrite the visible location to ``url`` without navigating."""
        ...


class BrowserUserAgent:
    """Opens provider pages in the system browser.

    Suitable for desktop and CLI hosts whose redirect URI is served locally.
    The "visible location" is tracked in ``current_url``.
    """

    def __init__(self, current_url: str | None = None):
        self.current_url = current_url

    def navigate(self, url: str) -> None:
        logger.debug("Opening provider page in system browser")
        if not webbrowser.open(url):
            logger.warning(f"No browser available, visit manually: {url}")

    def replace_location(self, url: str) -> None:
        self.current_url = url


class RecordingUserAgent:
    """User agent that only records requests.

    For headless hosts that forward the URLs themselves, and for tests.
    """

    def __init__(self, current_url: str | None = None):
        self.current_url = current_url
        self.navigations: list[str] = []

    def navigate(self, url: str) -> None:
        self.navigations.append(url)

    def replace_location(self, url: str) -> None:
        self.current_url = url

    @property
    def last_navigation(self) -> str | None:
        return self.navigations[-1] if self.navigations else None
