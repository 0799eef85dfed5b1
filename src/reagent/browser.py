"""Open a review URL in the user's browser without ever failing the caller."""

from __future__ import annotations

import asyncio
import logging
import webbrowser

from reagent.errors import BrowserOpenError

logger = logging.getLogger("reagent")


def _open(url: str) -> None:
    try:
        opened = webbrowser.open(url, new=2)
    except webbrowser.Error as exc:
        raise BrowserOpenError(f"Failed to open browser: {exc}") from exc
    if not opened:
        raise BrowserOpenError("No runnable browser found")


async def open_review_url(url: str) -> bool:
    """Try to open ``url``. Returns False and logs a warning on failure."""
    try:
        await asyncio.to_thread(_open, url)
    except BrowserOpenError as exc:
        logger.warning("%s; open the review manually at %s", exc.message, url)
        return False
    logger.info("Opened browser: %s", url)
    return True
