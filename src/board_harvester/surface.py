"""Rendered-surface driver: the only way the harvester touches the live board."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Protocol
from urllib.parse import urlparse

from playwright.async_api import Page, async_playwright

from board_harvester.config import Settings

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = {"http", "https"}


class Surface(Protocol):
    """A scrollable, lazily rendered page."""

    @property
    def url(self) -> str: ...

    async def visible_extent(self) -> int: ...

    async def total_extent(self) -> int: ...

    async def scroll_offset(self) -> int: ...

    async def scroll_by(self, fraction: float) -> None: ...

    async def scroll_to_top(self) -> None: ...

    async def snapshot(self) -> str: ...


class PlaywrightSurface:
    """Surface backed by an async Playwright page."""

    def __init__(self, page: Page) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    async def visible_extent(self) -> int:
        return int(await self._page.evaluate("window.innerHeight"))

    async def total_extent(self) -> int:
        return int(
            await self._page.evaluate(
                "Math.max(document.body.scrollHeight, document.documentElement.scrollHeight)"
            )
        )

    async def scroll_offset(self) -> int:
        return int(await self._page.evaluate("window.scrollY"))

    async def scroll_by(self, fraction: float) -> None:
        await self._page.evaluate(
            "(f) => window.scrollBy(0, Math.round(window.innerHeight * f))",
            fraction,
        )

    async def scroll_to_top(self) -> None:
        await self._page.evaluate("window.scrollTo(0, 0)")

    async def snapshot(self) -> str:
        return await self._page.content()


def _validate_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme not in ALLOWED_SCHEMES:
        raise ValueError(f"Scheme '{parsed.scheme}' is not allowed. Use http or https.")
    if not parsed.hostname:
        raise ValueError("URL must have a valid hostname.")


@asynccontextmanager
async def open_surface(url: str, settings: Settings) -> AsyncIterator[PlaywrightSurface]:
    """Launch Chromium, open *url* and yield a surface over it.

    The browser is closed when the block exits, even on error.

    Raises:
        ValueError: if the URL is not http/https.
        playwright.async_api.Error: on browser/network errors.
    """
    _validate_url(url)

    async with async_playwright() as pw:
        browser = await pw.chromium.launch(
            headless=settings.headless,
            args=[
                "--no-sandbox",
                "--disable-dev-shm-usage",
                "--disable-gpu",
            ],
        )
        context = await browser.new_context(viewport={"width": 1280, "height": 900})
        page = await context.new_page()
        try:
            # networkidle never settles on an infinite feed
            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=settings.page_timeout * 1000,
            )
            logger.info("Opened %s", page.url)
            yield PlaywrightSurface(page)
        finally:
            await context.close()
            await browser.close()
