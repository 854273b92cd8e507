import logging
from contextlib import asynccontextmanager

from playwright.async_api import async_playwright, BrowserContext

from siteflow.config import settings
from siteflow.core.metrics import active_browser_sessions

logger = logging.getLogger(__name__)

_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--no-first-run",
    "--no-default-browser-check",
]


@asynccontextmanager
async def browser_session(
    viewport: dict | None = None,
    cookies: list[dict] | None = None,
    headless: bool | None = None,
):
    """Yield a fresh, isolated Chromium context.

    The browser is launched for this session only and closed on every exit
    path, including exceptions raised inside the ``async with`` body.
    """
    async with async_playwright() as playwright:
        browser = await playwright.chromium.launch(
            headless=settings.BROWSER_HEADLESS if headless is None else headless,
            args=_CHROMIUM_ARGS,
        )
        active_browser_sessions.inc()
        try:
            context_kwargs = {"ignore_https_errors": True}
            if viewport:
                context_kwargs["viewport"] = viewport
            context: BrowserContext = await browser.new_context(**context_kwargs)

            if cookies:
                await context.add_cookies(cookies)

            try:
                yield context
            finally:
                try:
                    await context.close()
                except Exception as e:
                    logger.warning(f"Failed to close browser context: {e}")
        finally:
            try:
                await browser.close()
            except Exception as e:
                logger.warning(f"Failed to close browser: {e}")
            active_browser_sessions.dec()
