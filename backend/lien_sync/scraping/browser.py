"""Playwright browser session for a single scraper run"""
from playwright.async_api import async_playwright, Browser, BrowserContext, Playwright
from typing import List, Optional
from dataclasses import dataclass
import asyncio
import shutil
import logging

from lien_sync.config import settings
from lien_sync.exceptions import BrowserLaunchError

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)

# Containers run without a usable sandbox or a large /dev/shm
LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
    "--disable-features=IsolateOrigins,site-per-process",
    "--window-size=1920,1080",
]


@dataclass
class BrowserSession:
    """A launched browser owned exclusively by one scraper"""
    playwright: Playwright
    browser: Browser
    context: BrowserContext

    async def close(self) -> None:
        for closer in (self.context.close, self.browser.close, self.playwright.stop):
            try:
                await closer()
            except Exception as e:
                logger.warning(f"Error closing browser session: {e}")


def find_system_browser(candidates: Optional[List[str]] = None) -> Optional[str]:
    """Return the first Chromium-family executable on PATH, if any"""
    for name in candidates if candidates is not None else settings.browser_executable_candidates_list:
        path = shutil.which(name)
        if path:
            return path
    return None


async def launch_browser_session(
    headless: Optional[bool] = None,
    attempts: Optional[int] = None,
    backoff_seconds: Optional[float] = None,
    label: str = "",
) -> BrowserSession:
    """
    Launch Chromium with retries.

    Uses a system browser when one is installed, otherwise Playwright's
    bundled Chromium.

    Raises:
        BrowserLaunchError: after every attempt has failed
    """
    headless = settings.BROWSER_HEADLESS if headless is None else headless
    attempts = attempts or settings.BROWSER_LAUNCH_ATTEMPTS
    backoff_seconds = settings.BROWSER_LAUNCH_BACKOFF_SECONDS if backoff_seconds is None else backoff_seconds

    launch_options = {"headless": headless, "args": list(LAUNCH_ARGS)}
    executable_path = find_system_browser()
    if executable_path:
        logger.info(f"Found system browser at {executable_path}")
        launch_options["executable_path"] = executable_path
    else:
        logger.info("No system browser found, using bundled Chromium")

    last_error: Optional[Exception] = None
    for attempt in range(1, attempts + 1):
        playwright = None
        try:
            logger.info(f"Launching browser{' for ' + label if label else ''} (attempt {attempt}/{attempts})")
            playwright = await async_playwright().start()
            browser = await playwright.chromium.launch(**launch_options)
            context = await browser.new_context(
                viewport={"width": 1920, "height": 1080},
                user_agent=USER_AGENT,
                locale="en-US",
                ignore_https_errors=True,
            )
            context.set_default_timeout(settings.BROWSER_TIMEOUT)
            logger.info("Browser launched successfully")
            return BrowserSession(playwright=playwright, browser=browser, context=context)
        except Exception as e:
            last_error = e
            if playwright is not None:
                try:
                    await playwright.stop()
                except Exception as stop_error:
                    logger.debug(f"Error stopping playwright after failed launch: {stop_error}")
            if attempt < attempts:
                logger.warning(
                    f"Browser launch failed: {e}, retrying in {backoff_seconds} seconds "
                    f"({attempts - attempt} attempts left)"
                )
                await asyncio.sleep(backoff_seconds)

    raise BrowserLaunchError(
        message=f"Failed to launch browser after {attempts} attempts: {last_error}",
        details={"attempts": attempts},
    )
