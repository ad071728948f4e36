"""
Playwright browser wrapper for one recording session.

Launches Chromium with fake media devices and pre-granted permissions,
opens a single page, and saves diagnostic screenshots and HTML into the
session directory.
"""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.async_api import (
    async_playwright,
    Browser,
    BrowserContext,
    Page,
    Error as PlaywrightError,
)

from meet_recorder.config import BrowserSettings, get_logger

logger = get_logger("browser")


CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
    "--use-fake-ui-for-media-stream",  # Auto-accept permissions
    "--use-fake-device-for-media-stream",
    "--autoplay-policy=no-user-gesture-required",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-blink-features=AutomationControlled",  # Stealth: Hide navigator.webdriver
    "--disable-extensions",
    "--disable-infobars",
]


class MeetBrowser:
    """
    Owns the Playwright driver, browser, context and page of one session.

    Usage pattern:
        browser = MeetBrowser(session_dir)
        page = await browser.start()
        ...
        await browser.close()
    """

    def __init__(self, session_dir: Path, settings: Optional[BrowserSettings] = None) -> None:
        self._settings = settings or BrowserSettings()
        self.session_dir = Path(session_dir)
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

        # Debug screenshot counter for naming
        self._screenshot_counter = 0

    @property
    def is_running(self) -> bool:
        """Return True if the browser is currently available."""
        return self._browser is not None

    async def start(self) -> Page:
        """
        Start Playwright, launch Chromium and open the session page.
        """
        if self.page is not None:
            return self.page

        logger.info("Launching Chromium...")
        self._playwright = await async_playwright().start()

        self._browser = await self._playwright.chromium.launch(
            headless=self._settings.headless,
            executable_path=self._settings.executable_path or None,
            ignore_default_args=["--enable-automation"],
            args=CHROMIUM_ARGS,
        )

        self._context = await self._browser.new_context(
            user_agent=self._settings.user_agent,
            viewport={"width": 1920, "height": 1080},
            permissions=["microphone", "camera"],  # Pre-grant permissions
            ignore_https_errors=True,
        )

        # Stealth: clear navigator.webdriver
        await self._context.add_init_script(
            "Object.defineProperty(navigator, 'webdriver', {get: () => undefined})"
        )

        self.page = await self._context.new_page()
        self.page.set_default_navigation_timeout(self._settings.navigation_timeout_ms)
        logger.info("Chromium launched.")
        return self.page

    async def save_debug_snapshot(self, step_name: str) -> None:
        """
        Save a debug screenshot and HTML snapshot for a specific step.

        Args:
            step_name: Descriptive name for this step (e.g., "meet_page_loaded")
        """
        if not self._settings.debug_screenshots or self.page is None or self.page.is_closed():
            return

        self._screenshot_counter += 1
        base_filename = f"{self._screenshot_counter:02d}_{step_name}"
        png_path = self.session_dir / f"{base_filename}.png"
        html_path = self.session_dir / f"{base_filename}.html"

        try:
            await self.page.screenshot(path=str(png_path), full_page=True)
            html_path.write_text(await self.page.content(), encoding="utf-8")
            logger.info(f"📸 Snapshot saved: {base_filename} ({datetime.now().strftime('%H:%M:%S')})")
        except PlaywrightError as e:
            logger.warning(f"Failed to save debug snapshot for {step_name}: {e}")

    async def close(self) -> None:
        """
        Close the page, context and browser, then stop Playwright.
        """
        logger.info("Closing browser...")

        try:
            if self._context is not None:
                await self._context.close()
        except PlaywrightError as e:
            logger.debug(f"Context close error: {e}")
        finally:
            self._context = None
            self.page = None

        try:
            if self._browser is not None:
                await self._browser.close()
        except PlaywrightError as e:
            logger.debug(f"Browser close error: {e}")
        finally:
            self._browser = None

        try:
            if self._playwright is not None:
                await self._playwright.stop()
        finally:
            self._playwright = None
