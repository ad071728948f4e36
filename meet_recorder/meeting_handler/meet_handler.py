"""
Google Meet join automation.

Wraps one ``MeetBrowser`` and drives the pre-join screen: device prompt,
camera and microphone toggles, guest name, join button and the lobby.
Each UI step is a ``ProbeChain`` of fallbacks. A step that is not found
is logged and skipped, since the next step (or the admission wait) tells
whether the bot actually got in.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterable, Optional

from playwright.async_api import Page

from meet_recorder.config import AuthSettings, BrowserSettings, get_logger
from meet_recorder.core.exceptions import AccessDeniedError
from meet_recorder.domain.models import AuthMethod, GoogleCredentials
from .authenticator import GoogleAuthenticator
from .browser import MeetBrowser
from .meet_selectors import (
    CAMERA_SHORTCUT,
    DISMISS_DEVICE_PROMPT_BUTTONS,
    JOIN_BUTTON_NAMES,
    JOIN_TEXT_KEYWORDS,
    MIC_SHORTCUT,
    get_selectors_for,
)
from .probes import (
    KeyPressProbe,
    ProbeChain,
    RoleButtonProbe,
    SelectorClickProbe,
    SelectorFillProbe,
    TextSearchClickProbe,
    any_present,
    any_visible,
    attempt_step,
)

logger = get_logger("meet")

ADMISSION_POLL_SECONDS = 2


class MeetAutomation:
    """
    Browser automation for one meeting.

    Usage pattern:
        automation = MeetAutomation(session_dir)
        await automation.launch()
        await automation.navigate(meet_url)
        strategy = await automation.join("Meeting Recorder")
        ...
        await automation.close()
    """

    def __init__(
        self,
        session_dir: Path,
        browser_settings: Optional[BrowserSettings] = None,
        auth_settings: Optional[AuthSettings] = None,
        meeting_hosts: Iterable[str] = ("meet.google.com",),
    ) -> None:
        self._settings = browser_settings or BrowserSettings()
        self._auth_settings = auth_settings or AuthSettings()
        self.meeting_hosts = list(meeting_hosts)
        self.browser = MeetBrowser(session_dir, self._settings)
        self.page: Optional[Page] = None

    async def launch(self) -> None:
        """Start the browser and open the session page."""
        self.page = await self.browser.start()

    async def navigate(self, meet_url: str) -> None:
        """Load the meeting page and let it settle."""
        logger.info(f"Navigating to {meet_url}...")
        await self.page.goto(meet_url, wait_until="domcontentloaded")
        await asyncio.sleep(self._settings.settle_seconds)
        await self.browser.save_debug_snapshot("meet_page_loaded")

    async def authenticate(self, credentials: GoogleCredentials, meet_url: str) -> AuthMethod:
        """
        Sign the browser into Google with ``credentials``.

        Raises:
            AuthenticationError: If sign-in fails.
        """
        authenticator = GoogleAuthenticator(
            self.page, self.browser, self.meeting_hosts, self._auth_settings
        )
        method = await authenticator.authenticate(credentials, meet_url)
        await asyncio.sleep(self._settings.settle_seconds)
        return method

    async def join(self, bot_name: str) -> Optional[str]:
        """
        Run the pre-join steps and wait for admission.

        Args:
            bot_name: Display name used when joining as a guest.

        Returns:
            Name of the probe that clicked join, or None if no join
            control was found.

        Raises:
            AccessDeniedError: If the host declines the request or the bot
                is still in the lobby when the admission timeout runs out.
        """
        page = self.page

        # --- 1. Dismiss device checks ---
        await attempt_step(
            ProbeChain("dismiss_device_prompt", [RoleButtonProbe(name) for name in DISMISS_DEVICE_PROMPT_BUTTONS]),
            page,
        )

        # --- 2. Camera and microphone off ---
        camera_probes = [SelectorClickProbe(sel) for sel in get_selectors_for("camera_off")]
        camera_probes.append(KeyPressProbe(CAMERA_SHORTCUT))
        await attempt_step(ProbeChain("camera_off", camera_probes), page)

        mic_probes = [SelectorClickProbe(sel) for sel in get_selectors_for("mic_off")]
        mic_probes.append(KeyPressProbe(MIC_SHORTCUT))
        await attempt_step(ProbeChain("mic_off", mic_probes), page)

        # --- 3. Guest name (absent when signed in) ---
        name_filled = await attempt_step(
            ProbeChain("guest_name", [SelectorFillProbe(sel, bot_name) for sel in get_selectors_for("name_input")]),
            page,
        )
        if name_filled:
            logger.info(f"Guest mode detected. Entered bot name: {bot_name}")
        await self.browser.save_debug_snapshot("prejoin_ready")

        # --- 4. Join ---
        join_probes = [SelectorClickProbe(sel) for sel in get_selectors_for("join_button")]
        join_probes.extend(RoleButtonProbe(name) for name in JOIN_BUTTON_NAMES)
        join_probes.append(TextSearchClickProbe(JOIN_TEXT_KEYWORDS))
        strategy = await attempt_step(ProbeChain("join", join_probes, settle_seconds=2.0), page)
        if strategy is None:
            logger.warning("No 'Join' button found. Continuing in case the page auto-joined.")
        await self.browser.save_debug_snapshot("join_clicked")

        # --- 5. Admission ---
        await self._wait_for_admission()
        return strategy

    async def _wait_for_admission(self) -> None:
        """
        Wait until the bot is in the call.

        A timeout without any lobby evidence is not fatal: some meetings
        never show the usual indicators and the liveness monitor takes
        over from here.
        """
        timeout = self._settings.admission_timeout_seconds
        logger.info(f"Waiting for meeting admission (timeout: {timeout:g}s)...")

        loop = asyncio.get_running_loop()
        start = loop.time()
        last_status_log = start
        in_lobby = False

        while loop.time() - start < timeout:
            if await any_visible(self.page, get_selectors_for("in_meeting")):
                logger.info("✅ Successfully admitted to meeting!")
                await self.browser.save_debug_snapshot("admitted")
                return

            if await any_visible(self.page, get_selectors_for("entry_denied")):
                logger.error("❌ Entry denied by the host")
                await self.browser.save_debug_snapshot("entry_denied")
                raise AccessDeniedError("Entry to the meeting was denied")

            in_lobby = await any_visible(self.page, get_selectors_for("waiting_lobby")) is not None

            if loop.time() - last_status_log >= 30:
                elapsed = int(loop.time() - start)
                if in_lobby:
                    logger.info(f"⏳ Still waiting in lobby... ({elapsed}s elapsed)")
                else:
                    logger.info(f"⏳ Waiting for meeting admission... ({elapsed}s elapsed)")
                last_status_log = loop.time()

            await asyncio.sleep(ADMISSION_POLL_SECONDS)

        await self.browser.save_debug_snapshot("admission_timeout")
        if in_lobby:
            raise AccessDeniedError(f"Not admitted within {timeout:g}s")
        logger.warning(f"⚠️ No admission indicator after {timeout:g}s; continuing")

    async def is_in_meeting(self) -> bool:
        """
        Liveness check used while recording.

        Returns:
            False once the page is closed, shows a meeting-ended message,
            or has lost every in-meeting indicator.
        """
        page = self.page
        if page is None or page.is_closed():
            return False
        if await any_visible(page, get_selectors_for("meeting_ended")):
            logger.info("Meeting end message detected")
            return False
        return await any_present(page, get_selectors_for("in_meeting")) is not None

    async def save_debug_snapshot(self, step_name: str) -> None:
        await self.browser.save_debug_snapshot(step_name)

    async def close(self) -> None:
        """Close the browser."""
        await self.browser.close()
        self.page = None
