"""
Google account sign-in automation.

Drives the Google sign-in pages with the session's credential pair before
the bot joins the meeting. Unlike the join steps, failures here are fatal
to the session.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, Optional
from urllib.parse import quote, urlparse

from playwright.async_api import Page

from meet_recorder.config import AuthSettings, get_logger
from meet_recorder.core.exceptions import AuthenticationError, VerificationTimeoutError
from meet_recorder.domain.models import AuthMethod, GoogleCredentials
from .browser import MeetBrowser
from .meet_selectors import (
    AUTHENTICATED_URL_MARKERS,
    CHALLENGE_URL_MARKERS,
    NEXT_TEXT_KEYWORDS,
    SIGN_IN_PROMPT_TEXT,
    SIGNIN_PAGE_URL_MARKERS,
    get_selectors_for,
)
from .probes import (
    KeyPressProbe,
    ProbeChain,
    SelectorClickProbe,
    TextSearchClickProbe,
    any_visible,
    attempt_step,
)

logger = get_logger("authenticator")


def classify_auth_url(url: str) -> Optional[bool]:
    """
    Classify a Google URL by sign-in state.

    Returns:
        False for sign-in pages, True for pages only reachable when signed
        in, None when the URL says nothing either way.
    """
    if any(marker in url for marker in SIGNIN_PAGE_URL_MARKERS):
        return False
    if any(marker in url for marker in AUTHENTICATED_URL_MARKERS):
        return True
    return None


def is_challenge_url(url: str) -> bool:
    """True if ``url`` is a secondary verification page."""
    return any(marker in url for marker in CHALLENGE_URL_MARKERS)


def is_meeting_url(url: str, meeting_hosts: Iterable[str]) -> bool:
    host = (urlparse(url).hostname or "").lower()
    return any(host == h.lower() or host.endswith("." + h.lower()) for h in meeting_hosts)


class GoogleAuthenticator:
    """Signs the session's browser into a Google account."""

    def __init__(
        self,
        page: Page,
        browser: MeetBrowser,
        meeting_hosts: Iterable[str],
        settings: Optional[AuthSettings] = None,
    ):
        self.page = page
        self.browser = browser
        self.meeting_hosts = list(meeting_hosts)
        self._settings = settings or AuthSettings()

    async def authenticate(self, credentials: GoogleCredentials, meet_url: str) -> AuthMethod:
        """
        Make sure the browser is signed in, then return to the meeting.

        Returns:
            ``ALREADY_AUTHENTICATED`` if a session already existed,
            ``CREDENTIALS`` after a successful sign-in.

        Raises:
            AuthenticationError: If a credential field is not found in time
                or Google rejects the credentials.
            VerificationTimeoutError: If a verification challenge is not
                completed within the verification timeout.
        """
        if await self.is_signed_in():
            logger.info("✅ Browser already signed in; skipping credential entry")
            await self.browser.save_debug_snapshot("auth_already_signed_in")
            return AuthMethod.ALREADY_AUTHENTICATED

        logger.info(f"🔐 Signing in as {credentials.email}...")
        signin_url = f"{self._settings.signin_url}&continue={quote(meet_url, safe='')}"
        await self.page.goto(signin_url, wait_until="domcontentloaded")
        await self.browser.save_debug_snapshot("auth_signin_page")

        email_selector = await self._wait_for_field("email_input", "Email")
        await self.page.locator(email_selector).first.fill(credentials.email)
        await self.browser.save_debug_snapshot("auth_email_entered")
        await self._click_next("email", email_selector)

        password_selector = await self._wait_for_field("password_input", "Password")
        await self.page.locator(password_selector).first.fill(credentials.password)
        await self.browser.save_debug_snapshot("auth_password_entered")
        await self._click_next("password", password_selector)

        await self._await_sign_in_result()
        await self.browser.save_debug_snapshot("auth_complete")

        if not is_meeting_url(self.page.url, self.meeting_hosts):
            logger.info("Returning to the meeting after sign-in...")
            await self.page.goto(meet_url, wait_until="domcontentloaded")

        logger.info("✅ Google sign-in complete")
        return AuthMethod.CREDENTIALS

    async def is_signed_in(self) -> bool:
        """True if the current page shows an account and no sign-in prompt."""
        if classify_auth_url(self.page.url) is False:
            return False
        if await self.page.get_by_text(SIGN_IN_PROMPT_TEXT).count() > 0:
            return False
        return await any_visible(self.page, get_selectors_for("account_avatar")) is not None

    async def _wait_for_field(self, field: str, label: str) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.credential_step_timeout_seconds

        while True:
            selector = await any_visible(self.page, get_selectors_for(field))
            if selector:
                return selector
            if await any_visible(self.page, get_selectors_for("wrong_password")):
                await self.browser.save_debug_snapshot(f"auth_{field}_rejected")
                raise AuthenticationError("Google rejected the account or password")
            if loop.time() >= deadline:
                await self.browser.save_debug_snapshot(f"auth_{field}_missing")
                raise AuthenticationError(
                    f"{label} field not found within {self._settings.credential_step_timeout_seconds:g}s"
                )
            await asyncio.sleep(0.5)

    async def _click_next(self, context: str, input_selector: str) -> None:
        probes = [SelectorClickProbe(sel, force_fallback=False) for sel in get_selectors_for("next_button")]
        probes.append(TextSearchClickProbe(NEXT_TEXT_KEYWORDS))
        # Final fallback - press Enter in the field
        probes.append(KeyPressProbe("Enter", focus_selector=input_selector))
        await attempt_step(ProbeChain(f"{context}_next", probes, settle_seconds=1.0), self.page)

    async def _await_sign_in_result(self) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._settings.auth_timeout_seconds

        while True:
            url = self.page.url
            if classify_auth_url(url) or is_meeting_url(url, self.meeting_hosts):
                return
            if await any_visible(self.page, get_selectors_for("wrong_password")):
                await self.browser.save_debug_snapshot("auth_rejected")
                raise AuthenticationError("Google rejected the account or password")
            if is_challenge_url(url) or await any_visible(self.page, get_selectors_for("verification_challenge")):
                await self._await_verification()
                return
            if loop.time() >= deadline:
                await self.browser.save_debug_snapshot("auth_timeout")
                raise AuthenticationError(
                    f"Sign-in did not complete within {self._settings.auth_timeout_seconds:g}s"
                )
            await asyncio.sleep(self._settings.poll_interval_seconds)

    async def _await_verification(self) -> None:
        timeout = self._settings.verification_timeout_seconds
        logger.warning(f"📱 Verification challenge detected; waiting up to {timeout:g}s for confirmation...")
        await self.browser.save_debug_snapshot("auth_verification_required")

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            url = self.page.url
            if classify_auth_url(url) or is_meeting_url(url, self.meeting_hosts):
                logger.info("✅ Verification completed")
                return
            await asyncio.sleep(self._settings.poll_interval_seconds)

        await self.browser.save_debug_snapshot("auth_verification_timeout")
        raise VerificationTimeoutError(f"Verification challenge not completed within {timeout:g}s")
