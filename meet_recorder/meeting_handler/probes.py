"""
Ordered fallback probes for brittle UI steps.

Each probe is one independent way to perform a step (a CSS selector, a
role-named button, a text search, a keyboard shortcut). A ``ProbeChain``
tries its probes in order and stops at the first that reports success.

What exhaustion means is up to the caller: ``ProbeChain.run`` raises
``AutomationStepFailure``, ``attempt_step`` logs it and returns None.
"""

from __future__ import annotations

import asyncio
from typing import Iterable, List, Optional, Sequence

from playwright.async_api import Page, Error as PlaywrightError

from meet_recorder.config import get_logger
from meet_recorder.core.exceptions import AutomationStepFailure

logger = get_logger("probes")


class Probe:
    """One strategy for performing a UI step."""

    name = "probe"

    async def attempt(self, page: Page) -> bool:
        """Return True if the step was performed."""
        raise NotImplementedError


class SelectorClickProbe(Probe):
    """Click the first visible element matching a selector."""

    def __init__(self, selector: str, force_fallback: bool = True):
        self.selector = selector
        self.force_fallback = force_fallback
        self.name = selector

    async def attempt(self, page: Page) -> bool:
        element = page.locator(self.selector).first
        if await element.count() == 0 or not await element.is_visible():
            return False
        try:
            await element.click(timeout=5000)
        except PlaywrightError as e:
            if not self.force_fallback:
                raise
            logger.warning(f"Normal click failed for {self.selector}: {e}. Trying force click...")
            await element.click(force=True)
        return True


class RoleButtonProbe(Probe):
    """Click a button found by its accessible name."""

    def __init__(self, button_name: str, exact: bool = True):
        self.button_name = button_name
        self.exact = exact
        self.name = f"button '{button_name}'"

    async def attempt(self, page: Page) -> bool:
        button = page.get_by_role("button", name=self.button_name, exact=self.exact).first
        if await button.count() == 0 or not await button.is_visible():
            return False
        try:
            await button.click(timeout=5000)
        except PlaywrightError as e:
            logger.warning(f"Normal click failed for '{self.button_name}': {e}. Trying force click...")
            await button.click(force=True)
        return True


class TextSearchClickProbe(Probe):
    """Click the first button whose text or aria-label contains a keyword."""

    def __init__(self, keywords: Sequence[str], selector: str = 'button, div[role="button"]'):
        self.keywords = [k.lower() for k in keywords]
        self.selector = selector
        self.name = f"text search {self.keywords}"

    async def attempt(self, page: Page) -> bool:
        buttons = page.locator(self.selector)
        count = await buttons.count()
        for i in range(count):
            button = buttons.nth(i)
            text = ((await button.text_content()) or "").lower()
            label = ((await button.get_attribute("aria-label")) or "").lower()
            if any(k in text or k in label for k in self.keywords):
                if not await button.is_visible():
                    continue
                await button.click()
                logger.info(f"Clicked via text search: {text.strip()!r} / {label!r}")
                return True
        return False


class SelectorFillProbe(Probe):
    """Fill the first visible input matching a selector."""

    def __init__(self, selector: str, value: str):
        self.selector = selector
        self.value = value
        self.name = selector

    async def attempt(self, page: Page) -> bool:
        element = page.locator(self.selector).first
        if await element.count() == 0 or not await element.is_visible():
            return False
        await element.fill(self.value)
        return True


class KeyPressProbe(Probe):
    """Press a keyboard shortcut, optionally after focusing a selector."""

    def __init__(self, key: str, focus_selector: Optional[str] = None):
        self.key = key
        self.focus_selector = focus_selector
        self.name = f"key {key}"

    async def attempt(self, page: Page) -> bool:
        if self.focus_selector:
            await page.focus(self.focus_selector)
        await page.keyboard.press(self.key)
        return True


class ProbeChain:
    """An ordered list of probes for one named step."""

    def __init__(self, step: str, probes: Iterable[Probe], settle_seconds: float = 0.5):
        self.step = step
        self.probes: List[Probe] = list(probes)
        self.settle_seconds = settle_seconds

    async def run(self, page: Page) -> str:
        """
        Try each probe in turn.

        Returns:
            Name of the probe that succeeded.

        Raises:
            AutomationStepFailure: If every probe reported not-found.
        """
        tried = []
        for probe in self.probes:
            tried.append(probe.name)
            try:
                found = await probe.attempt(page)
            except PlaywrightError as e:
                logger.debug(f"[{self.step}] probe {probe.name} failed: {e}")
                continue
            if found:
                logger.info(f"✅ [{self.step}] done via {probe.name}")
                if self.settle_seconds:
                    await asyncio.sleep(self.settle_seconds)
                return probe.name
        raise AutomationStepFailure(self.step, tried)


async def attempt_step(chain: ProbeChain, page: Page) -> Optional[str]:
    """Run ``chain``; on exhaustion log a warning and return None."""
    try:
        return await chain.run(page)
    except AutomationStepFailure as e:
        logger.warning(f"⚠️ {e.message}; continuing")
        return None


async def any_visible(page: Page, selectors: Iterable[str]) -> Optional[str]:
    """Return the first selector with a visible match, if any."""
    for selector in selectors:
        try:
            element = page.locator(selector).first
            if await element.count() > 0 and await element.is_visible():
                return selector
        except PlaywrightError:
            continue
    return None


async def any_present(page: Page, selectors: Iterable[str]) -> Optional[str]:
    """Return the first selector matching at least one element, visible or not."""
    for selector in selectors:
        try:
            if await page.locator(selector).count() > 0:
                return selector
        except PlaywrightError:
            continue
    return None
