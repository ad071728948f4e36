"""Tests for probe chains, against a minimal fake Playwright page."""
from __future__ import annotations

import asyncio

import pytest

from meet_recorder.core.exceptions import AutomationStepFailure
from meet_recorder.meeting_handler.probes import (
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

from playwright_fakes import FakeElement, FakePage


def run(coro):
    return asyncio.run(coro)


class TestProbeChain:
    """Ordered fallback behaviour."""

    def test_first_visible_match_wins(self):
        second = FakeElement()
        page = FakePage({"#b": [second], "#c": [FakeElement()]})
        chain = ProbeChain("join", [SelectorClickProbe("#a"), SelectorClickProbe("#b"), SelectorClickProbe("#c")], settle_seconds=0)

        assert run(chain.run(page)) == "#b"
        assert second.clicks == 1
        assert page.elements["#c"][0].clicks == 0

    def test_hidden_elements_skipped(self):
        page = FakePage({"#a": [FakeElement(visible=False)], "#b": [FakeElement()]})
        chain = ProbeChain("join", [SelectorClickProbe("#a"), SelectorClickProbe("#b")], settle_seconds=0)
        assert run(chain.run(page)) == "#b"

    def test_exhaustion_raises_with_tried_list(self):
        chain = ProbeChain("camera_off", [SelectorClickProbe("#a"), RoleButtonProbe("Turn off")], settle_seconds=0)
        with pytest.raises(AutomationStepFailure) as exc_info:
            run(chain.run(FakePage()))
        assert exc_info.value.step == "camera_off"
        assert exc_info.value.tried == ["#a", "button 'Turn off'"]

    def test_attempt_step_swallows_exhaustion(self):
        chain = ProbeChain("camera_off", [SelectorClickProbe("#a")], settle_seconds=0)
        assert run(attempt_step(chain, FakePage())) is None

    def test_playwright_error_moves_to_next_probe(self):
        page = FakePage({"#ok": [FakeElement()]})
        chain = ProbeChain("join", [SelectorClickProbe("broken"), SelectorClickProbe("#ok")], settle_seconds=0)
        assert run(chain.run(page)) == "#ok"

    def test_force_click_fallback(self):
        element = FakeElement(fail_click=True)
        page = FakePage({"#join": [element]})
        run(ProbeChain("join", [SelectorClickProbe("#join")], settle_seconds=0).run(page))
        assert element.clicks == 1
        assert element.forced is True

    def test_no_force_fallback_tries_next(self):
        page = FakePage({"#a": [FakeElement(fail_click=True)], "#b": [FakeElement()]})
        chain = ProbeChain(
            "next",
            [SelectorClickProbe("#a", force_fallback=False), SelectorClickProbe("#b")],
            settle_seconds=0,
        )
        assert run(chain.run(page)) == "#b"


class TestProbes:
    """Individual probe kinds."""

    def test_role_button(self):
        button = FakeElement()
        page = FakePage(buttons={"Join now": button})
        assert run(RoleButtonProbe("Join now").attempt(page)) is True
        assert button.clicks == 1
        assert run(RoleButtonProbe("Ask to join").attempt(page)) is False

    def test_text_search_matches_aria_label(self):
        target = FakeElement(text="", label="Ask to join")
        page = FakePage({'button, div[role="button"]': [FakeElement(text="Settings"), target]})
        assert run(TextSearchClickProbe(["Join"]).attempt(page)) is True
        assert target.clicks == 1

    def test_text_search_skips_hidden_matches(self):
        page = FakePage({'button, div[role="button"]': [FakeElement(text="Join", visible=False)]})
        assert run(TextSearchClickProbe(["join"]).attempt(page)) is False

    def test_fill(self):
        field = FakeElement()
        page = FakePage({"input": [field]})
        assert run(SelectorFillProbe("input", "Recorder Bot").attempt(page)) is True
        assert field.filled == "Recorder Bot"

    def test_key_press_with_focus(self):
        page = FakePage()
        assert run(KeyPressProbe("Enter", focus_selector="#pwd").attempt(page)) is True
        assert page.focused == "#pwd"
        assert page.keyboard.pressed == ["Enter"]

    def test_keyboard_fallback_after_selectors(self):
        page = FakePage()
        chain = ProbeChain("mic_off", [SelectorClickProbe("#mic"), KeyPressProbe("Control+d")], settle_seconds=0)
        assert run(chain.run(page)) == "key Control+d"
        assert page.keyboard.pressed == ["Control+d"]


class TestVisibilityHelpers:

    def test_any_visible(self):
        page = FakePage({"#hidden": [FakeElement(visible=False)], "#shown": [FakeElement()]})
        assert run(any_visible(page, ["#none", "#hidden", "#shown"])) == "#shown"
        assert run(any_visible(page, ["#none", "broken"])) is None

    def test_any_present_ignores_visibility(self):
        page = FakePage({"#hidden": [FakeElement(visible=False)]})
        assert run(any_present(page, ["#none", "#hidden"])) == "#hidden"
        assert run(any_present(page, ["broken"])) is None
