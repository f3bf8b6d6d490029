"""
Tests for the progressive (step-by-step reveal) login form monitor.
"""

import asyncio

import pytest

from autosignin_core.config import EngineSettings
from autosignin_core.credential_entry import CredentialEntryEngine
from autosignin_core.detection import FormDetector
from autosignin_core.exceptions import LoginCancelledError
from autosignin_core.models import Credentials, DomainDirective, FormElements
from autosignin_core.progressive import MonitorState, ProgressiveFieldMonitor
from autosignin_core.timing import Deadline

from mocks.fake_page import FakeElement, FakePage

URL = "https://accounts.example.com/signin"
SETTINGS = EngineSettings(
    poll_interval=0.01,
    progressive_stage_timeout=0.2,
    progressive_max_timeout=1.0,
    typing_min_delay_ms=0,
    typing_max_delay_ms=0,
    post_entry_delay_ms=0,
)
CREDS = Credentials("alice", "s3cret", "CORP")


def reveal_when(element: FakeElement, value: str, page: FakePage, selector: str, revealed: FakeElement):
    """Add `revealed` to the page once `element` holds `value`."""

    def on_input(el):
        if el.value == value:
            page.add(selector, revealed)

    element.on_input = on_input
    return revealed


def stepwise_page(with_domain=False, reveal_password=True):
    page = FakePage(URL)
    username = page.add("input[name='username']", FakeElement(name="username"))
    password = FakeElement(type="password")
    if reveal_password:
        reveal_when(username, CREDS.username, page, "input[type='password']", password)
    submit = FakeElement("button", type="submit")
    domain = FakeElement("select", name="domain", options=[
        {"value": "", "text": "Select domain"},
        {"value": "CORP", "text": "Corporate"},
    ])
    if with_domain:
        reveal_when(password, CREDS.password, page, "select[name='domain']", domain)
        page.add("button[type='submit']", submit)
    else:
        reveal_when(password, CREDS.password, page, "button[type='submit']", submit)
    return page, {"username": username, "password": password, "submit": submit, "domain": domain}


@pytest.fixture
def monitor():
    detector = FormDetector(SETTINGS)
    return ProgressiveFieldMonitor(detector, CredentialEntryEngine(SETTINGS), SETTINGS)


class TestProgressiveFieldMonitor:

    async def test_fields_revealed_one_at_a_time(self, monitor):
        page, fields = stepwise_page()

        result = await monitor.run(page, URL, None, CREDS, DomainDirective.SKIP)

        assert result.state is MonitorState.COMPLETE
        assert result.complete
        assert result.elements.is_valid
        assert result.elements.submit is fields["submit"]
        assert result.populated == {"username", "password"}
        assert fields["username"].typed() == "alice"
        assert fields["password"].typed() == "s3cret"
        assert [state for state, _ in result.transitions] == [
            "awaiting_username", "awaiting_password", "awaiting_domain_or_submit", "complete",
        ]

    async def test_domain_stage(self, monitor):
        page, fields = stepwise_page(with_domain=True)

        result = await monitor.run(page, URL, None, CREDS, DomainDirective.PRESENT)

        assert result.state is MonitorState.COMPLETE
        assert result.populated == {"username", "password", "domain"}
        assert fields["domain"].selected == "CORP"
        assert result.elements.submit is fields["submit"]

    async def test_skip_ignores_domain_stage(self, monitor):
        page, fields = stepwise_page()
        page.add("select[name='domain']", fields["domain"])

        result = await monitor.run(page, URL, None, CREDS, DomainDirective.SKIP)

        assert result.complete
        assert "domain" not in result.populated
        assert fields["domain"].interactions() == []

    async def test_password_never_appears(self, monitor):
        page, fields = stepwise_page(reveal_password=False)

        result = await monitor.run(page, URL, None, CREDS, DomainDirective.SKIP)

        assert result.state is MonitorState.FAILED_TIMEOUT
        assert not result.elements.is_valid
        assert result.populated == {"username"}
        assert "awaiting_password" in result.diagnostic
        assert result.transitions[-1][0] == "failed_timeout"

    async def test_initial_fields_are_reused(self, monitor):
        page, fields = stepwise_page()
        initial = FormElements()
        initial.set("username", fields["username"])

        result = await monitor.run(page, URL, None, CREDS, DomainDirective.SKIP, initial=initial)

        assert result.complete
        assert result.elements is initial
        assert fields["username"].typed() == "alice"

    async def test_cancellation_propagates(self, monitor):
        stop = asyncio.Event()
        stop.set()
        page, _ = stepwise_page()

        with pytest.raises(LoginCancelledError):
            await monitor.run(page, URL, None, CREDS, DomainDirective.SKIP,
                              deadline=Deadline(5.0, phase="progressive", cancel_event=stop))

    def test_overall_timeout_is_capped(self, monitor):
        assert monitor.overall_timeout() == pytest.approx(0.6)
        capped = ProgressiveFieldMonitor(monitor.detector, monitor.entry,
                                         EngineSettings(progressive_stage_timeout=10, progressive_max_timeout=20))
        assert capped.overall_timeout() == 20
