"""Tests for credential entry and form submission."""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError

from autosignin_core.config import EngineSettings
from autosignin_core.credential_entry import CredentialEntryEngine
from autosignin_core.exceptions import CredentialEntryError, DriverError, LoginCancelledError
from autosignin_core.models import DomainDirective, FormElements
from autosignin_core.timing import Deadline

from mocks.fake_page import FakeElement, login_page

SETTINGS = EngineSettings(typing_min_delay_ms=0, typing_max_delay_ms=0, post_entry_delay_ms=0)


@pytest.fixture
def entry():
    return CredentialEntryEngine(SETTINGS)


def form(fields) -> FormElements:
    elements = FormElements()
    for name, element in fields.items():
        if element is not None:
            elements.set(name, element)
    return elements


class TestFillField:

    async def test_direct_fill_clears_first(self, entry):
        field = FakeElement()
        field.value = "stale"
        assert await entry.fill_field(field, "alice", field_name="username")
        assert field.actions == [("fill", ""), ("fill", "alice")]
        assert field.value == "alice"

    async def test_humanized_types_each_character(self, entry):
        field = FakeElement()
        assert await entry.fill_field(field, "s3cr3t", field_name="password", humanized=True)
        assert field.actions[0] == ("fill", "")
        assert field.typed() == "s3cr3t"
        assert [a for a in field.actions if a[0] == "type"] == [("type", c) for c in "s3cr3t"]
        assert field.actions[-1] == ("dispatch",)

    async def test_not_interactable_is_recoverable(self, entry):
        field = FakeElement().fail("fill", PlaywrightError("Element is not visible"))
        assert await entry.fill_field(field, "alice") is False

    async def test_detached_is_recoverable(self, entry):
        field = FakeElement().fail("type", PlaywrightError("Element is not attached to the DOM"))
        assert await entry.fill_field(field, "alice", humanized=True) is False

    async def test_closed_page_is_fatal(self, entry):
        field = FakeElement().fail("fill", PlaywrightError("Target page, context or browser has been closed"))
        with pytest.raises(DriverError):
            await entry.fill_field(field, "alice")

    async def test_other_driver_errors_raise(self, entry):
        field = FakeElement().fail("fill", PlaywrightError("Cannot type into a date input"))
        with pytest.raises(CredentialEntryError) as exc_info:
            await entry.fill_field(field, "alice", field_name="username")
        assert exc_info.value.field == "username"
        assert not exc_info.value.recoverable

    async def test_cancellation_clears_partial_input(self, entry):
        stop = asyncio.Event()
        field = FakeElement()

        def cancel_after_two(element):
            if len(element.value) == 2:
                stop.set()

        field.on_input = cancel_after_two

        with pytest.raises(LoginCancelledError):
            await entry.fill_field(field, "hunter2", humanized=True,
                                   deadline=Deadline(5.0, phase="entry", cancel_event=stop))

        assert field.typed() == "hu"
        assert field.actions[-1] == ("fill", "")
        assert field.value == ""


class TestEnter:

    async def test_enters_username_password_and_domain(self, entry):
        page, fields = login_page(with_domain=True)

        ok = await entry.enter(page, form(fields), "alice", "s3cret", DomainDirective.PRESENT, "corp")

        assert ok
        assert fields["username"].value == "alice"
        assert fields["password"].value == "s3cret"
        assert fields["domain"].selected == "CORP"

    async def test_skip_never_touches_domain(self, entry):
        page, fields = login_page(with_domain=True)

        ok = await entry.enter(page, form(fields), "alice", "s3cret", DomainDirective.SKIP, "CORP")

        assert ok
        assert fields["domain"].interactions() == []
        assert await entry.enter_domain(fields["domain"], "CORP", DomainDirective.SKIP)
        assert fields["domain"].interactions() == []

    async def test_text_domain_field_is_filled(self, entry):
        domain = FakeElement(name="domain")
        assert await entry.enter_domain(domain, "CORP", DomainDirective.PRESENT)
        assert domain.value == "CORP"

    async def test_skip_fields_are_left_alone(self, entry):
        page, fields = login_page()
        ok = await entry.enter(page, form(fields), "alice", "s3cret", DomainDirective.SKIP,
                               skip_fields={"username"})
        assert ok
        assert fields["username"].interactions() == []
        assert fields["password"].value == "s3cret"

    async def test_recoverable_failure_stops_entry(self, entry):
        page, fields = login_page()
        fields["username"].fail("fill", PlaywrightError("Element is not enabled"))
        ok = await entry.enter(page, form(fields), "alice", "s3cret", DomainDirective.SKIP)
        assert ok is False
        assert fields["password"].interactions() == []


class TestSubmit:

    async def test_click(self, entry):
        page, fields = login_page()
        assert await entry.submit(page, form(fields)) == "click"
        assert fields["submit"].actions == [("click",)]

    async def test_enter_without_submit_control(self, entry):
        page, fields = login_page(with_submit=False)
        assert await entry.submit(page, form(fields)) == "enter"
        assert fields["password"].actions == [("press", "Enter")]

    async def test_enter_when_click_fails(self, entry):
        page, fields = login_page()
        fields["submit"].fail("click", PlaywrightError("<div> intercepts pointer events"))
        assert await entry.submit(page, form(fields)) == "enter"

    async def test_crash_during_click_is_fatal(self, entry):
        page, fields = login_page()
        fields["submit"].fail("click", PlaywrightError("Browser has disconnected"))
        with pytest.raises(DriverError):
            await entry.submit(page, form(fields))
