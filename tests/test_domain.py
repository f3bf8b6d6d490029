"""Tests for domain directive resolution and domain option matching."""

import asyncio

import pytest

from autosignin_core.config import EngineSettings
from autosignin_core.credential_entry import CredentialEntryEngine
from autosignin_core.domain import DomainFieldResolver, choose_option, is_placeholder, select_domain
from autosignin_core.exceptions import CredentialEntryError
from autosignin_core.models import DomainDirective, FormElements, LoginPageConfiguration
from autosignin_core.page_configs import ConfigurationSet

from mocks.fake_page import FakeElement, FakePage

URL = "https://intranet.example.com/login"
SETTINGS = EngineSettings(poll_interval=0.01, deferred_domain_timeout=0.05,
                          typing_min_delay_ms=0, typing_max_delay_ms=0, post_entry_delay_ms=0)

OPTIONS = [
    {"value": "", "text": "-- choose --"},
    {"value": "x", "text": "Select a domain"},
    {"value": "CORP", "text": "Corporate Network"},
    {"value": "lab", "text": "LAB"},
    {"value": "EU-WEST", "text": "Europe West"},
]


@pytest.fixture
def resolver():
    return DomainFieldResolver(SETTINGS)


class TestDirective:

    @pytest.mark.parametrize("domain", [None, "", "   ", "none", "NONE", " None "])
    def test_skip(self, resolver, domain):
        assert resolver.initial_directive(domain) is DomainDirective.SKIP

    def test_present(self, resolver):
        assert resolver.initial_directive("CORP") is DomainDirective.PRESENT

    def test_custom_sentinel(self):
        resolver = DomainFieldResolver(EngineSettings(domain_skip_sentinel="skip"))
        assert resolver.initial_directive("skip") is DomainDirective.SKIP
        assert resolver.initial_directive("none") is DomainDirective.PRESENT

    def test_refine(self, resolver):
        with_domain = FormElements()
        with_domain.set("domain", object())
        assert resolver.refine(DomainDirective.PRESENT, with_domain) is DomainDirective.PRESENT
        assert resolver.refine(DomainDirective.PRESENT, FormElements()) is DomainDirective.DEFERRED_UNTIL_AFTER_PASSWORD

    def test_refine_skip_drops_detected_domain(self, resolver):
        elements = FormElements()
        elements.set("domain", object())
        assert resolver.refine(DomainDirective.SKIP, elements) is DomainDirective.SKIP
        assert elements.domain is None


class TestOptionMatching:

    def test_placeholders(self):
        assert is_placeholder(OPTIONS[0])
        assert is_placeholder(OPTIONS[1])
        assert not is_placeholder(OPTIONS[2])

    def test_exact_value(self):
        assert choose_option(OPTIONS, "CORP")["value"] == "CORP"

    def test_case_insensitive_text(self):
        assert choose_option(OPTIONS, "lab")["value"] == "lab"
        assert choose_option(OPTIONS, "europe west")["value"] == "EU-WEST"

    def test_substring(self):
        assert choose_option(OPTIONS, "corporate")["value"] == "CORP"
        assert choose_option(OPTIONS, "eu-west-1")["value"] == "EU-WEST"

    def test_placeholder_never_chosen(self):
        assert choose_option(OPTIONS, "choose") is None
        assert choose_option(OPTIONS, "select") is None

    async def test_select_domain_without_match(self):
        select = FakeElement("select", options=OPTIONS)
        with pytest.raises(CredentialEntryError) as exc_info:
            await select_domain(select, "APAC")
        assert exc_info.value.field == "domain"
        assert not exc_info.value.recoverable
        assert select.selected is None


class TestDeferredDomain:

    def test_configured_selectors_come_first(self, resolver):
        configs = ConfigurationSet([LoginPageConfiguration(url_pattern="intranet", domain_selectors=("#realm",))])
        selectors = resolver.deferred_selectors(URL, configs)
        assert selectors[0] == "#realm"
        assert "select[name='domain']" in selectors

    async def test_field_that_appears_late(self):
        resolver = DomainFieldResolver(EngineSettings(poll_interval=0.01, deferred_domain_timeout=1.0))
        page = FakePage(URL)
        late = FakeElement("select", options=OPTIONS)

        async def reveal():
            await asyncio.sleep(0.03)
            page.add("select[name='domain']", late)

        task = asyncio.get_running_loop().create_task(reveal())
        elements = FormElements()
        found = await resolver.locate_deferred(page, URL, ConfigurationSet.empty(), elements)
        await task

        assert found is late
        assert elements.domain is late

    async def test_field_that_never_appears(self, resolver):
        page = FakePage(URL)
        entry = CredentialEntryEngine(SETTINGS)
        elements = FormElements()

        ok = await resolver.populate_deferred(page, URL, ConfigurationSet.empty(), elements, "CORP", entry)

        assert ok is True
        assert elements.domain is None

    async def test_populates_late_select(self, resolver):
        page = FakePage(URL)
        late = page.add("select[name='domain']", FakeElement("select", options=OPTIONS))
        entry = CredentialEntryEngine(SETTINGS)

        ok = await resolver.populate_deferred(page, URL, ConfigurationSet.empty(), FormElements(), "corp", entry)

        assert ok
        assert late.selected == "CORP"
