"""
Domain field handling.

Decides whether a login attempt touches a domain field at all, and if so
whether it is expected up front or only after the password has been typed
(some forms reveal the domain selector late).

    initial_directive("none")   -> SKIP
    initial_directive("CORP")   -> PRESENT
    refine(PRESENT, no domain)  -> DEFERRED_UNTIL_AFTER_PASSWORD
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from . import driver
from .config import EngineSettings
from .detection.selectors import COMMON_SELECTORS
from .exceptions import CredentialEntryError
from .models import DomainDirective, FormElements
from .page_configs import ConfigurationSet
from .timing import Deadline

logger = logging.getLogger(__name__)

OPTIONS_SCRIPT = "el => Array.from(el.options).map(o => ({value: o.value, text: o.text}))"

PLACEHOLDER_PREFIXES = ("select", "choose", "please select", "--")


def is_placeholder(option: Dict[str, str]) -> bool:
    value = (option.get("value") or "").strip()
    text = (option.get("text") or "").strip().lower()
    if not value:
        return True
    return any(text.startswith(p) for p in PLACEHOLDER_PREFIXES)


def choose_option(options: Sequence[Dict[str, str]], domain: str) -> Optional[Dict[str, str]]:
    """
    Pick the option for `domain`; first hit wins:
    exact value, case-insensitive exact text, substring either way.
    Placeholder options are never picked.
    """
    candidates = [o for o in options if not is_placeholder(o)]
    wanted = domain.strip()
    lowered = wanted.lower()

    for option in candidates:
        if option.get("value") == wanted:
            return option
    for option in candidates:
        if (option.get("text") or "").strip().lower() == lowered:
            return option
    for option in candidates:
        text = (option.get("text") or "").strip().lower()
        value = (option.get("value") or "").strip().lower()
        if lowered in text or (text and text in lowered) or lowered in value or (value and value in lowered):
            return option
    return None


async def select_domain(element, domain: str) -> str:
    """
    Select the option matching `domain` in a <select> element.

    Returns the chosen option value. Raises a non-recoverable
    CredentialEntryError when no option matches.
    """
    options: List[Dict[str, str]] = await element.evaluate(OPTIONS_SCRIPT) or []
    option = choose_option(options, domain)
    if option is None:
        available = [o.get("text") for o in options if not is_placeholder(o)]
        raise CredentialEntryError(
            f"No domain option matches {domain!r} (available: {available})",
            field="domain",
            phase="entry",
            recoverable=False,
        )
    await element.select_option(value=option["value"])
    logger.debug(f"Selected domain option {option['value']!r}")
    return option["value"]


class DomainFieldResolver:
    """Resolves the domain directive and runs the deferred domain pass."""

    def __init__(self, settings: Optional[EngineSettings] = None, run_logger=None):
        self.settings = settings or EngineSettings()
        self.run_logger = run_logger

    def initial_directive(self, domain: Optional[str]) -> DomainDirective:
        sentinel = (self.settings.domain_skip_sentinel or "none").strip().lower()
        if domain is None or not domain.strip() or domain.strip().lower() == sentinel:
            return DomainDirective.SKIP
        return DomainDirective.PRESENT

    def refine(self, directive: DomainDirective, elements: Optional[FormElements]) -> DomainDirective:
        if directive is DomainDirective.SKIP:
            if elements is not None and elements.domain is not None:
                elements.set("domain", None)
            return directive
        if directive is DomainDirective.PRESENT and (elements is None or elements.domain is None):
            logger.info("Domain field not found with the form; deferring until after password entry")
            return DomainDirective.DEFERRED_UNTIL_AFTER_PASSWORD
        return directive

    def deferred_selectors(self, url: str, configs: Optional[ConfigurationSet]) -> List[str]:
        """Matching configurations' domain selectors first, then the generic ones."""
        selectors = list(configs.selectors_for(url, "domain")) if configs else []
        for selector in COMMON_SELECTORS["domain"]:
            if selector not in selectors:
                selectors.append(selector)
        return selectors

    async def locate_deferred(
        self,
        page,
        url: str,
        configs: Optional[ConfigurationSet],
        elements: FormElements,
        deadline: Optional[Deadline] = None,
    ) -> Optional[Any]:
        """
        Poll for a domain field that appears after password entry.

        Returns the element or None when it never appears within the
        deferred window; a missing domain field does not fail the attempt.
        """
        deadline = deadline or Deadline(self.settings.deferred_domain_timeout, phase="entry")
        selectors = self.deferred_selectors(url, configs)
        taken = elements.elements()
        while True:
            element, selector = await driver.first_usable(page, selectors, taken)
            if element is not None:
                logger.info(f"Deferred domain field appeared ({selector})")
                elements.set("domain", element, elements.method, selector)
                return element
            if deadline.expired:
                break
            try:
                await deadline.sleep(self.settings.poll_interval)
            except TimeoutError:
                break
        logger.warning("Deferred domain field never appeared; continuing without it")
        if self.run_logger:
            self.run_logger.log_text("⚠️ Deferred domain field never appeared; continuing without it")
        return None

    async def populate_deferred(
        self,
        page,
        url: str,
        configs: Optional[ConfigurationSet],
        elements: FormElements,
        domain: str,
        entry,
        *,
        humanized: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Locate and populate the late domain field; True when nothing was left undone."""
        window = Deadline(self.settings.deferred_domain_timeout, phase="entry")
        if deadline is not None:
            window = deadline.child(self.settings.deferred_domain_timeout, phase="entry")
        element = await self.locate_deferred(page, url, configs, elements, window)
        if element is None:
            return True
        return await entry.enter_domain(
            element, domain, DomainDirective.DEFERRED_UNTIL_AFTER_PASSWORD,
            humanized=humanized, deadline=deadline,
        )
