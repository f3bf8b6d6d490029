"""
Credential entry.

Clears and writes the located fields either directly (one `fill`) or
humanized, one keystroke at a time with a random delay between keys so that
script-driven validation sees real input. Cancellation or deadline expiry
during a keystroke loop clears the half-typed field before propagating.
"""

import logging
import random
from typing import Iterable, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from . import driver
from .config import EngineSettings
from .domain import select_domain
from .exceptions import CredentialEntryError, LoginCancelledError, PhaseTimeoutError
from .models import DomainDirective, FormElements
from .timing import Deadline

logger = logging.getLogger(__name__)

DISPATCH_EVENTS_SCRIPT = """
(el) => {
  el.dispatchEvent(new Event('input', {bubbles: true}));
  el.dispatchEvent(new Event('change', {bubbles: true}));
}
"""


class CredentialEntryEngine:
    """Writes credentials into located form fields and submits the form."""

    def __init__(self, settings: Optional[EngineSettings] = None, rng: Optional[random.Random] = None,
                 run_logger=None):
        self.settings = settings or EngineSettings()
        self.rng = rng or random.Random()
        self.run_logger = run_logger

    def _log(self, msg: str) -> None:
        if self.run_logger:
            self.run_logger.log_text(msg)

    def _keystroke_delay(self) -> float:
        low = max(0, self.settings.typing_min_delay_ms)
        high = max(low, self.settings.typing_max_delay_ms)
        return self.rng.uniform(low, high) / 1000

    def _deadline(self, deadline: Optional[Deadline]) -> Deadline:
        return deadline or Deadline(self.settings.entry_timeout, phase="entry")

    async def _clear_quietly(self, element) -> None:
        try:
            await element.fill("")
        except PlaywrightError as e:
            logger.debug(f"Could not clear field after interruption: {e}")

    def _translate(self, error: PlaywrightError, field_name: str) -> bool:
        """Return False for recoverable write failures, raise for the rest."""
        driver.raise_if_fatal(error, phase="entry")
        if (isinstance(error, PlaywrightTimeoutError) or driver.is_stale_element_error(error)
                or driver.is_not_interactable_error(error)):
            logger.warning(f"Recoverable failure writing {field_name}: {error}")
            self._log(f"⚠️ Could not write {field_name}: {error}")
            return False
        raise CredentialEntryError(
            f"Failed to write {field_name}: {error}", field=field_name, phase="entry"
        ) from error

    async def fill_field(
        self,
        element,
        value: str,
        *,
        field_name: str = "field",
        humanized: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Clear `element` and write `value`.

        Returns False on a recoverable failure (hidden, disabled, detached,
        covered); raises CredentialEntryError on anything else.
        """
        deadline = self._deadline(deadline)
        deadline.check()
        try:
            if not humanized:
                await element.fill("")
                await element.fill(value)
                return True

            await element.fill("")
            try:
                for char in value:
                    deadline.check()
                    await element.type(char)
                    await deadline.sleep(self._keystroke_delay())
            except (LoginCancelledError, PhaseTimeoutError):
                await self._clear_quietly(element)
                logger.info(f"Entry of {field_name} interrupted; field cleared")
                raise
            await element.evaluate(DISPATCH_EVENTS_SCRIPT)
            return True
        except PlaywrightError as e:
            return self._translate(e, field_name)

    async def enter_domain(
        self,
        element,
        domain: Optional[str],
        directive: DomainDirective,
        *,
        humanized: bool = False,
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """Populate a domain field; a guaranteed no-op for SKIP."""
        if directive is DomainDirective.SKIP or element is None or not domain:
            return True
        deadline = self._deadline(deadline)
        if await driver.tag_name(element) == "select":
            deadline.check()
            try:
                chosen = await select_domain(element, domain)
            except PlaywrightError as e:
                return self._translate(e, "domain")
            self._log(f"   domain: selected option {chosen!r}")
            return True
        return await self.fill_field(element, domain, field_name="domain", humanized=humanized, deadline=deadline)

    async def enter(
        self,
        page,
        elements: FormElements,
        username: str,
        password: str,
        directive: DomainDirective,
        domain: Optional[str] = None,
        *,
        humanized: bool = False,
        skip_fields: Iterable[str] = (),
        deadline: Optional[Deadline] = None,
    ) -> bool:
        """
        Write username, password and (unless SKIP) domain into `elements`.

        Fields in `skip_fields` were already populated elsewhere and are left
        untouched. Returns False when a field could not be written for a
        recoverable reason.
        """
        deadline = self._deadline(deadline)
        skip = set(skip_fields)
        post_delay = self.settings.post_entry_delay_ms / 1000
        mode = "humanized" if humanized else "direct"

        plan = [("username", username), ("password", password)]
        if directive is not DomainDirective.SKIP and domain:
            plan.append(("domain", domain))

        for field_name, value in plan:
            element = elements.get(field_name)
            if element is None or field_name in skip:
                continue
            logger.debug(f"Entering {field_name} ({mode})")
            if field_name == "domain":
                ok = await self.enter_domain(element, value, directive, humanized=humanized, deadline=deadline)
            else:
                ok = await self.fill_field(element, value, field_name=field_name, humanized=humanized,
                                           deadline=deadline)
            if not ok:
                return False
            self._log(f"✍️ Entered {field_name} ({mode})")
            if post_delay:
                await deadline.sleep(post_delay)
        return True

    async def submit(self, page, elements: FormElements) -> str:
        """
        Submit the form: click the submit control, or press Enter in the
        password field when there is none (or it cannot be clicked).

        Returns "click" or "enter".
        """
        if elements.submit is not None:
            try:
                await elements.submit.click()
                logger.info("Submitted login form (click)")
                self._log("🖱️ Clicked submit")
                return "click"
            except PlaywrightError as e:
                driver.raise_if_fatal(e, phase="submit")
                logger.warning(f"Submit click failed, falling back to Enter: {e}")

        if elements.password is None:
            raise CredentialEntryError("No submit control and no password field to submit from",
                                       field="submit", phase="submit")
        try:
            await elements.password.press("Enter")
        except PlaywrightError as e:
            driver.raise_if_fatal(e, phase="submit")
            raise CredentialEntryError(
                f"Failed to submit login form: {e}", field="submit", phase="submit",
                recoverable=driver.is_stale_element_error(e),
            ) from e
        logger.info("Submitted login form (Enter)")
        self._log("⏎ Pressed Enter in password field")
        return "enter"
