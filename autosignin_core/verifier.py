"""
LoginVerifier - judge the page after the login form was submitted.

Evidence, strongest first:

1. failure indicators (configured: 95, built-in error patterns: 90);
   a failure match always wins, even when the URL changed
2. success indicators (configured: 95, built-in logout controls: 85)
3. the password field is gone (70, or 80 when the URL changed too)
4. the URL left the login path for a non-login path (60)

No evidence at all is reported as "ambiguous" with confidence 20.

While a sign-in popup window is open it is inspected instead of the login
page; once it closes, its password field counts as gone.

Indicators are CSS/XPath selectors, or `text=...` for a case-insensitive
substring of the visible page text.
"""

import logging
import time
from typing import Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse

from playwright.async_api import Error as PlaywrightError

from . import driver
from .config import EngineSettings
from .exceptions import DriverError, PhaseTimeoutError
from .models import FormElements, LoginAssessmentResult, LoginPageConfiguration
from .timing import Deadline

logger = logging.getLogger(__name__)


CONFIG_FAILURE_CONFIDENCE = 95
BUILTIN_FAILURE_CONFIDENCE = 90
CONFIG_SUCCESS_CONFIDENCE = 95
LOGOUT_CONTROL_CONFIDENCE = 85
PASSWORD_GONE_CONFIDENCE = 70
PASSWORD_GONE_URL_CHANGED_CONFIDENCE = 80
URL_CHANGED_CONFIDENCE = 60
AMBIGUOUS_CONFIDENCE = 20

FAILURE_PATTERNS = [
    "invalid credentials", "invalid username", "invalid password", "invalid login",
    "incorrect password", "incorrect username", "incorrect credentials",
    "wrong password", "wrong username", "wrong credentials",
    "login failed", "authentication failed", "signin failed", "sign-in failed",
    "access denied", "login denied", "authentication denied",
    "account locked", "account disabled", "account suspended", "account blocked",
    "password expired", "account expired",
]

# Short hints shown next to fields; not a rejected login
VALIDATION_HINTS = [
    "required", "cannot be empty", "please enter", "must be", "should be",
    "format", "minimum", "maximum",
]

CRITICAL_KEYWORDS = [
    "invalid", "incorrect", "wrong", "failed", "denied", "unauthorized",
    "locked", "disabled", "suspended", "blocked", "expired",
]
LOGIN_CONTEXT_KEYWORDS = [
    "login", "log in", "signin", "sign in", "password", "username", "credential", "authentication",
]

ERROR_CONTAINER_SELECTORS = [
    "[role='alert']",
    ".alert-danger",
    ".alert-error",
    ".error",
    ".error-message",
    ".login-error",
    "#error",
    ".validation-summary-errors",
    ".invalid-feedback",
    "[aria-live='assertive']",
]

LOGOUT_SELECTORS = [
    "a[href*='logout' i]",
    "a[href*='signout' i]",
    "a[href*='sign-out' i]",
    "a[href*='logoff' i]",
    "button[id*='logout' i]",
    "button[class*='logout' i]",
    "[data-testid*='logout' i]",
    "//a[contains(translate(normalize-space(.), 'LOGUTSIN', 'logutsin'), 'log out')]",
    "//a[contains(translate(normalize-space(.), 'LOGUTSIN', 'logutsin'), 'sign out')]",
    "//button[contains(translate(normalize-space(.), 'LOGUTSIN', 'logutsin'), 'log out')]",
    "//button[contains(translate(normalize-space(.), 'LOGUTSIN', 'logutsin'), 'sign out')]",
]

LOGIN_PATH_HINTS = ("login", "log-in", "signin", "sign-in", "logon", "auth", "sso")

ConfigArg = Union[None, LoginPageConfiguration, Iterable[LoginPageConfiguration]]


def is_login_failure_text(text: str) -> Optional[str]:
    """Return the matched pattern when `text` reads like a rejected login."""
    lowered = (text or "").lower()
    for pattern in FAILURE_PATTERNS:
        if pattern in lowered:
            return pattern
    if any(hint in lowered for hint in VALIDATION_HINTS):
        return None
    critical = next((k for k in CRITICAL_KEYWORDS if k in lowered), None)
    if critical and any(k in lowered for k in LOGIN_CONTEXT_KEYWORDS):
        return critical
    return None


def _path(url: str) -> str:
    return (urlparse(url or "").path or "/").rstrip("/").lower() or "/"


def is_login_like(url: str) -> bool:
    lowered = (url or "").lower()
    return any(hint in lowered for hint in LOGIN_PATH_HINTS)


class LoginVerifier:
    """
    Confidence-scored success/failure judgment of the post-submission page.

    Explicit indicators return at once; heuristic success (password gone,
    URL changed) is only accepted after `verification_settle` seconds so a
    late error banner is not missed.
    """

    def __init__(self, settings: Optional[EngineSettings] = None, run_logger=None):
        self.settings = settings or EngineSettings()
        self.run_logger = run_logger

    @staticmethod
    def _configs(config: ConfigArg) -> List[LoginPageConfiguration]:
        if config is None:
            return []
        if isinstance(config, LoginPageConfiguration):
            return [config]
        return list(config)

    async def _indicator_present(self, page, indicator: str, text_cache: List[str]) -> bool:
        if indicator.lower().startswith("text="):
            needle = indicator[5:].strip().strip("'\"").lower()
            if not text_cache:
                text_cache.append((await driver.page_text(page)).lower())
            return bool(needle) and needle in text_cache[0]
        for element in await driver.query_all(page, indicator):
            if await driver.is_displayed(element):
                return True
        return False

    async def _error_container_text(self, page) -> Optional[Tuple[str, str]]:
        for selector in ERROR_CONTAINER_SELECTORS:
            for element in await driver.query_all(page, selector):
                if not await driver.is_displayed(element):
                    continue
                try:
                    text = await element.inner_text()
                except PlaywrightError as e:
                    driver.raise_if_fatal(e, phase="verification")
                    continue
                matched = is_login_failure_text(text)
                if matched:
                    return matched, text.strip()
        return None

    @staticmethod
    def _target(page, elements: Optional[FormElements]):
        """The popup window while it is still open, otherwise the login page."""
        popup = elements.popup if elements is not None else None
        if popup is not None and not popup.is_closed():
            return popup
        return page

    @staticmethod
    async def _password_visible(elements: FormElements) -> bool:
        # a sign-in popup that closed itself took the password field with it
        if elements.popup is not None and elements.popup.is_closed():
            return False
        return await driver.is_displayed(elements.password)

    async def assess_once(
        self,
        page,
        elements: Optional[FormElements],
        configs: List[LoginPageConfiguration],
        original_url: str,
    ) -> Tuple[LoginAssessmentResult, bool]:
        """One look at the page. Returns (assessment, explicit)."""
        text_cache: List[str] = []

        for config in configs:
            for indicator in config.failure_indicators:
                if await self._indicator_present(page, indicator, text_cache):
                    return LoginAssessmentResult(
                        False, CONFIG_FAILURE_CONFIDENCE,
                        f"invalid credentials: failure indicator {indicator!r} present",
                        indicator,
                    ), True

        container = await self._error_container_text(page)
        if container:
            matched, text = container
            return LoginAssessmentResult(
                False, BUILTIN_FAILURE_CONFIDENCE, f"invalid credentials: {text[:200]}", matched
            ), True

        if not text_cache:
            text_cache.append((await driver.page_text(page)).lower())
        for pattern in FAILURE_PATTERNS:
            if pattern in text_cache[0]:
                return LoginAssessmentResult(
                    False, BUILTIN_FAILURE_CONFIDENCE, f"invalid credentials: page reports '{pattern}'", pattern
                ), True

        for config in configs:
            for indicator in config.success_indicators:
                if await self._indicator_present(page, indicator, text_cache):
                    return LoginAssessmentResult(
                        True, CONFIG_SUCCESS_CONFIDENCE, f"success indicator {indicator!r} present", indicator
                    ), True

        for selector in LOGOUT_SELECTORS:
            for element in await driver.query_all(page, selector):
                if await driver.is_displayed(element):
                    return LoginAssessmentResult(
                        True, LOGOUT_CONTROL_CONFIDENCE, "logout control present", selector
                    ), True

        in_popup = elements is not None and elements.popup is not None and page is elements.popup
        current = "" if in_popup else driver.current_url(page)
        url_changed = bool(current) and current.split("#")[0] != (original_url or "").split("#")[0]

        if elements is not None and elements.password is not None:
            if not await self._password_visible(elements):
                if url_changed:
                    return LoginAssessmentResult(
                        True, PASSWORD_GONE_URL_CHANGED_CONFIDENCE,
                        f"password field gone and URL changed to {current}",
                    ), False
                return LoginAssessmentResult(True, PASSWORD_GONE_CONFIDENCE, "password field gone"), False

        if current and _path(current) != _path(original_url) and not is_login_like(_path(current)):
            return LoginAssessmentResult(
                True, URL_CHANGED_CONFIDENCE, f"URL changed from login path to {_path(current)}"
            ), False

        return LoginAssessmentResult(False, AMBIGUOUS_CONFIDENCE, "ambiguous"), False

    async def verify(
        self,
        page,
        elements: Optional[FormElements],
        config: ConfigArg = None,
        *,
        original_url: str,
        deadline: Optional[Deadline] = None,
    ) -> LoginAssessmentResult:
        """Poll the page until explicit evidence, a settled heuristic or the deadline."""
        configs = self._configs(config)
        deadline = deadline or Deadline(self.settings.verification_timeout, phase="verification")
        started = time.monotonic()
        heuristic: Optional[LoginAssessmentResult] = None
        assessment = LoginAssessmentResult(False, AMBIGUOUS_CONFIDENCE, "ambiguous")
        polls = 0

        while True:
            polls += 1
            target = self._target(page, elements)
            try:
                assessment, explicit = await self.assess_once(target, elements, configs, original_url)
            except DriverError:
                if target is page or not target.is_closed():
                    raise
                logger.debug("Sign-in popup closed mid-check; looking at the login page")
                continue
            if explicit:
                break
            if assessment.success:
                heuristic = assessment
                if time.monotonic() - started >= self.settings.verification_settle:
                    break
            try:
                await deadline.sleep(self.settings.poll_interval)
            except PhaseTimeoutError:
                assessment = heuristic or assessment
                break

        logger.info(
            f"Verification after {polls} polls: success={assessment.success} "
            f"confidence={assessment.confidence} reason={assessment.reason}"
        )
        if self.run_logger:
            self.run_logger.log_assessment(assessment)
        return assessment
