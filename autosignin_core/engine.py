"""
LoginEngine - one complete login, with retries.

Each attempt runs:

    resolve domain directive -> detect form -> progressive monitor (if incomplete)
    -> refine directive -> enter credentials -> deferred domain pass -> submit -> verify

and the RetryOrchestrator repeats attempts that failed transiently. Every
non-fatal result comes back as a LoginOutcome; a driver failure is raised as
DriverError with the outcome attached.
"""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from . import driver
from .config import EngineSettings
from .config_logger import log_all_config
from .credential_entry import CredentialEntryEngine
from .detection.detector import FormDetector
from .domain import DomainFieldResolver
from .error_handler import classify_error, format_error_for_logging
from .exceptions import (
    ConfigurationError,
    CredentialEntryError,
    DriverError,
    FailureClass,
    FormNotFoundError,
    InvalidCredentialsError,
    LoginCancelledError,
    PhaseTimeoutError,
    RetryExhaustedError,
    VerificationAmbiguousError,
)
from .metrics import DetectionMetricsRecorder
from .models import (
    Credentials,
    DomainDirective,
    LoginAssessmentResult,
    LoginOutcome,
    OutcomeKind,
    PhaseTimeouts,
    RetryPolicy,
)
from .page_configs import ConfigurationSet
from .progressive import MonitorState, ProgressiveFieldMonitor
from .retry import RetryOrchestrator
from .timing import Deadline
from .verifier import LoginVerifier

logger = logging.getLogger(__name__)


OUTCOME_BY_ERROR = (
    (InvalidCredentialsError, OutcomeKind.INVALID_CREDENTIALS),
    (VerificationAmbiguousError, OutcomeKind.AMBIGUOUS),
    (FormNotFoundError, OutcomeKind.FORM_NOT_FOUND),
    (CredentialEntryError, OutcomeKind.CREDENTIAL_ENTRY_FAILED),
    (ConfigurationError, OutcomeKind.CONFIGURATION_ERROR),
    (LoginCancelledError, OutcomeKind.CANCELLED),
    (DriverError, OutcomeKind.DRIVER_FAILURE),
    (TimeoutError, OutcomeKind.TIMEOUT),
    (asyncio.TimeoutError, OutcomeKind.TIMEOUT),
)


def outcome_kind_for(error: BaseException) -> OutcomeKind:
    if isinstance(error, RetryExhaustedError) and error.last_error is not None:
        error = error.last_error
    for error_type, kind in OUTCOME_BY_ERROR:
        if isinstance(error, error_type):
            return kind
    failure_class = classify_error(error)
    if failure_class is FailureClass.FATAL:
        return OutcomeKind.DRIVER_FAILURE
    if failure_class is FailureClass.TRANSIENT:
        return OutcomeKind.TIMEOUT
    return OutcomeKind.UNEXPECTED_ERROR


class _AttemptState:
    """What the most recent attempt got to, for the outcome."""

    def __init__(self):
        self.detection_method = None
        self.confidence = 0
        self.assessment: Optional[LoginAssessmentResult] = None
        self.phase: Optional[str] = None


class LoginEngine:
    """
    Compose detection, entry and verification into one login.

    Args:
        settings: EngineSettings (defaults from the environment are NOT read
            implicitly; pass `EngineSettings.from_env()` at the boundary)
        configs: ConfigurationSet; when None and `settings.config_file` is
            set, the file is loaded on the first login
        metrics: shared DetectionMetricsRecorder (one is created if omitted)
        run_logger: optional RunLogger
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        configs: Optional[ConfigurationSet] = None,
        metrics: Optional[DetectionMetricsRecorder] = None,
        run_logger=None,
        detector: Optional[FormDetector] = None,
        entry: Optional[CredentialEntryEngine] = None,
        verifier: Optional[LoginVerifier] = None,
        resolver: Optional[DomainFieldResolver] = None,
    ):
        self.settings = settings or EngineSettings()
        self._configs = configs
        self.metrics = metrics if metrics is not None else DetectionMetricsRecorder()
        self.run_logger = run_logger
        self.detector = detector or FormDetector(self.settings, metrics=self.metrics, run_logger=run_logger)
        self.entry = entry or CredentialEntryEngine(self.settings, run_logger=run_logger)
        self.verifier = verifier or LoginVerifier(self.settings, run_logger=run_logger)
        self.resolver = resolver or DomainFieldResolver(self.settings, run_logger=run_logger)
        self.monitor = ProgressiveFieldMonitor(self.detector, self.entry, self.settings, run_logger=run_logger)

    @property
    def configs(self) -> ConfigurationSet:
        if self._configs is None:
            if self.settings.config_file:
                self._configs = ConfigurationSet.from_file(self.settings.config_file)
            else:
                self._configs = ConfigurationSet.empty()
        return self._configs

    def _log(self, msg: str) -> None:
        if self.run_logger:
            self.run_logger.log_text(msg)

    async def _navigate(self, page, url: str) -> None:
        logger.info(f"Re-navigating to {url} before retry")
        try:
            await page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            driver.raise_if_fatal(e, phase="navigation")
            raise

    async def attempt(
        self,
        page,
        url: str,
        credentials: Credentials,
        configs: ConfigurationSet,
        timeouts: PhaseTimeouts,
        cancel_event: Optional[asyncio.Event] = None,
        state: Optional[_AttemptState] = None,
        budget: Optional[Deadline] = None,
    ) -> LoginAssessmentResult:
        """
        One login attempt. Returns the successful assessment; raises on
        every kind of failure. `budget` is the overall login deadline, if any.
        """
        state = state or _AttemptState()

        # Detection
        state.phase = "detection"
        directive = self.resolver.initial_directive(credentials.domain)
        detection_deadline = Deadline(timeouts.detection, phase="detection", cancel_event=cancel_event)
        elements = await self.detector.wait_for_form(
            page, url, configs, directive, detection_deadline,
            domain_requested=directive is not DomainDirective.SKIP,
        )
        if elements is None:
            if budget is not None:
                # detection was cut short by the overall deadline
                budget.check()
            raise FormNotFoundError(
                phase="detection", url=url,
                attempted_tiers=[t.method.value for t in self.detector.ordered_tiers(url)],
            )
        state.detection_method = elements.method
        state.confidence = elements.confidence

        humanized = configs.requires_javascript(url)
        populated = set()

        # Progressive reveal
        if not elements.is_valid:
            state.phase = "progressive"
            self._log("🪜 Form incomplete; switching to progressive monitoring")
            progressive_timeout = timeouts.detection + timeouts.entry
            if budget is not None:
                progressive_deadline = budget.child(progressive_timeout, phase="progressive")
            else:
                progressive_deadline = Deadline(progressive_timeout, phase="progressive", cancel_event=cancel_event)
            result = await self.monitor.run(
                page, url, configs, credentials, directive, initial=elements, deadline=progressive_deadline
            )
            elements = result.elements
            populated = result.populated
            humanized = True
            if not elements.is_valid:
                raise PhaseTimeoutError(
                    result.diagnostic or "Progressive form never completed",
                    phase="progressive", url=url,
                    context={"state": result.state.value, "found": elements.found_fields()},
                )
            if result.state is MonitorState.FAILED_TIMEOUT:
                logger.info(f"Progressive monitor timed out with a usable form: {result.diagnostic}")

        directive = self.resolver.refine(directive, elements)

        # Entry
        state.phase = "entry"
        entry_deadline = Deadline(timeouts.entry, phase="entry", cancel_event=cancel_event)
        ok = await self.entry.enter(
            page, elements, credentials.username, credentials.password, directive, credentials.domain,
            humanized=humanized, skip_fields=populated, deadline=entry_deadline,
        )
        if not ok:
            raise CredentialEntryError("Could not write credentials into the form", phase="entry", url=url,
                                       recoverable=True)

        if directive is DomainDirective.DEFERRED_UNTIL_AFTER_PASSWORD and "domain" not in populated:
            ok = await self.resolver.populate_deferred(
                elements.popup or page, url, configs, elements, credentials.domain, self.entry,
                humanized=humanized, deadline=entry_deadline,
            )
            if not ok:
                raise CredentialEntryError("Could not write the deferred domain field", field="domain",
                                           phase="entry", url=url, recoverable=True)

        state.phase = "submit"
        await self.entry.submit(page, elements)

        # Verification
        state.phase = "verification"
        verification_deadline = Deadline(timeouts.verification, phase="verification", cancel_event=cancel_event)
        assessment = await self.verifier.verify(
            page, elements, configs.matching(url), original_url=url, deadline=verification_deadline
        )
        state.assessment = assessment
        state.confidence = assessment.confidence
        if assessment.success:
            return assessment
        if assessment.ambiguous:
            raise VerificationAmbiguousError(
                "Login outcome is ambiguous", assessment=assessment, phase="verification", url=url
            )
        raise InvalidCredentialsError(assessment.reason, assessment=assessment, phase="verification", url=url)

    async def login(
        self,
        page,
        url: str,
        credentials: Credentials,
        *,
        policy: Optional[RetryPolicy] = None,
        timeouts: Optional[PhaseTimeouts] = None,
        cancel_event: Optional[asyncio.Event] = None,
        overall_timeout: Optional[float] = None,
    ) -> LoginOutcome:
        """
        Log in to `url` on `page`.

        `overall_timeout` (seconds, default `settings.overall_timeout`, 0 for
        none) bounds the whole login: retries stop when it runs out and each
        attempt's phase deadlines shrink to the time that is left.

        Returns a LoginOutcome for every result except a driver failure,
        which raises DriverError with `error.outcome` set.
        """
        policy = policy or self.settings.retry_policy
        timeouts = timeouts or self.settings.timeouts
        if overall_timeout is None:
            overall_timeout = self.settings.overall_timeout
        if overall_timeout and overall_timeout > 0:
            budget = Deadline(overall_timeout, phase="login", cancel_event=cancel_event)
        else:
            budget = Deadline.unbounded(phase="retry", cancel_event=cancel_event)
        state = _AttemptState()
        orchestrator = RetryOrchestrator(policy, run_logger=self.run_logger)

        if self.run_logger:
            self.run_logger.log_heading(f"Login: {url}")
            log_all_config(self.run_logger, self.settings, runtime={
                "url": url,
                "username": credentials.username,
                "domain": credentials.domain or "",
            })

        try:
            configs = self.configs
        except ConfigurationError as e:
            return self._finish(self._failure_outcome(url, e, state, orchestrator))

        async def run_attempt(index: int) -> LoginAssessmentResult:
            if index:
                if self.run_logger:
                    self.run_logger.log_heading(f"Attempt {index + 1}")
                if self.settings.navigate_on_retry:
                    await self._navigate(page, url)
            remaining = budget.remaining()
            attempt_timeouts = timeouts if remaining is None else timeouts.capped(remaining)
            return await self.attempt(page, url, credentials, configs, attempt_timeouts, cancel_event, state,
                                      budget=budget)

        try:
            assessment = await orchestrator.execute(
                run_attempt,
                deadline=budget,
                name=f"login to {url}",
            )
        except Exception as e:
            outcome = self._failure_outcome(url, e, state, orchestrator)
            if outcome.kind is OutcomeKind.DRIVER_FAILURE:
                self._finish(outcome)
                if isinstance(e, DriverError):
                    e.outcome = outcome
                    raise
                raise DriverError(f"Browser driver failure: {e}", outcome=outcome, phase=outcome.phase,
                                  url=url) from e
            return self._finish(outcome)

        return self._finish(LoginOutcome(
            kind=OutcomeKind.SUCCESS,
            url=url,
            reason=assessment.reason,
            phase="verification",
            confidence=assessment.confidence,
            attempts=orchestrator.attempts,
            elapsed_ms=orchestrator.elapsed_ms,
            detection_method=state.detection_method,
            assessment=assessment,
        ))

    def _failure_outcome(self, url: str, error: BaseException, state: _AttemptState,
                         orchestrator: RetryOrchestrator) -> LoginOutcome:
        root = error.last_error if isinstance(error, RetryExhaustedError) and error.last_error else error
        kind = outcome_kind_for(error)
        assessment = getattr(root, "assessment", None) or state.assessment
        logger.error(format_error_for_logging(root, context=getattr(root, "phase", None) or state.phase or ""))
        outcome = LoginOutcome(
            kind=kind,
            url=url,
            reason=getattr(root, "message", None) or str(root),
            phase=getattr(root, "phase", None) or state.phase,
            failure_class=classify_error(root),
            confidence=assessment.confidence if assessment else state.confidence,
            attempts=orchestrator.attempts,
            elapsed_ms=orchestrator.elapsed_ms,
            detection_method=state.detection_method,
            assessment=assessment,
            error=error,
            context=dict(getattr(error, "context", {}) or {}),
        )
        if isinstance(error, RetryExhaustedError):
            outcome.context["retries_exhausted"] = True
        return outcome

    def _finish(self, outcome: LoginOutcome) -> LoginOutcome:
        log = logger.info if outcome.success else logger.warning
        log(f"Login outcome for {outcome.url}: {outcome.kind.value} "
            f"(attempts={outcome.attempts}, confidence={outcome.confidence})")
        if self.run_logger:
            self.run_logger.log_outcome(outcome)
        return outcome
