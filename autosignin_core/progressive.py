"""
Progressive login forms.

Some login pages reveal their fields one at a time: the password box only
appears once a plausible username has been typed, the domain selector or
submit button once the password is in. ProgressiveFieldMonitor walks such a
form as a bounded-wait state machine:

    AWAITING_USERNAME -> AWAITING_PASSWORD -> AWAITING_DOMAIN_OR_SUBMIT -> COMPLETE
            \\_________________\\______________________\\______> FAILED_TIMEOUT

Each field is typed (humanized) as soon as it is found so that the page's
own scripts reveal the next one.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Set, Tuple

from .config import EngineSettings
from .credential_entry import CredentialEntryEngine
from .detection.detector import FormDetector
from .exceptions import PhaseTimeoutError
from .models import Credentials, DetectionMethod, DomainDirective, FormElements
from .page_configs import ConfigurationSet
from .timing import Deadline

logger = logging.getLogger(__name__)


class MonitorState(Enum):
    AWAITING_USERNAME = "awaiting_username"
    AWAITING_PASSWORD = "awaiting_password"
    AWAITING_DOMAIN_OR_SUBMIT = "awaiting_domain_or_submit"
    COMPLETE = "complete"
    FAILED_TIMEOUT = "failed_timeout"

    @property
    def terminal(self) -> bool:
        return self in (MonitorState.COMPLETE, MonitorState.FAILED_TIMEOUT)


STAGES = (
    MonitorState.AWAITING_USERNAME,
    MonitorState.AWAITING_PASSWORD,
    MonitorState.AWAITING_DOMAIN_OR_SUBMIT,
)


@dataclass
class ProgressiveResult:
    """Where the monitor stopped, what it found and what it already typed."""
    state: MonitorState
    elements: FormElements
    populated: Set[str] = field(default_factory=set)
    diagnostic: str = ""
    transitions: List[Tuple[str, int]] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return self.state is MonitorState.COMPLETE


class ProgressiveFieldMonitor:
    """
    Drive an incrementally revealed login form to completion.

    Args:
        detector: FormDetector used for single-field lookups
        entry: CredentialEntryEngine used to type each field on detection
        settings: stage / overall deadlines and poll interval
    """

    def __init__(
        self,
        detector: FormDetector,
        entry: CredentialEntryEngine,
        settings: Optional[EngineSettings] = None,
        run_logger=None,
    ):
        self.detector = detector
        self.entry = entry
        self.settings = settings or detector.settings
        self.run_logger = run_logger

    def _log(self, msg: str) -> None:
        if self.run_logger:
            self.run_logger.log_text(msg)

    def overall_timeout(self) -> float:
        return min(self.settings.progressive_stage_timeout * len(STAGES), self.settings.progressive_max_timeout)

    async def _find(self, page, field_name: str, url: str, configs: ConfigurationSet, elements: FormElements):
        current = elements.get(field_name)
        if current is not None:
            return current
        element, method, selector = await self.detector.locate_field(
            page, field_name, url, configs, exclude=elements.elements()
        )
        if element is not None:
            elements.set(field_name, element, method or DetectionMethod.PROGRESSIVE, selector)
            logger.info(f"Progressive: {field_name} revealed ({selector})")
            self._log(f"👀 {field_name} field appeared")
        return element

    async def _populate(self, field_name: str, element, credentials: Credentials, directive: DomainDirective,
                        deadline: Deadline) -> bool:
        if field_name == "domain":
            return await self.entry.enter_domain(element, credentials.domain, directive,
                                                 humanized=True, deadline=deadline)
        value = credentials.username if field_name == "username" else credentials.password
        return await self.entry.fill_field(element, value, field_name=field_name, humanized=True,
                                           deadline=deadline)

    def _stage_targets(self, state: MonitorState, directive: DomainDirective) -> List[str]:
        if state is MonitorState.AWAITING_USERNAME:
            return ["username"]
        if state is MonitorState.AWAITING_PASSWORD:
            return ["password"]
        if directive is DomainDirective.SKIP:
            return ["submit"]
        return ["domain", "submit"]

    async def _await_stage(self, page, url, configs, credentials, directive, state, stage, overall,
                           result: ProgressiveResult) -> None:
        """Poll until the stage is satisfied; PhaseTimeoutError when its deadline passes."""
        elements = result.elements
        while True:
            for field_name in self._stage_targets(state, directive):
                element = await self._find(page, field_name, url, configs, elements)
                if element is None:
                    continue
                if field_name == "submit" or field_name in result.populated:
                    return
                if await self._populate(field_name, element, credentials, directive, overall):
                    result.populated.add(field_name)
                    return
            await stage.sleep(self.settings.poll_interval)

    async def run(
        self,
        page,
        url: str,
        configs: Optional[ConfigurationSet],
        credentials: Credentials,
        directive: DomainDirective,
        initial: Optional[FormElements] = None,
        deadline: Optional[Deadline] = None,
    ) -> ProgressiveResult:
        """
        Walk the form until COMPLETE or FAILED_TIMEOUT.

        Cancellation propagates as LoginCancelledError; every other deadline
        breach ends in FAILED_TIMEOUT with the best partial result.
        """
        configs = configs or ConfigurationSet.empty()
        elements = initial if initial is not None else FormElements(method=DetectionMethod.PROGRESSIVE)
        if elements.method is None:
            elements.method = DetectionMethod.PROGRESSIVE
        if directive is DomainDirective.SKIP and elements.domain is not None:
            elements.set("domain", None)

        overall = (deadline.child(self.overall_timeout(), phase="progressive") if deadline
                   else Deadline(self.overall_timeout(), phase="progressive"))
        result = ProgressiveResult(state=STAGES[0], elements=elements)
        started = time.monotonic()

        def transition(state: MonitorState) -> None:
            result.state = state
            result.transitions.append((state.value, int((time.monotonic() - started) * 1000)))
            logger.debug(f"Progressive monitor -> {state.value}")

        self._log("⏳ Progressive form: waiting for fields to appear")
        for state in STAGES:
            transition(state)
            stage = overall.child(self.settings.progressive_stage_timeout, phase="progressive")
            try:
                await self._await_stage(page, url, configs, credentials, directive, state, stage, overall, result)
            except PhaseTimeoutError:
                transition(MonitorState.FAILED_TIMEOUT)
                result.diagnostic = (
                    f"Timed out waiting in {state.value} after "
                    f"{int((time.monotonic() - started) * 1000)}ms; "
                    f"found {elements.found_fields()}, populated {sorted(result.populated)}"
                )
                logger.warning(f"Progressive monitor: {result.diagnostic}")
                self._log(f"⌛ {result.diagnostic}")
                return result

        if elements.submit is None:
            await self._find(page, "submit", url, configs, elements)
        transition(MonitorState.COMPLETE)
        logger.info(f"Progressive form complete; populated {sorted(result.populated)}")
        self._log(f"✅ Progressive form complete ({', '.join(sorted(result.populated))})")
        return result
