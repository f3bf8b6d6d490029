"""
FormDetector - multi-tier login form detection

Runs the detection tiers in order and merges their candidates with a
gap-fill policy: a later tier only fills fields that are still empty.
Detection stops as soon as the merged result has both a username and a
password field.
"""

import logging
import time
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .. import driver
from ..config import EngineSettings
from ..exceptions import DriverError, LoginCancelledError, PhaseTimeoutError
from ..models import DetectionMethod, DomainDirective, FIELD_NAMES, FormElements
from ..page_configs import ConfigurationSet
from ..timing import Deadline
from . import confidence
from .tiers import DetectionTier, default_tiers

logger = logging.getLogger(__name__)


class FormDetector:
    """
    Locate the username, password, domain and submit controls of a login form.

    Args:
        settings: engine settings (frame depth)
        metrics: optional DetectionMetricsRecorder; observes every tier run
            and may recommend which tier to try first
        tiers: override the default tier list
        run_logger: optional RunLogger for step-by-step diagnostics
    """

    def __init__(
        self,
        settings: Optional[EngineSettings] = None,
        metrics=None,
        tiers: Optional[Sequence[DetectionTier]] = None,
        run_logger=None,
    ):
        self.settings = settings or EngineSettings()
        self.metrics = metrics
        self.tiers: List[DetectionTier] = list(tiers) if tiers else default_tiers(self.settings.max_frame_depth)
        self.run_logger = run_logger

    def _log(self, msg: str) -> None:
        if self.run_logger:
            self.run_logger.log_text(msg)

    def ordered_tiers(self, url: str) -> List[DetectionTier]:
        """Default tier order, with the recommended tier (if any) moved first."""
        tiers = list(self.tiers)
        if self.metrics is None:
            return tiers
        try:
            recommended = self.metrics.get_recommended_method(url)
        except Exception as e:
            logger.warning(f"Ignoring metrics recommendation for {url}: {e}")
            return tiers
        method = DetectionMethod.parse(recommended) if recommended is not None else None
        if method is None:
            if recommended is not None:
                logger.warning(f"Ignoring unknown recommended detection method: {recommended!r}")
            return tiers
        for index, tier in enumerate(tiers):
            if tier.method is method:
                if index:
                    logger.debug(f"Metrics recommend {method.value}; trying it first")
                return [tier] + tiers[:index] + tiers[index + 1:]
        return tiers

    def _record(self, url: str, elements: Optional[FormElements], attempted: List[str], started: float) -> None:
        """One DetectionAttempt per detection call, scored on the merged result."""
        if self.metrics is None:
            return
        if elements is not None and elements.method is not None:
            method = elements.method
        elif attempted:
            method = DetectionMethod.parse(attempted[0])
        else:
            return
        duration_ms = int((time.monotonic() - started) * 1000)
        success = elements is not None and elements.is_valid
        score = elements.confidence if elements is not None else 0
        try:
            self.metrics.record_attempt(url, method, success, score, duration_ms)
        except Exception as e:
            logger.warning(f"Failed to record detection metrics: {e}")

    async def _wait_for_configured_delay(self, url: str, configs: ConfigurationSet, deadline: Deadline) -> None:
        wait_ms = configs.max_additional_wait_ms(url)
        if wait_ms > 0:
            logger.debug(f"Waiting {wait_ms}ms before URL-specific detection")
            await deadline.sleep(wait_ms / 1000)

    async def _run_tiers(
        self,
        page,
        url: str,
        configs: ConfigurationSet,
        wanted: List[str],
        deadline: Deadline,
        attempted: List[str],
        configured_delay: bool,
    ) -> Optional[FormElements]:
        merged: Optional[FormElements] = None
        waited = not configured_delay

        for tier in self.ordered_tiers(url):
            if deadline.expired:
                if merged is None:
                    deadline.check()
                logger.info("Detection deadline reached; returning best partial result")
                break
            deadline.check()

            if tier.method is DetectionMethod.URL_SPECIFIC:
                if not configs.matching(url):
                    continue
                if not waited:
                    await self._wait_for_configured_delay(url, configs, deadline)
                    waited = True

            if tier.method.value not in attempted:
                attempted.append(tier.method.value)
            exclude = merged.elements() if merged else []
            pending = [f for f in wanted if merged is None or merged.get(f) is None]
            try:
                candidate = await tier.candidate(page, url, configs, pending, exclude)
            except (DriverError, LoginCancelledError, PhaseTimeoutError):
                raise
            except Exception as e:
                driver.raise_if_fatal(e, phase="detection")
                logger.warning(f"Detection tier {tier.method.value} failed: {e}")
                self._log(f"⚠️ Tier {tier.method.value} failed: {e}")
                continue

            found = candidate.found_fields()
            logger.debug(f"Tier {tier.method.value} found: {found}")
            if not found:
                continue
            self._log(f"   {tier.method.value}: found {', '.join(found)}")

            if merged is None:
                merged = candidate
                merged.method = tier.method
            else:
                merged.merge_missing(candidate)
            if merged.is_valid:
                break
        return merged

    def _finalize(self, merged: FormElements, directive: DomainDirective, expect_domain: bool) -> FormElements:
        if directive is DomainDirective.SKIP and merged.domain is not None:
            merged.set("domain", None)
        merged.confidence = confidence.score(merged, confidence.expected_fields(expect_domain))
        where = " in a popup window" if merged.popup is not None else ""
        logger.info(
            f"Detected login form via {merged.method.value}{where}: fields={merged.found_fields()} "
            f"confidence={merged.confidence}"
        )
        if self.run_logger:
            self.run_logger.log_detection_summary(merged)
        return merged

    def _wanted(self, directive: DomainDirective, fields: Optional[Iterable[str]]) -> List[str]:
        wanted = [f for f in (fields or FIELD_NAMES) if f in FIELD_NAMES]
        if directive is DomainDirective.SKIP:
            wanted = [f for f in wanted if f != "domain"]
        return wanted

    async def detect(
        self,
        page,
        url: str,
        configs: Optional[ConfigurationSet] = None,
        directive: DomainDirective = DomainDirective.PRESENT,
        deadline: Optional[Deadline] = None,
        domain_requested: bool = False,
        fields: Optional[Iterable[str]] = None,
    ) -> Optional[FormElements]:
        """
        Run the tiers against `page` once.

        Returns:
            The merged FormElements (possibly incomplete), or None when no
            tier found any field at all.

        Raises:
            DriverError: the browser went away
            PhaseTimeoutError: the deadline elapsed before anything was found
            LoginCancelledError: the cancellation signal was set
        """
        configs = configs or ConfigurationSet.empty()
        deadline = deadline or Deadline(self.settings.detection_timeout, phase="detection")
        expect_domain = directive is not DomainDirective.SKIP and (
            domain_requested or configs.expects_domain(url)
        )
        attempted: List[str] = []
        started = time.monotonic()
        self._log(f"🔍 Detecting login form on {url}")

        merged = await self._run_tiers(
            page, url, configs, self._wanted(directive, fields), deadline, attempted, configured_delay=True
        )
        if merged is not None:
            merged = self._finalize(merged, directive, expect_domain)
        else:
            logger.info(f"No login form fields found on {url} (tiers: {attempted})")
            self._log("❌ No login form fields found")
        self._record(url, merged, attempted, started)
        return merged

    async def wait_for_form(
        self,
        page,
        url: str,
        configs: Optional[ConfigurationSet] = None,
        directive: DomainDirective = DomainDirective.PRESENT,
        deadline: Optional[Deadline] = None,
        domain_requested: bool = False,
    ) -> Optional[FormElements]:
        """
        Wait for the page to load, then re-run the tiers every poll interval
        until some login field shows up or the deadline passes.

        Forms rendered by scripts after DOMContentLoaded are found on a later
        pass. Returns None when the deadline passes with nothing found; the
        whole wait counts as a single detection call for the metrics.
        """
        configs = configs or ConfigurationSet.empty()
        deadline = deadline or Deadline(self.settings.detection_timeout, phase="detection")
        expect_domain = directive is not DomainDirective.SKIP and (
            domain_requested or configs.expects_domain(url)
        )
        wanted = self._wanted(directive, None)
        attempted: List[str] = []
        started = time.monotonic()
        self._log(f"🔍 Waiting for a login form on {url}")

        await driver.wait_until_loaded(page, deadline.remaining())
        merged: Optional[FormElements] = None
        passes = 0
        while merged is None:
            passes += 1
            try:
                merged = await self._run_tiers(
                    page, url, configs, wanted, deadline, attempted, configured_delay=passes == 1
                )
                if merged is None:
                    await deadline.sleep(self.settings.poll_interval)
            except PhaseTimeoutError:
                break

        if merged is None:
            logger.info(f"No login form fields found on {url} after {passes} passes (tiers: {attempted})")
            self._log(f"❌ No login form fields found after {passes} passes")
        else:
            if passes > 1:
                logger.debug(f"Login form appeared on detection pass {passes}")
            merged = self._finalize(merged, directive, expect_domain)
        self._record(url, merged, attempted, started)
        return merged

    async def locate_field(
        self,
        page,
        field_name: str,
        url: str,
        configs: Optional[ConfigurationSet] = None,
        exclude: Iterable[Any] = (),
        tiers: Optional[Sequence[DetectionTier]] = None,
    ) -> Tuple[Optional[Any], Optional[DetectionMethod], Optional[str]]:
        """
        Single-field detection across the tiers.

        Returns (element, method, selector), all None when nothing matched.
        """
        configs = configs or ConfigurationSet.empty()
        exclude = [e for e in exclude if e is not None]
        for tier in (tiers or self.ordered_tiers(url)):
            try:
                element, selector = await tier.find_field(page, field_name, url, configs, exclude)
            except (DriverError, LoginCancelledError, PhaseTimeoutError):
                raise
            except Exception as e:
                driver.raise_if_fatal(e, phase="detection")
                logger.debug(f"Tier {tier.method.value} failed for {field_name}: {e}")
                continue
            if element is not None:
                return element, tier.method, selector
        return None, None, None
