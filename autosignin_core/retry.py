"""
Retry Logic for Login Attempts

Runs a whole login attempt under a RetryPolicy with exponential backoff.
Only transient failures are retried; permanent and fatal failures end the
run immediately.

Usage:
    from autosignin_core.retry import RetryOrchestrator, retry_transient

    orchestrator = RetryOrchestrator(RetryPolicy(attempt_count=3))
    result = await orchestrator.execute(lambda attempt: run_attempt(attempt))

    @retry_transient(RetryPolicy(attempt_count=2, initial_delay=0.5))
    async def open_login_page(page, url):
        ...
"""

import asyncio
import logging
import random
import time
from functools import wraps
from typing import Any, Awaitable, Callable, List, Optional

from .error_handler import classify_error
from .exceptions import FailureClass, LoginError, PhaseTimeoutError, RetryExhaustedError
from .models import RetryPolicy
from .timing import Deadline

logger = logging.getLogger(__name__)


class AttemptRecord:
    """Bookkeeping for one failed attempt"""

    def __init__(self, index: int, error: BaseException, failure_class: FailureClass, delay: float = 0.0):
        self.index = index
        self.error = error
        self.failure_class = failure_class
        self.delay = delay

    def __repr__(self) -> str:
        return f"AttemptRecord({self.index}, {self.failure_class.value}, delay={self.delay:.2f})"


class RetryOrchestrator:
    """
    Execute an async operation with classification-driven retries.

    The operation is called with the 0-based attempt index. After failed
    attempt n the orchestrator waits `policy.delay_for(n)` seconds; the wait
    is cancellable through `cancel_event` and bounded by `deadline`.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        classifier: Callable[[BaseException], FailureClass] = classify_error,
        rng: Optional[random.Random] = None,
        run_logger=None,
    ):
        self.policy = policy or RetryPolicy()
        self.classifier = classifier
        self.rng = rng
        self.run_logger = run_logger
        self.history: List[AttemptRecord] = []
        self.attempts = 0
        self.elapsed_ms = 0

    def _log(self, msg: str) -> None:
        if self.run_logger:
            self.run_logger.log_text(msg)

    async def execute(
        self,
        operation: Callable[[int], Awaitable[Any]],
        *,
        deadline: Optional[Deadline] = None,
        cancel_event: Optional[asyncio.Event] = None,
        name: str = "login",
    ) -> Any:
        """
        Run `operation` until it succeeds, fails non-transiently or the
        policy is exhausted.

        Raises:
            RetryExhaustedError: every attempt failed transiently
            LoginError / other: the first permanent or fatal failure, as raised
        """
        if deadline is None:
            deadline = Deadline.unbounded(phase="retry", cancel_event=cancel_event)
        started = time.monotonic()
        self.history = []
        self.attempts = 0
        last_error: Optional[BaseException] = None
        total = self.policy.total_attempts

        for attempt in range(total):
            deadline.check()
            self.attempts = attempt + 1
            try:
                result = await operation(attempt)
                self.elapsed_ms = int((time.monotonic() - started) * 1000)
                if attempt:
                    logger.info(f"{name} succeeded on attempt {attempt + 1}/{total}")
                return result
            except Exception as e:
                self.elapsed_ms = int((time.monotonic() - started) * 1000)
                failure_class = self.classifier(e)
                last_error = e
                if isinstance(e, LoginError):
                    e.add_context(attempts=self.attempts, elapsed_ms=self.elapsed_ms)

                if failure_class is not FailureClass.TRANSIENT:
                    self.history.append(AttemptRecord(attempt, e, failure_class))
                    logger.warning(f"{name} attempt {attempt + 1}/{total} failed ({failure_class.value}): {e}")
                    raise

                if attempt == total - 1:
                    self.history.append(AttemptRecord(attempt, e, failure_class))
                    break

                delay = self.policy.delay_for(attempt, self.rng)
                self.history.append(AttemptRecord(attempt, e, failure_class, delay))
                logger.warning(
                    f"Attempt {attempt + 1}/{total} failed for {name}: {e}. "
                    f"Retrying in {delay:.1f}s..."
                )
                self._log(f"Attempt {attempt + 1}/{total} failed ({failure_class.value}): {e}; retrying in {delay:.2f}s")

                try:
                    await deadline.sleep(delay)
                except PhaseTimeoutError:
                    logger.error(f"Retry window for {name} closed after {self.attempts} attempts")
                    break

        self.elapsed_ms = int((time.monotonic() - started) * 1000)
        logger.error(f"Retry exhausted for {name} after {self.attempts} attempts: {last_error}")
        raise RetryExhaustedError(
            f"Failed after {self.attempts} attempts: {last_error}",
            last_error=last_error,
            attempts=self.attempts,
            elapsed_ms=self.elapsed_ms,
            phase=getattr(last_error, "phase", None),
            url=getattr(last_error, "url", None),
        ) from last_error


def retry_transient(policy: Optional[RetryPolicy] = None, classifier: Callable[[BaseException], FailureClass] = classify_error):
    """
    Decorator for retrying async functions on transient failures.

    Example:
        @retry_transient(RetryPolicy(attempt_count=2))
        async def open_page(page, url):
            ...
    """
    def decorator(func: Callable):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            orchestrator = RetryOrchestrator(policy, classifier=classifier)
            return await orchestrator.execute(lambda _attempt: func(*args, **kwargs), name=func.__name__)

        return wrapper
    return decorator


async def navigate_with_retry(page, url: str, policy: Optional[RetryPolicy] = None,
                              timeout: int = 30000, wait_until: str = "domcontentloaded") -> None:
    """Navigate to `url`, retrying transient navigation failures."""

    async def _goto(attempt: int):
        logger.debug(f"Navigating to {url} (attempt {attempt + 1})")
        await page.goto(url, timeout=timeout, wait_until=wait_until)

    await RetryOrchestrator(policy or RetryPolicy(attempt_count=2)).execute(_goto, name="navigation")
