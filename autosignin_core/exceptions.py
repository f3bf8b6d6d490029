"""
Login Error Taxonomy

Every failure the engine can produce maps onto one of three failure classes:

- TRANSIENT: worth another attempt (network hiccup, timeout, stale element)
- PERMANENT: retrying cannot help (bad credentials, no login form, bad config)
- FATAL: the automation driver itself is gone; stop immediately

Usage:
    from autosignin_core.exceptions import FormNotFoundError, FailureClass

    try:
        ...
    except LoginError as e:
        if e.failure_class is FailureClass.TRANSIENT:
            ...
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class FailureClass(Enum):
    """Retry eligibility of a failure"""
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    FATAL = "fatal"


class LoginError(Exception):
    """
    Base class for all login engine errors.

    Carries enough context (URL, phase, free-form details) for a caller to
    decide whether to capture a diagnostic artifact.
    """

    failure_class = FailureClass.PERMANENT

    def __init__(
        self,
        message: str,
        *,
        phase: Optional[str] = None,
        url: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.phase = phase
        self.url = url
        self.context: Dict[str, Any] = dict(context or {})

    def add_context(self, **details) -> "LoginError":
        """Attach extra diagnostic details and return self."""
        self.context.update({k: v for k, v in details.items() if v is not None})
        return self

    def __str__(self) -> str:
        parts = [self.message]
        if self.phase:
            parts.append(f"phase={self.phase}")
        if self.url:
            parts.append(f"url={self.url}")
        return " | ".join(parts)


class FormNotFoundError(LoginError):
    """No detection tier produced a usable login form"""

    def __init__(self, message: str = "No login form found", *, attempted_tiers: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.attempted_tiers = list(attempted_tiers or [])
        if self.attempted_tiers:
            self.context.setdefault("attempted_tiers", self.attempted_tiers)


class CredentialEntryError(LoginError):
    """Interacting with a form field failed"""

    def __init__(self, message: str, *, field: Optional[str] = None, recoverable: bool = False, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field
        self.recoverable = recoverable
        if field:
            self.context.setdefault("field", field)

    @property
    def failure_class(self) -> FailureClass:  # type: ignore[override]
        return FailureClass.TRANSIENT if self.recoverable else FailureClass.PERMANENT


class PhaseTimeoutError(LoginError, TimeoutError):
    """A phase deadline elapsed before the phase finished"""

    failure_class = FailureClass.TRANSIENT


class VerificationAmbiguousError(LoginError):
    """No success or failure evidence was found after submission"""

    def __init__(self, message: str = "Login outcome is ambiguous", *, assessment=None, **kwargs):
        super().__init__(message, **kwargs)
        self.assessment = assessment


class InvalidCredentialsError(LoginError):
    """The page explicitly rejected the credentials"""

    def __init__(self, message: str = "Invalid credentials", *, assessment=None, **kwargs):
        super().__init__(message, **kwargs)
        self.assessment = assessment


class ConfigurationError(LoginError):
    """A login page configuration is malformed"""


class LoginCancelledError(LoginError):
    """The caller cancelled the attempt"""


class DriverError(LoginError):
    """The browser automation driver failed (crash, closed target, lost connection)"""

    failure_class = FailureClass.FATAL

    def __init__(self, message: str, *, outcome=None, **kwargs):
        super().__init__(message, **kwargs)
        self.outcome = outcome


class RetryExhaustedError(LoginError):
    """All retry attempts failed with transient errors"""

    failure_class = FailureClass.TRANSIENT

    def __init__(self, message: str, *, last_error: Optional[BaseException] = None, attempts: int = 0,
                 elapsed_ms: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.last_error = last_error
        self.attempts = attempts
        self.elapsed_ms = elapsed_ms
        self.last_reason = (getattr(last_error, "message", None) or str(last_error)) if last_error else ""
        assessment = getattr(last_error, "assessment", None)
        self.last_confidence = assessment.confidence if assessment is not None else None
        self.context.setdefault("attempts", attempts)
        self.context.setdefault("elapsed_ms", elapsed_ms)
        self.context.setdefault("last_reason", self.last_reason)
