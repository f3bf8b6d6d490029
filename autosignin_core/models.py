"""
Data model for login detection, entry and verification.

Element handles stored in FormElements belong to the page load they were
found on; they become invalid after navigation and are never persisted.
"""

import fnmatch
import random
import time
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .exceptions import ConfigurationError, FailureClass


FIELD_NAMES = ("username", "password", "domain", "submit")


class DetectionMethod(Enum):
    """Detection strategies, in default tier order"""
    URL_SPECIFIC = "url_specific"
    COMMON_ATTRIBUTES = "common_attributes"
    STRUCTURAL = "structural"
    NESTED_CONTEXT = "nested_context"
    PROGRESSIVE = "progressive"

    @classmethod
    def parse(cls, value) -> Optional["DetectionMethod"]:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return None


class DomainDirective(Enum):
    """Resolved intent for the domain field of one login attempt"""
    PRESENT = "present"
    DEFERRED_UNTIL_AFTER_PASSWORD = "deferred_until_after_password"
    SKIP = "skip"


@dataclass(frozen=True)
class LoginPageConfiguration:
    """URL-specific selectors and behaviour for one family of login pages"""
    url_pattern: str = ""
    priority: int = 0
    display_name: str = ""
    username_selectors: Tuple[str, ...] = ()
    password_selectors: Tuple[str, ...] = ()
    domain_selectors: Tuple[str, ...] = ()
    submit_selectors: Tuple[str, ...] = ()
    additional_wait_ms: int = 0
    requires_javascript: bool = False
    success_indicators: Tuple[str, ...] = ()
    failure_indicators: Tuple[str, ...] = ()
    notes: str = ""

    def matches(self, url: str) -> bool:
        """
        Case-insensitive substring match; empty pattern matches everything,
        patterns with `*` or `?` are shell-style globs over the whole URL.
        """
        pattern = (self.url_pattern or "").lower()
        target = (url or "").lower()
        if not pattern:
            return True
        if "*" in pattern or "?" in pattern:
            return fnmatch.fnmatchcase(target, pattern)
        return pattern in target

    def selectors_for(self, field_name: str) -> Tuple[str, ...]:
        return {
            "username": self.username_selectors,
            "password": self.password_selectors,
            "domain": self.domain_selectors,
            "submit": self.submit_selectors,
        }.get(field_name, ())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoginPageConfiguration":
        """Build from a loader dict; accepts snake_case or camelCase keys."""
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration entry must be a mapping, got {type(data).__name__}")

        aliases = {
            "urlPattern": "url_pattern",
            "displayName": "display_name",
            "usernameSelectors": "username_selectors",
            "passwordSelectors": "password_selectors",
            "domainSelectors": "domain_selectors",
            "submitButtonSelectors": "submit_selectors",
            "submitSelectors": "submit_selectors",
            "additionalWaitMs": "additional_wait_ms",
            "requiresJavaScript": "requires_javascript",
            "successIndicators": "success_indicators",
            "failureIndicators": "failure_indicators",
        }
        normalized = {aliases.get(k, k): v for k, v in data.items()}
        unknown = set(normalized) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {sorted(unknown)}")

        values: Dict[str, Any] = {}
        for name, value in normalized.items():
            if name.endswith("_selectors") or name.endswith("_indicators"):
                if isinstance(value, str):
                    value = [value]
                if not isinstance(value, (list, tuple)) or not all(isinstance(s, str) for s in value):
                    raise ConfigurationError(f"'{name}' must be a list of strings")
                values[name] = tuple(s.strip() for s in value if s.strip())
            elif name in ("priority", "additional_wait_ms"):
                try:
                    values[name] = int(value)
                except (TypeError, ValueError):
                    raise ConfigurationError(f"'{name}' must be an integer, got {value!r}")
                if name == "additional_wait_ms" and values[name] < 0:
                    raise ConfigurationError("'additional_wait_ms' must not be negative")
            elif name == "requires_javascript":
                values[name] = bool(value)
            else:
                values[name] = "" if value is None else str(value)
        return cls(**values)


@dataclass
class FormElements:
    """
    Located login form fields for one attempt.

    `field_methods` records which tier produced each field and
    `field_selectors` the selector that matched; both feed the
    confidence score and diagnostics.
    """
    username: Any = None
    password: Any = None
    domain: Any = None
    submit: Any = None
    method: Optional[DetectionMethod] = None
    confidence: int = 0
    field_methods: Dict[str, DetectionMethod] = field(default_factory=dict)
    field_selectors: Dict[str, str] = field(default_factory=dict)
    # set when the form lives in a popup window rather than the login page
    popup: Any = None

    @property
    def is_valid(self) -> bool:
        return self.username is not None and self.password is not None

    def get(self, field_name: str):
        return getattr(self, field_name)

    def set(self, field_name: str, element, method: Optional[DetectionMethod] = None,
            selector: Optional[str] = None) -> None:
        setattr(self, field_name, element)
        if element is None:
            self.field_methods.pop(field_name, None)
            self.field_selectors.pop(field_name, None)
            return
        if method is not None:
            self.field_methods[field_name] = method
        if selector:
            self.field_selectors[field_name] = selector

    def found_fields(self) -> List[str]:
        return [name for name in FIELD_NAMES if getattr(self, name) is not None]

    def missing_fields(self) -> List[str]:
        return [name for name in FIELD_NAMES if getattr(self, name) is None]

    def elements(self) -> List[Any]:
        return [getattr(self, name) for name in self.found_fields()]

    def merge_missing(self, other: Optional["FormElements"]) -> List[str]:
        """Gap-fill: copy fields from `other` only where this result has none."""
        filled = []
        if other is None:
            return filled
        for name in FIELD_NAMES:
            if getattr(self, name) is None and getattr(other, name) is not None:
                self.set(
                    name,
                    getattr(other, name),
                    other.field_methods.get(name, other.method),
                    other.field_selectors.get(name),
                )
                filled.append(name)
        return filled

    def describe(self) -> Dict[str, Any]:
        """Loggable summary without element handles."""
        return {
            "valid": self.is_valid,
            "method": self.method.value if self.method else None,
            "confidence": self.confidence,
            "fields": {
                name: {
                    "found": getattr(self, name) is not None,
                    "method": self.field_methods[name].value if name in self.field_methods else None,
                    "selector": self.field_selectors.get(name),
                }
                for name in FIELD_NAMES
            },
        }


@dataclass
class DetectionAttempt:
    """One detection call as seen by the metrics recorder"""
    url: str
    method: DetectionMethod
    success: bool
    confidence: int = 0
    started_at: float = field(default_factory=time.time)
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["method"] = self.method.value
        return data


@dataclass(frozen=True)
class LoginAssessmentResult:
    """Post-submission judgment"""
    success: bool
    confidence: int
    reason: str
    matched_indicator: Optional[str] = None

    @property
    def ambiguous(self) -> bool:
        return not self.success and self.reason == "ambiguous"


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff policy. `attempt_count` counts additional attempts, so the
    operation runs at most attempt_count + 1 times.
    """
    attempt_count: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        if self.attempt_count < 0:
            raise ValueError("attempt_count must not be negative")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must not be negative")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")

    @property
    def total_attempts(self) -> int:
        return self.attempt_count + 1

    def delay_for(self, failed_attempt: int, rng: Optional[random.Random] = None) -> float:
        """Seconds to wait after the 0-based attempt `failed_attempt` failed."""
        delay = min(self.max_delay, self.initial_delay * (self.multiplier ** failed_attempt))
        if self.jitter:
            delay *= (rng or random).uniform(0.85, 1.15)
        return max(0.0, delay)


@dataclass(frozen=True)
class PhaseTimeouts:
    """Per-phase deadlines (seconds) composing one attempt"""
    detection: float = 10.0
    entry: float = 15.0
    verification: float = 10.0

    def capped(self, remaining: float) -> "PhaseTimeouts":
        """Shrink every phase so none exceeds the remaining overall budget."""
        remaining = max(0.0, remaining)
        return PhaseTimeouts(
            detection=min(self.detection, remaining),
            entry=min(self.entry, remaining),
            verification=min(self.verification, remaining),
        )

    @property
    def total(self) -> float:
        return self.detection + self.entry + self.verification


@dataclass(frozen=True)
class Credentials:
    username: str
    password: str
    domain: Optional[str] = None

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***', domain={self.domain!r})"


class OutcomeKind(Enum):
    SUCCESS = "success"
    INVALID_CREDENTIALS = "invalid_credentials"
    FORM_NOT_FOUND = "form_not_found"
    CREDENTIAL_ENTRY_FAILED = "credential_entry_failed"
    TIMEOUT = "timeout"
    AMBIGUOUS = "ambiguous"
    CONFIGURATION_ERROR = "configuration_error"
    CANCELLED = "cancelled"
    DRIVER_FAILURE = "driver_failure"
    UNEXPECTED_ERROR = "unexpected_error"


@dataclass
class LoginOutcome:
    """Discriminated result of a login, for callers to map onto exit codes or reports"""
    kind: OutcomeKind
    url: str
    reason: str = ""
    phase: Optional[str] = None
    failure_class: Optional[FailureClass] = None
    confidence: int = 0
    attempts: int = 0
    elapsed_ms: int = 0
    detection_method: Optional[DetectionMethod] = None
    assessment: Optional[LoginAssessmentResult] = None
    error: Optional[BaseException] = None
    context: Dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.kind is OutcomeKind.SUCCESS

    @property
    def needs_diagnostic(self) -> bool:
        """Whether the caller should consider capturing a screenshot."""
        return self.kind not in (OutcomeKind.SUCCESS, OutcomeKind.CANCELLED, OutcomeKind.CONFIGURATION_ERROR)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "success": self.success,
            "url": self.url,
            "reason": self.reason,
            "phase": self.phase,
            "failure_class": self.failure_class.value if self.failure_class else None,
            "confidence": self.confidence,
            "attempts": self.attempts,
            "elapsed_ms": self.elapsed_ms,
            "detection_method": self.detection_method.value if self.detection_method else None,
            "matched_indicator": self.assessment.matched_indicator if self.assessment else None,
            "error": str(self.error) if self.error else None,
        }
