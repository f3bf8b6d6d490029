"""
autosignin_core package: login form detection, credential entry and verification

Usage:
    from autosignin_core import LoginEngine, EngineSettings, Credentials

    engine = LoginEngine(EngineSettings.from_env())
    outcome = await engine.login(page, url, Credentials("alice", "s3cret", "CORP"))
    if not outcome.success:
        print(outcome.kind.value, outcome.reason)
"""
from .config import EngineSettings
from .credential_entry import CredentialEntryEngine
from .detection import FormDetector
from .domain import DomainFieldResolver
from .engine import LoginEngine
from .error_handler import classify_error, format_user_friendly_error
from .exceptions import (
    ConfigurationError,
    CredentialEntryError,
    DriverError,
    FailureClass,
    FormNotFoundError,
    InvalidCredentialsError,
    LoginCancelledError,
    LoginError,
    PhaseTimeoutError,
    RetryExhaustedError,
    VerificationAmbiguousError,
)
from .metrics import DetectionMetricsRecorder
from .models import (
    Credentials,
    DetectionMethod,
    DomainDirective,
    FormElements,
    LoginAssessmentResult,
    LoginOutcome,
    LoginPageConfiguration,
    OutcomeKind,
    PhaseTimeouts,
    RetryPolicy,
)
from .page_configs import ConfigurationSet
from .progressive import MonitorState, ProgressiveFieldMonitor
from .retry import RetryOrchestrator
from .verifier import LoginVerifier

__all__ = [
    # Engine
    "LoginEngine",
    "EngineSettings",
    "Credentials",
    "LoginOutcome",
    "OutcomeKind",
    # Components
    "FormDetector",
    "ProgressiveFieldMonitor",
    "MonitorState",
    "DomainFieldResolver",
    "CredentialEntryEngine",
    "LoginVerifier",
    "RetryOrchestrator",
    "DetectionMetricsRecorder",
    # Data model
    "ConfigurationSet",
    "LoginPageConfiguration",
    "FormElements",
    "DetectionMethod",
    "DomainDirective",
    "LoginAssessmentResult",
    "RetryPolicy",
    "PhaseTimeouts",
    # Errors
    "FailureClass",
    "LoginError",
    "FormNotFoundError",
    "CredentialEntryError",
    "PhaseTimeoutError",
    "VerificationAmbiguousError",
    "InvalidCredentialsError",
    "ConfigurationError",
    "LoginCancelledError",
    "DriverError",
    "RetryExhaustedError",
    "classify_error",
    "format_user_friendly_error",
]

__version__ = "1.0.0"
