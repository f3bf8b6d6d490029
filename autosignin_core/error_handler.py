"""
Error Classifier and User-Friendly Error Handler.

Maps any exception raised during a login attempt onto the
transient / permanent / fatal taxonomy that drives retries, and converts
technical errors into readable messages with actionable suggestions.
"""

import asyncio
from typing import Dict, Optional
import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .driver import is_fatal_driver_error, is_stale_element_error
from .exceptions import FailureClass, LoginError

logger = logging.getLogger(__name__)


# Error mappings: pattern -> user-friendly info. First match wins, so the
# fatal driver patterns sit above the generic timeout/network ones.
ERROR_MAPPINGS = {
    # Driver failures
    "has been closed": {
        "message": "The browser or page was closed during the login",
        "suggestion": "Restart the browser session and run the login again",
        "severity": "critical",
        "failure_class": FailureClass.FATAL,
    },
    "target closed": {
        "message": "The browser tab went away during the login",
        "suggestion": "Restart the browser session and run the login again",
        "severity": "critical",
        "failure_class": FailureClass.FATAL,
    },
    "browser has disconnected": {
        "message": "Lost the connection to the browser",
        "suggestion": "Check that the browser process is still running",
        "severity": "critical",
        "failure_class": FailureClass.FATAL,
    },
    "crashed": {
        "message": "The browser crashed",
        "suggestion": "Restart the browser session; check available memory",
        "severity": "critical",
        "failure_class": FailureClass.FATAL,
    },

    # Stale handles
    "not attached to the dom": {
        "message": "A form field was replaced while it was being used",
        "suggestion": "The page re-rendered; the login will be retried",
        "severity": "warning",
        "failure_class": FailureClass.TRANSIENT,
    },
    "execution context was destroyed": {
        "message": "The page navigated while it was being inspected",
        "suggestion": "The login will be retried once the page settles",
        "severity": "warning",
        "failure_class": FailureClass.TRANSIENT,
    },

    # Network/timeout errors
    "timeout": {
        "message": "The page took too long to respond",
        "suggestion": "Check the network connection and whether the site is reachable",
        "severity": "warning",
        "failure_class": FailureClass.TRANSIENT,
    },
    "net::": {
        "message": "The page could not be loaded",
        "suggestion": "Check the URL and the network connection",
        "severity": "error",
        "failure_class": FailureClass.TRANSIENT,
    },
    "connection refused": {
        "message": "Could not connect to the site",
        "suggestion": "Check that the URL is correct and the server is up",
        "severity": "error",
        "failure_class": FailureClass.TRANSIENT,
    },
    "connection reset": {
        "message": "The connection was reset by the server",
        "suggestion": "Try again in a moment",
        "severity": "error",
        "failure_class": FailureClass.TRANSIENT,
    },
    "network error": {
        "message": "Network error",
        "suggestion": "Check the network connection and try again",
        "severity": "error",
        "failure_class": FailureClass.TRANSIENT,
    },

    # Login failures
    "invalid credentials": {
        "message": "The site rejected the username or password",
        "suggestion": "Check the credentials; retrying will not help",
        "severity": "error",
        "failure_class": FailureClass.PERMANENT,
    },
    "no login form found": {
        "message": "No login form was found on the page",
        "suggestion": "Check that the URL points at a login page or add a page configuration",
        "severity": "error",
        "failure_class": FailureClass.PERMANENT,
    },
    "configuration": {
        "message": "A login page configuration is invalid",
        "suggestion": "Fix the configuration file and run again",
        "severity": "critical",
        "failure_class": FailureClass.PERMANENT,
    },
    "permission denied": {
        "message": "Permission denied",
        "suggestion": "Check file permissions or run with the appropriate rights",
        "severity": "error",
        "failure_class": FailureClass.PERMANENT,
    },
}

SEVERITY_BY_CLASS = {
    FailureClass.TRANSIENT: "warning",
    FailureClass.PERMANENT: "error",
    FailureClass.FATAL: "critical",
}


def _mapping_for(error: BaseException) -> Optional[Dict]:
    error_str = str(error).lower()
    for pattern, friendly_error in ERROR_MAPPINGS.items():
        if pattern in error_str:
            return friendly_error
    return None


def classify_error(error: BaseException) -> FailureClass:
    """
    Classify an exception for retry purposes.

    Engine errors carry their own class; driver and builtin errors are
    classified by type, then by message pattern. Anything unrecognised is
    permanent so that unknown bugs are not retried blindly.
    """
    if isinstance(error, LoginError):
        return error.failure_class
    if isinstance(error, PlaywrightTimeoutError):
        return FailureClass.TRANSIENT
    if isinstance(error, PlaywrightError):
        if is_fatal_driver_error(error):
            return FailureClass.FATAL
        if is_stale_element_error(error):
            return FailureClass.TRANSIENT
        mapping = _mapping_for(error)
        return mapping["failure_class"] if mapping else FailureClass.PERMANENT
    if isinstance(error, (asyncio.TimeoutError, TimeoutError, ConnectionError)):
        return FailureClass.TRANSIENT
    mapping = _mapping_for(error)
    if mapping:
        return mapping["failure_class"]
    return FailureClass.PERMANENT


def should_retry_error(error: BaseException) -> bool:
    return classify_error(error) is FailureClass.TRANSIENT


def get_error_category(error: BaseException) -> str:
    """
    Categorize error type.

    Returns:
        Category name: "driver", "network", "login", "form", "config", "unknown"
    """
    error_str = str(error).lower()

    if is_fatal_driver_error(error):
        return "driver"
    elif any(k in error_str for k in ["timeout", "connection", "network", "net::"]):
        return "network"
    elif any(k in error_str for k in ["credential", "password", "denied"]):
        return "login"
    elif any(k in error_str for k in ["form", "field", "element", "selector"]):
        return "form"
    elif "configuration" in error_str:
        return "config"
    else:
        return "unknown"


def format_user_friendly_error(
    error: BaseException,
    context: str = "general",
    technical_details: Optional[str] = None
) -> Dict:
    """
    Convert technical error to user-friendly message.

    Args:
        error: The exception that occurred
        context: Phase where error occurred (e.g., "detection", "entry")
        technical_details: Additional technical information

    Returns:
        Dictionary with user-friendly error information:
        {
            "message": str,          # User-friendly message
            "suggestion": str,       # Actionable suggestion
            "technical": str,        # Technical details
            "severity": str,         # "critical", "error", "warning"
            "failure_class": str,    # "transient", "permanent", "fatal"
            "can_retry": bool        # Whether retry might help
        }
    """
    failure_class = classify_error(error)
    mapping = _mapping_for(error)
    if mapping:
        result = {k: v for k, v in mapping.items() if k != "failure_class"}
        logger.debug(f"Mapped error to user-friendly: {result['message']}")
    else:
        result = {
            "message": "An unexpected error occurred during the login",
            "suggestion": "Check the technical log or try again",
            "severity": SEVERITY_BY_CLASS[failure_class],
        }
    result["technical"] = technical_details or str(error)
    result["failure_class"] = failure_class.value
    result["can_retry"] = failure_class is FailureClass.TRANSIENT
    result["context"] = context
    return result


def format_error_for_logging(error: BaseException, context: str = "") -> str:
    """
    Format error for structured logging.

    Args:
        error: The exception
        context: Additional context

    Returns:
        Formatted error string for logs
    """
    friendly = format_user_friendly_error(error, context)

    lines = [
        f"❌ {friendly['message']} [{friendly['failure_class']}]",
        f"💡 {friendly['suggestion']}",
        f"🔧 Technical: {friendly['technical']}"
    ]

    if context:
        lines.insert(0, f"📍 Context: {context}")

    return "\n".join(lines)
