#!/usr/bin/env python3
from dataclasses import dataclass
import os
from typing import Optional
from dotenv import load_dotenv

from .models import PhaseTimeouts, RetryPolicy

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ["true", "1", "yes"]


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class EngineSettings:
    """
    Engine configuration.

    Immutable; build once at the boundary (usually via `from_env()`) and pass
    it to the components that need it.
    """
    # Phase deadlines (seconds)
    detection_timeout: float = 10.0
    entry_timeout: float = 15.0
    verification_timeout: float = 10.0
    # whole login across retries; 0 means unbounded
    overall_timeout: float = 0.0

    # Polling
    poll_interval: float = 0.25
    verification_settle: float = 1.0

    # Progressive forms
    progressive_stage_timeout: float = 5.0
    progressive_max_timeout: float = 20.0

    # Typing
    typing_min_delay_ms: int = 10
    typing_max_delay_ms: int = 30
    post_entry_delay_ms: int = 50

    # Domain handling
    domain_skip_sentinel: str = "none"
    deferred_domain_timeout: float = 3.0

    # Detection
    max_frame_depth: int = 3

    # Retry
    retry_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 30.0
    retry_multiplier: float = 2.0
    retry_jitter: bool = True
    navigate_on_retry: bool = True

    # Outer surfaces
    headless: bool = True
    debug: bool = False
    config_file: Optional[str] = None

    @property
    def timeouts(self) -> PhaseTimeouts:
        return PhaseTimeouts(
            detection=self.detection_timeout,
            entry=self.entry_timeout,
            verification=self.verification_timeout,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            attempt_count=self.retry_attempts,
            initial_delay=self.retry_initial_delay,
            max_delay=self.retry_max_delay,
            multiplier=self.retry_multiplier,
            jitter=self.retry_jitter,
        )

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            detection_timeout=_env_float("AUTOSIGNIN_DETECTION_TIMEOUT", "10"),
            entry_timeout=_env_float("AUTOSIGNIN_ENTRY_TIMEOUT", "15"),
            verification_timeout=_env_float("AUTOSIGNIN_VERIFICATION_TIMEOUT", "10"),
            overall_timeout=_env_float("AUTOSIGNIN_OVERALL_TIMEOUT", "0"),
            poll_interval=_env_int("AUTOSIGNIN_POLL_INTERVAL_MS", "250") / 1000,
            verification_settle=_env_int("AUTOSIGNIN_VERIFICATION_SETTLE_MS", "1000") / 1000,
            progressive_stage_timeout=_env_float("AUTOSIGNIN_PROGRESSIVE_STAGE_TIMEOUT", "5"),
            progressive_max_timeout=_env_float("AUTOSIGNIN_PROGRESSIVE_MAX_TIMEOUT", "20"),
            typing_min_delay_ms=_env_int("AUTOSIGNIN_TYPING_MIN_DELAY_MS", "10"),
            typing_max_delay_ms=_env_int("AUTOSIGNIN_TYPING_MAX_DELAY_MS", "30"),
            post_entry_delay_ms=_env_int("AUTOSIGNIN_POST_ENTRY_DELAY_MS", "50"),
            domain_skip_sentinel=os.getenv("AUTOSIGNIN_DOMAIN_SKIP_SENTINEL", "none"),
            deferred_domain_timeout=_env_float("AUTOSIGNIN_DEFERRED_DOMAIN_TIMEOUT", "3"),
            max_frame_depth=_env_int("AUTOSIGNIN_MAX_FRAME_DEPTH", "3"),
            retry_attempts=_env_int("AUTOSIGNIN_RETRY_ATTEMPTS", "3"),
            retry_initial_delay=_env_float("AUTOSIGNIN_RETRY_INITIAL_DELAY", "1.0"),
            retry_max_delay=_env_float("AUTOSIGNIN_RETRY_MAX_DELAY", "30.0"),
            retry_multiplier=_env_float("AUTOSIGNIN_RETRY_MULTIPLIER", "2.0"),
            retry_jitter=_env_bool("AUTOSIGNIN_RETRY_JITTER", "true"),
            navigate_on_retry=_env_bool("AUTOSIGNIN_NAVIGATE_ON_RETRY", "true"),
            headless=_env_bool("AUTOSIGNIN_HEADLESS", "true"),
            debug=_env_bool("AUTOSIGNIN_DEBUG", "false"),
            config_file=os.getenv("AUTOSIGNIN_CONFIG_FILE") or None,
        )
