"""
Configuration Logger - Centralized settings mapping and logging

Single source of truth for how EngineSettings fields map to environment
variables, plus a helper that writes them into a run logger at the start
of a login run.
"""

from typing import Any, Dict, Optional

from .config import EngineSettings


def get_all_config_variables(settings: EngineSettings) -> Dict[str, Any]:
    """
    Get all configuration variables with their env names and current values.

    Returns:
        Dict mapping env variable names to their current values
    """
    return {
        # Phase deadlines
        "AUTOSIGNIN_DETECTION_TIMEOUT": settings.detection_timeout,
        "AUTOSIGNIN_ENTRY_TIMEOUT": settings.entry_timeout,
        "AUTOSIGNIN_VERIFICATION_TIMEOUT": settings.verification_timeout,
        "AUTOSIGNIN_OVERALL_TIMEOUT": settings.overall_timeout,

        # Polling
        "AUTOSIGNIN_POLL_INTERVAL_MS": int(settings.poll_interval * 1000),
        "AUTOSIGNIN_VERIFICATION_SETTLE_MS": int(settings.verification_settle * 1000),

        # Progressive forms
        "AUTOSIGNIN_PROGRESSIVE_STAGE_TIMEOUT": settings.progressive_stage_timeout,
        "AUTOSIGNIN_PROGRESSIVE_MAX_TIMEOUT": settings.progressive_max_timeout,

        # Typing
        "AUTOSIGNIN_TYPING_MIN_DELAY_MS": settings.typing_min_delay_ms,
        "AUTOSIGNIN_TYPING_MAX_DELAY_MS": settings.typing_max_delay_ms,
        "AUTOSIGNIN_POST_ENTRY_DELAY_MS": settings.post_entry_delay_ms,

        # Domain
        "AUTOSIGNIN_DOMAIN_SKIP_SENTINEL": settings.domain_skip_sentinel,
        "AUTOSIGNIN_DEFERRED_DOMAIN_TIMEOUT": settings.deferred_domain_timeout,

        # Detection
        "AUTOSIGNIN_MAX_FRAME_DEPTH": settings.max_frame_depth,

        # Retry
        "AUTOSIGNIN_RETRY_ATTEMPTS": settings.retry_attempts,
        "AUTOSIGNIN_RETRY_INITIAL_DELAY": settings.retry_initial_delay,
        "AUTOSIGNIN_RETRY_MAX_DELAY": settings.retry_max_delay,
        "AUTOSIGNIN_RETRY_MULTIPLIER": settings.retry_multiplier,
        "AUTOSIGNIN_RETRY_JITTER": settings.retry_jitter,
        "AUTOSIGNIN_NAVIGATE_ON_RETRY": settings.navigate_on_retry,

        # Outer surfaces
        "AUTOSIGNIN_HEADLESS": settings.headless,
        "AUTOSIGNIN_DEBUG": settings.debug,
        "AUTOSIGNIN_CONFIG_FILE": settings.config_file or "None",
    }


def log_all_config(run_logger, settings: EngineSettings, runtime: Optional[Dict[str, Any]] = None) -> None:
    """
    Log all configuration variables to run logger.

    Args:
        run_logger: Logger instance with log_kv method
        settings: Active engine settings
        runtime: Optional per-run overrides (attempt count, url, ...)
    """
    if run_logger is None:
        return
    for key, value in get_all_config_variables(settings).items():
        run_logger.log_kv(key, str(value))
    if runtime:
        for key, value in sorted(runtime.items()):
            run_logger.log_kv(key, str(value))
