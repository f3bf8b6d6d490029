import logging
import os
from typing import Dict

PACKAGE_LOGGER = "autosignin_core"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_configured: Dict[str, logging.Logger] = {}


def _env_level() -> int:
    if str(os.getenv("AUTOSIGNIN_DEBUG", "false")).lower() == "true":
        return logging.DEBUG
    return getattr(logging, os.getenv("AUTOSIGNIN_LOG_LEVEL", "INFO").upper(), logging.INFO)


def get_logger(name: str = PACKAGE_LOGGER) -> logging.Logger:
    """Return the package logger, attaching a stream handler once.

    Module loggers under autosignin_core propagate here, so only the package
    logger owns a handler. AUTOSIGNIN_DEBUG=true or AUTOSIGNIN_LOG_LEVEL set
    the starting level.
    """
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    root = _configured.get(PACKAGE_LOGGER)
    if root is None:
        root = logging.getLogger(PACKAGE_LOGGER)
        if not root.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(handler)
            root.setLevel(_env_level())
            root.propagate = False
        _configured[PACKAGE_LOGGER] = root
    return logging.getLogger(name)


def enable_diagnostics(level: str = "INFO") -> None:
    """Set the level of every autosignin_core logger."""
    root = get_logger()
    numeric = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric)
    for handler in root.handlers:
        handler.setLevel(numeric)
