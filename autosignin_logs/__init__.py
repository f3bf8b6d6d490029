"""
autosignin_logs - Markdown run logs for autosignin

Usage:
    from autosignin_logs import create_run_logger

    run_logger = create_run_logger("alice@intranet", url="https://intranet.example.com/login")
    engine = LoginEngine(settings, run_logger=run_logger)
"""

from .run_logger import RunLogger, create_run_logger

__all__ = [
    'RunLogger',
    'create_run_logger',
]

__version__ = '1.0.0'
