#!/usr/bin/env python3
"""
autosignin CLI - log in to a web page from the command line

Usage:
    autosignin https://intranet.example.com/login -u alice -d CORP
    AUTOSIGNIN_PASSWORD=... autosignin https://app.example.com/login -u alice --config logins.yaml

Exit codes:
    0    logged in
    1    login failed (rejected credentials, no form, entry failure, timeout, ambiguous)
    2    browser or unexpected error
    3    configuration error
    130  cancelled
"""

import argparse
import asyncio
import json
import os
import signal
import sys
from dataclasses import replace
from datetime import datetime
from pathlib import Path
from typing import Optional

from playwright.async_api import Error as PlaywrightError

from .browser import BrowserSession
from .config import EngineSettings
from .diagnostics import enable_diagnostics, get_logger
from .engine import LoginEngine
from .exceptions import DriverError
from .models import Credentials, LoginOutcome, OutcomeKind

logger = get_logger(__name__)

EXIT_CODES = {
    OutcomeKind.SUCCESS: 0,
    OutcomeKind.INVALID_CREDENTIALS: 1,
    OutcomeKind.FORM_NOT_FOUND: 1,
    OutcomeKind.CREDENTIAL_ENTRY_FAILED: 1,
    OutcomeKind.TIMEOUT: 1,
    OutcomeKind.AMBIGUOUS: 1,
    OutcomeKind.DRIVER_FAILURE: 2,
    OutcomeKind.UNEXPECTED_ERROR: 2,
    OutcomeKind.CONFIGURATION_ERROR: 3,
    OutcomeKind.CANCELLED: 130,
}


def exit_code_for(outcome: Optional[LoginOutcome]) -> int:
    if outcome is None:
        return 2
    return EXIT_CODES.get(outcome.kind, 2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autosignin",
        description="autosignin - detect, fill and verify a web login form",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="Exit codes:" + __doc__.split("Exit codes:", 1)[1],
    )
    parser.add_argument("url", help="Login page URL")
    parser.add_argument("--username", "-u", required=True, help="Username")
    parser.add_argument("--password", "-p", help="Password (default: $AUTOSIGNIN_PASSWORD)")
    parser.add_argument("--domain", "-d", default=None,
                        help="Domain / tenant; 'none' skips the domain field")
    parser.add_argument("--config", "-c", help="Login page configuration file (JSON or YAML)")
    parser.add_argument("--attempts", type=int, help="Additional attempts after the first")
    parser.add_argument("--headful", action="store_true", help="Show the browser window")
    parser.add_argument("--kiosk", action="store_true", help="Open the browser in kiosk mode (headful only)")
    parser.add_argument("--ignore-cert-errors", action="store_true", help="Accept invalid TLS certificates")
    parser.add_argument("--log-dir", help="Write a markdown run log into this directory")
    parser.add_argument("--screenshot-dir", help="Save a screenshot here when the login fails")
    parser.add_argument("--json", action="store_true", help="Print the outcome as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--quiet", "-q", action="store_true", help="Quiet mode")
    return parser


def _configure_diagnostics(args):
    if args.verbose:
        enable_diagnostics("DEBUG")
    elif args.quiet:
        enable_diagnostics("ERROR")
    else:
        enable_diagnostics("INFO")


def settings_from_args(args, base: Optional[EngineSettings] = None) -> EngineSettings:
    settings = base or EngineSettings.from_env()
    overrides = {}
    if args.config:
        overrides["config_file"] = args.config
    if args.attempts is not None:
        overrides["retry_attempts"] = args.attempts
    if args.headful:
        overrides["headless"] = False
    if args.verbose:
        overrides["debug"] = True
    return replace(settings, **overrides) if overrides else settings


async def _capture_screenshot(page, directory: str) -> Optional[str]:
    path = Path(directory)
    path.mkdir(parents=True, exist_ok=True)
    target = path / f"login-failure-{datetime.now().strftime('%Y%m%d-%H%M%S')}.png"
    try:
        await page.screenshot(path=str(target), full_page=True)
    except PlaywrightError as e:
        logger.warning(f"Could not capture screenshot: {e}")
        return None
    return str(target)


async def run(args) -> int:
    password = args.password if args.password is not None else os.getenv("AUTOSIGNIN_PASSWORD")
    if not password:
        logger.error("No password given (use --password or AUTOSIGNIN_PASSWORD)")
        return 3

    settings = settings_from_args(args)
    credentials = Credentials(args.username, password, args.domain)

    run_logger = None
    if args.log_dir:
        from autosignin_logs import create_run_logger
        run_logger = create_run_logger(
            f"{args.username}" + (f" ({args.domain})" if args.domain else ""),
            url=args.url,
            command_line=f"autosignin {args.url} -u {args.username}",
            log_dir=args.log_dir,
        )

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        pass

    engine = LoginEngine(settings, run_logger=run_logger)
    outcome: Optional[LoginOutcome] = None
    async with BrowserSession(headless=settings.headless, kiosk=args.kiosk,
                              ignore_https_errors=args.ignore_cert_errors) as session:
        try:
            await session.page.goto(args.url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            logger.error(f"Could not open {args.url}: {e}")
            return 2
        try:
            outcome = await engine.login(session.page, args.url, credentials, cancel_event=cancel_event)
        except DriverError as e:
            outcome = e.outcome
            logger.error(f"Browser failure: {e}")

        if outcome is not None and outcome.needs_diagnostic and args.screenshot_dir:
            shot = await _capture_screenshot(session.page, args.screenshot_dir)
            if shot:
                outcome.context["screenshot"] = shot
                logger.info(f"Saved failure screenshot to {shot}")

    if outcome is not None:
        if args.json:
            data = outcome.to_dict()
            data["context"] = {k: str(v) for k, v in outcome.context.items()}
            print(json.dumps(data, indent=2, ensure_ascii=False))
        elif outcome.success:
            print(f"✅ Logged in to {outcome.url} (confidence {outcome.confidence})")
        else:
            print(f"❌ {outcome.kind.value}: {outcome.reason}")
    return exit_code_for(outcome)


def main(argv=None) -> int:
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_diagnostics(args)
    try:
        return asyncio.run(run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
