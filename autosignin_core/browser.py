#!/usr/bin/env python3
"""
Chromium launcher for command line logins.

    async with BrowserSession(headless=False) as session:
        outcome = await engine.login(session.page, url, credentials)
"""

import logging
import subprocess
import sys
from pathlib import Path
from typing import List, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

logger = logging.getLogger(__name__)


def _ensure_playwright_browsers() -> None:
    """Check if Playwright's Chromium is installed, install it if missing."""
    cache_dir = Path.home() / ".cache" / "ms-playwright"
    chromium_dirs = list(cache_dir.glob("chromium*")) if cache_dir.exists() else []
    if chromium_dirs:
        return

    logger.info("🔧 Playwright browsers not found. Installing Chromium...")
    try:
        result = subprocess.run(
            [sys.executable, "-m", "playwright", "install", "chromium"],
            capture_output=True,
            text=True,
            timeout=300,
        )
        if result.returncode == 0:
            logger.info("✅ Playwright Chromium installed")
        else:
            logger.warning(f"⚠️ Playwright install warning: {result.stderr[:200]}")
    except subprocess.TimeoutExpired:
        logger.warning("⚠️ Playwright install timed out, continuing anyway...")
    except OSError as e:
        logger.warning(f"⚠️ Failed to auto-install Playwright: {e}")


class BrowserSession:
    """One Chromium browser, context and page; closed on exit."""

    def __init__(
        self,
        headless: bool = True,
        kiosk: bool = False,
        ignore_https_errors: bool = False,
        extra_args: Optional[List[str]] = None,
    ):
        self.headless = headless
        self.kiosk = kiosk
        self.ignore_https_errors = ignore_https_errors
        self.extra_args = list(extra_args or [])
        self._playwright = None
        self.browser = None
        self.context = None
        self.page = None

    def launch_args(self) -> dict:
        args = [
            "--no-sandbox",
            "--disable-dev-shm-usage",
            "--disable-blink-features=AutomationControlled",
        ]
        if self.kiosk and not self.headless:
            args.append("--kiosk")
        args.extend(self.extra_args)
        return {"headless": bool(self.headless), "args": args}

    async def start(self) -> "BrowserSession":
        _ensure_playwright_browsers()
        self._playwright = await async_playwright().start()
        self.browser = await self._playwright.chromium.launch(**self.launch_args())
        self.context = await self.browser.new_context(ignore_https_errors=self.ignore_https_errors)
        self.page = await self.context.new_page()
        return self

    async def close(self) -> None:
        for closer in (self.context, self.browser):
            if closer is None:
                continue
            try:
                await closer.close()
            except PlaywrightError as e:
                logger.debug(f"Ignoring error while closing browser: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
        self._playwright = self.browser = self.context = self.page = None

    async def __aenter__(self) -> "BrowserSession":
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
