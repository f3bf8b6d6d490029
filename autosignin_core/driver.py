"""
Browser driver helpers.

Thin wrappers over the Playwright async API (Page / Frame / ElementHandle)
used by every engine component. Anything exposing `query_selector_all` can
serve as a search context, which lets detection run unchanged inside child
frames and shadow hosts.

Playwright errors are translated here:
- closed page/browser, crashed target, lost connection -> DriverError (fatal)
- detached element, timeouts, net:: failures         -> transient
"""

import logging
from typing import Any, Iterable, List, Optional, Tuple

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .exceptions import DriverError

logger = logging.getLogger(__name__)


FATAL_DRIVER_PATTERNS = (
    "target page, context or browser has been closed",
    "target closed",
    "browser has been closed",
    "browser closed",
    "page closed",
    "page has been closed",
    "context has been closed",
    "connection closed",
    "browser has disconnected",
    "crashed",
    "protocol error",
)

STALE_ELEMENT_PATTERNS = (
    "not attached to the dom",
    "element is detached",
    "execution context was destroyed",
    "stale element",
    "cannot find context with specified id",
)

NOT_INTERACTABLE_PATTERNS = (
    "element is not visible",
    "element is not enabled",
    "element is not editable",
    "intercepts pointer events",
    "element is outside of the viewport",
    "not an <input>",
    "waiting for element to be visible",
)


def _message(error: BaseException) -> str:
    return str(error).lower()


def is_fatal_driver_error(error: BaseException) -> bool:
    if isinstance(error, DriverError):
        return True
    msg = _message(error)
    return any(p in msg for p in FATAL_DRIVER_PATTERNS)


def is_stale_element_error(error: BaseException) -> bool:
    msg = _message(error)
    return any(p in msg for p in STALE_ELEMENT_PATTERNS)


def is_not_interactable_error(error: BaseException) -> bool:
    msg = _message(error)
    return any(p in msg for p in NOT_INTERACTABLE_PATTERNS)


def raise_if_fatal(error: BaseException, phase: Optional[str] = None) -> None:
    """Re-raise driver crashes as DriverError; return for anything else."""
    if isinstance(error, DriverError):
        raise error
    if is_fatal_driver_error(error):
        raise DriverError(f"Browser driver failure: {error}", phase=phase) from error


async def query_all(context, selector: str) -> List[Any]:
    """
    All elements matching `selector` in `context`.

    Invalid selectors and detached contexts yield an empty list; fatal driver
    errors propagate as DriverError.
    """
    try:
        return list(await context.query_selector_all(selector) or [])
    except PlaywrightError as e:
        raise_if_fatal(e)
        logger.debug(f"Selector {selector!r} failed: {e}")
        return []


async def is_usable(element) -> bool:
    """Displayed and enabled; a detached element is simply not usable."""
    try:
        return bool(await element.is_visible()) and bool(await element.is_enabled())
    except PlaywrightError as e:
        raise_if_fatal(e)
        return False


async def is_displayed(element) -> bool:
    try:
        return bool(await element.is_visible())
    except PlaywrightError as e:
        raise_if_fatal(e)
        return False


async def same_element(a, b) -> bool:
    """Handles for the same DOM node are distinct Python objects in Playwright."""
    if a is None or b is None:
        return False
    if a is b:
        return True
    try:
        return bool(await a.evaluate("(a, b) => a === b", b))
    except PlaywrightError as e:
        raise_if_fatal(e)
        return False


async def contains_element(elements: Iterable[Any], candidate) -> bool:
    for element in elements:
        if await same_element(element, candidate):
            return True
    return False


async def first_usable(
    context,
    selectors: Iterable[str],
    exclude: Iterable[Any] = (),
) -> Tuple[Optional[Any], Optional[str]]:
    """
    First element, in selector order, that is displayed, enabled and not in
    `exclude`. Returns (element, selector) or (None, None).
    """
    excluded = [e for e in exclude if e is not None]
    for selector in selectors:
        for element in await query_all(context, selector):
            if not await is_usable(element):
                continue
            if excluded and await contains_element(excluded, element):
                continue
            return element, selector
    return None, None


async def tag_name(element) -> str:
    try:
        return str(await element.evaluate("el => el.tagName.toLowerCase()") or "").lower()
    except PlaywrightError as e:
        raise_if_fatal(e)
        return ""


async def page_text(page, max_chars: int = 20000) -> str:
    """Visible body text, falling back to raw markup."""
    try:
        text = await page.inner_text("body")
    except PlaywrightError as e:
        raise_if_fatal(e)
        try:
            text = await page.content()
        except PlaywrightError as e2:
            raise_if_fatal(e2)
            text = ""
    text = text or ""
    if len(text) > max_chars:
        half = max_chars // 2
        text = text[:half] + " " + text[-half:]
    return text


def current_url(page) -> str:
    try:
        return page.url or ""
    except PlaywrightError as e:
        raise_if_fatal(e)
        return ""


async def child_frames(page) -> List[Any]:
    """Direct child frames of the page's main frame."""
    try:
        main = page.main_frame
        return list(main.child_frames)
    except PlaywrightError as e:
        raise_if_fatal(e)
        return []
    except AttributeError:
        return []


SHADOW_HOSTS_SCRIPT = """
(root) => {
  const hosts = [];
  const visit = (node) => {
    for (const el of node.querySelectorAll('*')) {
      if (el.shadowRoot) {
        hosts.push(el);
        visit(el.shadowRoot);
      }
    }
  };
  visit(root || document);
  return hosts;
}
"""


async def shadow_hosts(context) -> List[Any]:
    """Elements hosting an open shadow root, including nested ones."""
    try:
        handle = await context.evaluate_handle(SHADOW_HOSTS_SCRIPT)
    except PlaywrightError as e:
        raise_if_fatal(e)
        return []
    except AttributeError:
        return []
    hosts = []
    try:
        properties = await handle.get_properties()
        for prop in properties.values():
            element = prop.as_element()
            if element is not None:
                hosts.append(element)
    except PlaywrightError as e:
        raise_if_fatal(e)
    finally:
        try:
            await handle.dispose()
        except PlaywrightError:
            pass
    return hosts


async def wait_until_loaded(page, timeout: Optional[float] = None) -> None:
    """
    Wait for DOMContentLoaded on `page`, at most `timeout` seconds.

    A page that is still loading when the timeout passes is searched anyway.
    """
    timeout_ms = 0 if timeout is None else max(1, int(timeout * 1000))
    try:
        await page.wait_for_load_state("domcontentloaded", timeout=timeout_ms)
    except PlaywrightTimeoutError:
        logger.debug("Page still loading; detecting anyway")
    except PlaywrightError as e:
        raise_if_fatal(e, phase="detection")
        logger.debug(f"Load state wait failed: {e}")
    except AttributeError:
        pass


async def popup_pages(page) -> List[Any]:
    """Other open pages of the page's browser context, e.g. a sign-in popup."""
    try:
        pages = list(page.context.pages)
        return [p for p in pages if p is not page and not p.is_closed()]
    except PlaywrightError as e:
        raise_if_fatal(e)
        return []
    except AttributeError:
        return []
