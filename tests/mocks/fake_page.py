"""
In-memory stand-ins for Playwright Page / Frame / ElementHandle.

Selectors are matched by exact string: a test registers the elements a
selector should return and every other selector matches nothing.

    page = FakePage("https://intranet.example.com/login")
    user = page.add("input[name='username']", FakeElement())
    pw = page.add("input[type='password']", FakeElement(type="password"))
"""

from typing import Callable, Dict, List, Optional

from playwright.async_api import Error as PlaywrightError


class FakeElement:
    def __init__(self, tag: str = "input", visible: bool = True, enabled: bool = True,
                 text: str = "", options: Optional[List[Dict[str, str]]] = None, **attrs):
        self.tag = tag
        self.visible = visible
        self.enabled = enabled
        self.text = text
        self.options = options or []
        self.attrs = attrs
        self.value = ""
        self.selected: Optional[str] = None
        self.actions: List[tuple] = []
        self.errors: Dict[str, Exception] = {}
        self._once = set()
        self.on_input: Optional[Callable[["FakeElement"], None]] = None
        self.on_click: Optional[Callable[["FakeElement"], None]] = None
        self.on_press: Optional[Callable[["FakeElement", str], None]] = None
        self.registry: Dict[str, List["FakeElement"]] = {}

    def fail(self, method: str, error: Exception, once: bool = False) -> "FakeElement":
        self.errors[method] = error
        if once:
            self._once.add(method)
        return self

    def _maybe_fail(self, method: str) -> None:
        if method in self.errors:
            error = self.errors[method]
            if method in self._once:
                del self.errors[method]
                self._once.discard(method)
            raise error

    # Interaction log helpers
    def interactions(self) -> List[tuple]:
        return [a for a in self.actions if a[0] in ("fill", "type", "click", "press", "select_option")]

    def typed(self) -> str:
        return "".join(a[1] for a in self.actions if a[0] == "type")

    async def is_visible(self) -> bool:
        self._maybe_fail("is_visible")
        return self.visible

    async def is_enabled(self) -> bool:
        self._maybe_fail("is_enabled")
        return self.enabled

    async def fill(self, value: str) -> None:
        self._maybe_fail("fill")
        self.actions.append(("fill", value))
        self.value = value
        if value and self.on_input:
            self.on_input(self)

    async def type(self, text: str) -> None:
        self._maybe_fail("type")
        self.actions.append(("type", text))
        self.value += text
        if self.on_input:
            self.on_input(self)

    async def click(self) -> None:
        self._maybe_fail("click")
        self.actions.append(("click",))
        if self.on_click:
            self.on_click(self)

    async def press(self, key: str) -> None:
        self._maybe_fail("press")
        self.actions.append(("press", key))
        if self.on_press:
            self.on_press(self, key)

    async def select_option(self, value=None, **kwargs) -> List[str]:
        self._maybe_fail("select_option")
        self.actions.append(("select_option", value))
        self.selected = value
        return [value]

    async def inner_text(self) -> str:
        self._maybe_fail("inner_text")
        return self.text

    async def evaluate(self, script: str, arg=None):
        self._maybe_fail("evaluate")
        if "===" in script:
            return self is arg
        if "tagName" in script:
            return self.tag.upper()
        if "options" in script:
            return [dict(o) for o in self.options]
        if "dispatchEvent" in script:
            self.actions.append(("dispatch",))
            return None
        return None

    async def query_selector_all(self, selector: str) -> List["FakeElement"]:
        return list(self.registry.get(selector, []))

    async def evaluate_handle(self, script: str):
        return FakeHandle([])

    def add(self, selector: str, element: "FakeElement") -> "FakeElement":
        self.registry.setdefault(selector, []).append(element)
        return element

    def __repr__(self) -> str:
        return f"<FakeElement {self.tag} {self.attrs}>"


class FakeJSHandle:
    def __init__(self, element):
        self._element = element

    def as_element(self):
        return self._element


class FakeHandle:
    def __init__(self, elements: List[FakeElement]):
        self.elements = elements
        self.disposed = False

    async def get_properties(self):
        return {str(i): FakeJSHandle(e) for i, e in enumerate(self.elements)}

    async def dispose(self) -> None:
        self.disposed = True


class FakeFrame:
    """A child frame: its own selector registry, shadow hosts and children."""

    def __init__(self, name: str = "frame"):
        self.name = name
        self.registry: Dict[str, List[FakeElement]] = {}
        self.shadow: List[FakeElement] = []
        self.child_frames: List["FakeFrame"] = []

    def add(self, selector: str, element: FakeElement) -> FakeElement:
        self.registry.setdefault(selector, []).append(element)
        return element

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        return list(self.registry.get(selector, []))

    async def evaluate_handle(self, script: str):
        return FakeHandle(list(self.shadow))


class FakeBrowserContext:
    """Holds every page opened in one browser context, popups included."""

    def __init__(self):
        self.pages: List["FakePage"] = []


class FakePage(FakeFrame):
    """Top-level page; `main_frame.child_frames` lists the child frames."""

    def __init__(self, url: str = "https://intranet.example.com/login", body: str = "",
                 context: Optional[FakeBrowserContext] = None):
        super().__init__("main")
        self.context = context or FakeBrowserContext()
        self.context.pages.append(self)
        self.load_waits: List[str] = []
        self.url = url
        self.body = body
        self.navigations: List[str] = []
        self.closed = False
        self.on_goto: Optional[Callable[["FakePage", str], None]] = None
        self.screenshots: List[str] = []

    @property
    def main_frame(self) -> "FakePage":
        return self

    def open_popup(self, url: str, body: str = "") -> "FakePage":
        """A new window in the same browser context, as window.open would create."""
        return FakePage(url, body=body, context=self.context)

    def is_closed(self) -> bool:
        return self.closed

    async def wait_for_load_state(self, state: str = "load", timeout=None) -> None:
        self._check_open()
        self.load_waits.append(state)

    def remove(self, selector: str) -> None:
        self.registry.pop(selector, None)

    def _check_open(self) -> None:
        if self.closed:
            raise PlaywrightError("Target page, context or browser has been closed")

    async def query_selector_all(self, selector: str) -> List[FakeElement]:
        self._check_open()
        return await super().query_selector_all(selector)

    async def inner_text(self, selector: str) -> str:
        self._check_open()
        return self.body

    async def content(self) -> str:
        self._check_open()
        return f"<html><body>{self.body}</body></html>"

    async def goto(self, url: str, **kwargs) -> None:
        self._check_open()
        self.navigations.append(url)
        self.url = url
        if self.on_goto:
            self.on_goto(self, url)

    async def screenshot(self, path: str, **kwargs) -> None:
        self.screenshots.append(path)


def login_page(url: str = "https://intranet.example.com/login", with_submit: bool = True,
               with_domain: bool = False):
    """A plain login form found by the common-attribute selectors."""
    page = FakePage(url)
    username = page.add("input[name='username']", FakeElement(name="username"))
    password = page.add("input[type='password']", FakeElement(type="password"))
    submit = page.add("button[type='submit']", FakeElement("button", type="submit")) if with_submit else None
    domain = None
    if with_domain:
        domain = page.add("select[name='domain']", FakeElement("select", name="domain", options=[
            {"value": "", "text": "Select domain"},
            {"value": "CORP", "text": "Corporate"},
            {"value": "LAB", "text": "Laboratory"},
        ]))
    return page, {"username": username, "password": password, "submit": submit, "domain": domain}
