"""Pytest configuration ensuring local packages are importable.

Also provides an in-memory stand-in for a Playwright page serving a small
tag-management site, so sessions can be exercised without a browser.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Pattern
from urllib.parse import urlparse

import pytest

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from playwright.async_api import Error as PlaywrightError  # noqa: E402
from playwright.async_api import TimeoutError as PlaywrightTimeoutError  # noqa: E402

from driver.config import RunConfig  # noqa: E402
from driver.session import BrowserSession  # noqa: E402

BASE_URL = "http://localhost:62449"


@dataclass
class FakeElement:
    tag: str
    text: str
    href: Optional[str] = None
    # Detached from the DOM between lookup and click
    detached: bool = False


@dataclass
class FakeDocument:
    body: List[str]
    elements: List[FakeElement] = field(default_factory=list)
    status: int = 200
    # Number of DOM-idle probes that report "still mutating" after load
    busy_probes: int = 0
    has_body: bool = True


@dataclass
class FakeResponse:
    status: int


def tag_site() -> Dict[str, FakeDocument]:
    return {
        "/": FakeDocument(
            body=["トップページ", "タグ一覧", "カテゴリ一覧"],
            elements=[
                FakeElement("a", "鹿目まどか", "/tags/1"),
                FakeElement("a", "暁美ほむら", "/tags/2"),
                FakeElement("a", "魔法少女", "/categories/1"),
                FakeElement("a", "魔法少女 (契約済)", "/categories/2"),
            ],
        ),
        "/tags/1": FakeDocument(
            body=["タグ編集画面(鹿目まどか)"],
            elements=[FakeElement("button", "back to top", "/")],
        ),
        "/tags/2": FakeDocument(
            body=["タグ編集画面(暁美ほむら)"],
            elements=[FakeElement("button", "back to top", "/")],
        ),
        "/categories/1": FakeDocument(body=["カテゴリ編集画面(魔法少女)"]),
        "/categories/2": FakeDocument(body=["カテゴリ編集画面(魔法少女 (契約済))"]),
    }


class FakeLocator:
    def __init__(self, page: "FakePage", tag: str, pattern: Optional[Pattern[str]] = None, index: Optional[int] = None) -> None:
        self._page = page
        self._tag = tag
        self._pattern = pattern
        self._index = index

    def filter(self, *, has_text: Pattern[str]) -> "FakeLocator":
        return FakeLocator(self._page, self._tag, has_text)

    @property
    def first(self) -> "FakeLocator":
        return FakeLocator(self._page, self._tag, self._pattern, index=0)

    def _matches(self) -> List[FakeElement]:
        document = self._page.document
        if document is None:
            return []
        return [
            element
            for element in document.elements
            if element.tag == self._tag and (self._pattern is None or self._pattern.search(element.text))
        ]

    async def count(self) -> int:
        return len(self._matches())

    async def wait_for(self, *, state: str = "visible", timeout: Optional[float] = None) -> None:
        self._page.calls.append(("wait_for", self._tag, state))
        if not self._matches():
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self._tag}")

    async def click(self, *, timeout: Optional[float] = None) -> None:
        element = self._matches()[self._index or 0]
        self._page.calls.append(("click", element.tag, element.text))
        if element.detached:
            raise PlaywrightError("Element is not attached to the DOM")
        if element.href is not None:
            await self._page._load(self._page.resolve(element.href))


class FakeBodyLocator:
    def __init__(self, page: "FakePage") -> None:
        self._page = page

    async def count(self) -> int:
        document = self._page.document
        return 1 if document is not None and document.has_body else 0


class FakePage:
    """Just enough of ``playwright.async_api.Page`` for a BrowserSession."""

    def __init__(self, site: Optional[Dict[str, FakeDocument]] = None, *, base_url: str = BASE_URL) -> None:
        self.site = site if site is not None else tag_site()
        self.base_url = base_url
        self.url = "about:blank"
        self.document: Optional[FakeDocument] = None
        self.calls: List[tuple] = []
        self.default_timeout: Optional[float] = None
        self.default_navigation_timeout: Optional[float] = None
        self.hang_load = False
        self._busy_left = 0

    def resolve(self, href: str) -> str:
        return self.base_url + href if href.startswith("/") else href

    def set_default_timeout(self, timeout: float) -> None:
        self.default_timeout = timeout

    def set_default_navigation_timeout(self, timeout: float) -> None:
        self.default_navigation_timeout = timeout

    async def _load(self, url: str) -> FakeResponse:
        parsed = urlparse(url)
        if f"{parsed.scheme}://{parsed.netloc}" != self.base_url:
            raise PlaywrightError(f"net::ERR_CONNECTION_REFUSED at {url}")
        path = parsed.path or "/"
        document = self.site.get(path) or FakeDocument(body=["404 Not Found"], status=404)
        self.url = url
        self.document = document
        self._busy_left = document.busy_probes
        return FakeResponse(status=document.status)

    async def goto(self, url: str, *, wait_until: str = "load", timeout: Optional[float] = None) -> FakeResponse:
        self.calls.append(("goto", url, wait_until))
        if self.hang_load:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded navigating to {url}")
        return await self._load(url)

    async def inner_text(self, selector: str, *, timeout: Optional[float] = None) -> str:
        self.calls.append(("inner_text", selector))
        if self.document is None:
            return ""
        if not self.document.has_body:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")
        lines = list(self.document.body) + [element.text for element in self.document.elements]
        return "\n".join(lines)

    def locator(self, selector: str) -> Any:
        if selector == "body":
            return FakeBodyLocator(self)
        return FakeLocator(self, selector)

    async def wait_for_load_state(self, state: str = "load", *, timeout: Optional[float] = None) -> None:
        self.calls.append(("wait_for_load_state", state))
        if self.hang_load:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {state}")

    async def evaluate(self, script: str, arg: Any = None) -> bool:
        if self._busy_left:
            self._busy_left -= 1
            return False
        return True

    async def screenshot(self, *, path: str, full_page: bool = False) -> bytes:
        self.calls.append(("screenshot", path))
        Path(path).write_bytes(b"\x89PNG fake")
        return b"\x89PNG fake"


@pytest.fixture
def run_config(tmp_path: Path) -> RunConfig:
    return RunConfig(
        base_url=BASE_URL,
        expect_timeout_ms=50,
        settle_timeout_ms=200,
        action_timeout_ms=200,
        case_timeout_ms=2000,
        log_root=tmp_path,
    )


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()


@pytest.fixture
def session(run_config: RunConfig, fake_page: FakePage) -> BrowserSession:
    return BrowserSession(run_config, page=fake_page)


@pytest.fixture
def session_factory(run_config: RunConfig):
    """Factory producing a fresh fake-backed session per scenario group."""

    pages: List[FakePage] = []

    def factory(group: Any) -> BrowserSession:
        page = FakePage()
        pages.append(page)
        return BrowserSession(run_config, page=page)

    factory.pages = pages  # type: ignore[attr-defined]
    return factory
