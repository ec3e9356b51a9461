"""Browser session controller used by scenario groups.

A session owns exactly one Playwright page.  Every operation is an explicit
coroutine bounded by a timeout from :class:`~driver.config.RunConfig`, and
Playwright failures are translated into the runner's own error kinds so that
case results never depend on Playwright's exception hierarchy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from acceptance.dsl.models import ClickTarget
from acceptance.errors import (
    AmbiguousElementError,
    ElementNotFoundError,
    NavigationError,
    SessionStateError,
    StepTimeoutError,
)

from .config import RunConfig
from .page_stability import wait_until_settled

log = logging.getLogger(__name__)


class SessionState(Enum):
    UNOPENED = "unopened"
    LOADING = "loading"
    READY = "ready"
    CLOSED = "closed"


@dataclass(slots=True, frozen=True)
class PageState:
    """Snapshot of the currently loaded page."""

    url: str
    text: str


class BrowserSession:
    """Single-page browser session shared by the cases of one group."""

    def __init__(
        self,
        config: RunConfig,
        *,
        browser: Optional[Browser] = None,
        page: Optional[Page] = None,
    ) -> None:
        if browser is None and page is None:
            raise ValueError("BrowserSession needs either a browser or a page")
        self.config = config
        self._browser = browser
        self._context: Optional[BrowserContext] = None
        self._page = page
        self._owns_page = page is None
        self._state = SessionState.UNOPENED
        self._opened = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def page(self) -> Page:
        if self._page is None:
            raise SessionStateError("session has no page; call open() first")
        return self._page

    async def __aenter__(self) -> "BrowserSession":
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def open(self) -> None:
        """Create the browser context and page if the session owns them."""

        if self._state is SessionState.CLOSED:
            raise SessionStateError("cannot reopen a closed session")
        if self._opened:
            return
        if self._owns_page:
            if self._browser is None:
                raise SessionStateError("session owns no page and has no browser to create one")
            self._context = await self._browser.new_context()
            self._page = await self._context.new_page()
        self.page.set_default_timeout(self.config.action_timeout_ms)
        self.page.set_default_navigation_timeout(self.config.navigation_timeout_ms)
        self._opened = True

    async def close(self) -> None:
        if self._state is SessionState.CLOSED:
            return
        try:
            if self._owns_page and self._context is not None:
                await self._context.close()
        finally:
            self._context = None
            if self._owns_page:
                self._page = None
            self._state = SessionState.CLOSED

    def _require(self, operation: str, *allowed: SessionState) -> None:
        if not self._opened and self._state is SessionState.UNOPENED:
            raise SessionStateError(f"{operation} requires an open session")
        if self._state not in allowed:
            expected = ", ".join(s.name for s in allowed)
            raise SessionStateError(
                f"{operation} is not allowed in state {self._state.name} (expected {expected})",
                details={"operation": operation, "state": self._state.value},
            )

    async def navigate(self, url: str) -> PageState:
        """Load ``url`` and wait for its load event."""

        self._require("navigate", SessionState.UNOPENED, SessionState.READY)
        self._state = SessionState.LOADING
        log.debug("Navigating to %s", url)
        try:
            response = await self.page.goto(
                url,
                wait_until="load",
                timeout=self.config.navigation_timeout_ms,
            )
        except PlaywrightTimeoutError as exc:
            self._state = SessionState.READY
            raise NavigationError(
                f"timed out after {self.config.navigation_timeout_ms} ms loading {url}",
                details={"url": url},
            ) from exc
        except PlaywrightError as exc:
            self._state = SessionState.READY
            raise NavigationError(f"failed to load {url}: {exc.message}", details={"url": url}) from exc
        self._state = SessionState.READY
        if response is not None and response.status >= 400:
            raise NavigationError(
                f"{url} responded with HTTP {response.status}",
                details={"url": url, "status": response.status},
            )
        return await self.page_state()

    async def read_visible_text(self) -> str:
        """Return the rendered text of the page body, or ``""`` for a document without one."""

        self._require("read_visible_text", SessionState.READY)
        if await self.page.locator("body").count() == 0:
            return ""
        try:
            return await self.page.inner_text("body", timeout=self.config.action_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise StepTimeoutError(
                f"page body not readable within {self.config.action_timeout_ms} ms"
            ) from exc

    async def page_state(self) -> PageState:
        text = await self.read_visible_text()
        return PageState(url=self.page.url, text=text)

    async def click(self, target: ClickTarget) -> PageState:
        """Click the first element matching ``target`` and wait for the page to settle."""

        self._require("click", SessionState.READY)
        page = self.page
        candidates = page.locator(target.tag).filter(has_text=target.text_pattern())
        try:
            await candidates.first.wait_for(state="attached", timeout=self.config.action_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise ElementNotFoundError(
                f"no {target.describe()} on {page.url}",
                details={"tag": target.tag, "text": target.text, "url": page.url},
            ) from exc

        count = await candidates.count()
        if count == 0:
            raise ElementNotFoundError(
                f"no {target.describe()} on {page.url}",
                details={"tag": target.tag, "text": target.text, "url": page.url},
            )
        if count > 1 and target.unique:
            raise AmbiguousElementError(
                f"{count} elements match {target.describe()}",
                details={"tag": target.tag, "text": target.text, "count": count},
            )

        log.debug("Clicking %s (%d candidate(s))", target.describe(), count)
        self._state = SessionState.LOADING
        try:
            await candidates.first.click(timeout=self.config.action_timeout_ms)
            settled = await wait_until_settled(page, self.config.settle_timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise StepTimeoutError(
                f"page did not settle after clicking {target.describe()}",
                details={"timeout_ms": self.config.settle_timeout_ms},
            ) from exc
        except PlaywrightError as exc:
            # Detached element or a document replaced mid-click
            raise ElementNotFoundError(
                f"clicking {target.describe()} on {page.url} failed: {exc.message}",
                details={"tag": target.tag, "text": target.text, "url": page.url},
            ) from exc
        finally:
            if self._state is SessionState.LOADING:
                self._state = SessionState.READY
        if not settled:
            raise StepTimeoutError(
                f"DOM kept changing for {self.config.settle_timeout_ms} ms after clicking {target.describe()}",
                details={"timeout_ms": self.config.settle_timeout_ms},
            )
        return await self.page_state()

    async def screenshot(self, path: Path, *, full_page: bool = True) -> Path:
        self._require("screenshot", SessionState.READY)
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.page.screenshot(path=str(path), full_page=full_page)
        return path
