"""Assertions over the observable page state."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from acceptance.dsl.models import ClickTarget
from acceptance.errors import AssertionMismatch
from driver.session import BrowserSession, PageState

log = logging.getLogger(__name__)

DEFAULT_SNIPPET_LENGTH = 200
POLL_INTERVAL_S = 0.1


def snippet(text: str, expected: str = "", length: int = DEFAULT_SNIPPET_LENGTH) -> str:
    """Return a whitespace-collapsed excerpt of ``text`` no longer than ``length``."""

    collapsed = " ".join(text.split())
    if len(collapsed) <= length:
        return collapsed
    # Centre the excerpt on the longest prefix of ``expected`` that does occur.
    anchor = -1
    for size in range(len(expected), 0, -1):
        anchor = collapsed.find(expected[:size])
        if anchor != -1:
            break
    start = max(0, min(anchor - length // 4, len(collapsed) - length)) if anchor > 0 else 0
    excerpt = collapsed[start:start + length]
    prefix = "…" if start > 0 else ""
    suffix = "…" if start + length < len(collapsed) else ""
    return f"{prefix}{excerpt}{suffix}"


def assert_contains(observed: str, expected: str, *, snippet_length: int = DEFAULT_SNIPPET_LENGTH) -> None:
    if expected in observed:
        return
    raise AssertionMismatch(expected, snippet(observed, expected, snippet_length))


async def assert_page_contains(
    session: BrowserSession,
    expected: str,
    *,
    timeout_ms: Optional[int] = None,
) -> str:
    """Poll the page text until it contains ``expected``.

    Returns the matching text.  Raises :class:`AssertionMismatch` carrying the
    last observed text once ``timeout_ms`` (default ``expect_timeout_ms``)
    has elapsed.
    """

    config = session.config
    budget = config.expect_timeout_ms if timeout_ms is None else timeout_ms
    deadline = time.monotonic() + budget / 1000
    while True:
        observed = await session.read_visible_text()
        if expected in observed:
            return observed
        if time.monotonic() >= deadline:
            break
        await asyncio.sleep(POLL_INTERVAL_S)
    log.debug("Page text never contained %r within %d ms", expected, budget)
    raise AssertionMismatch(expected, snippet(observed, expected, config.snippet_length))


async def assert_click_navigates_to(
    session: BrowserSession,
    target: ClickTarget,
    expected: str,
    *,
    timeout_ms: Optional[int] = None,
) -> PageState:
    await session.click(target)
    text = await assert_page_contains(session, expected, timeout_ms=timeout_ms)
    return PageState(url=session.page.url, text=text)


async def assert_url_contains(session: BrowserSession, expected: str) -> None:
    state = await session.page_state()
    if expected not in state.url:
        raise AssertionMismatch(
            expected,
            state.url,
            message=f"expected URL to contain {expected!r}",
        )
