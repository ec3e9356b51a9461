"""Utilities to let a page settle after a navigation or click."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

log = logging.getLogger(__name__)

DOM_IDLE_THRESHOLD_MS = 300

_DOM_IDLE_SCRIPT = """
    ([timeoutMs, threshold]) => new Promise(resolve => {
        let last = Date.now();
        const ob = new MutationObserver(() => (last = Date.now()));
        ob.observe(document, {subtree: true, childList: true, attributes: true, characterData: true});
        const start = Date.now();
        (function check() {
            if (Date.now() - last > threshold) {
                ob.disconnect();
                resolve(true);
                return;
            }
            if (Date.now() - start > timeoutMs) {
                ob.disconnect();
                resolve(false);
                return;
            }
            setTimeout(check, 50);
        })();
    })
"""


async def wait_dom_idle(page: Page, timeout_ms: int) -> bool:
    """Wait until DOM mutations have been idle for a short threshold.

    Returns ``False`` when the page kept mutating for the whole ``timeout_ms``.
    If the document is replaced while waiting (a click that started a
    navigation), the new document's load event is awaited instead.
    """

    try:
        return bool(await page.evaluate(_DOM_IDLE_SCRIPT, [timeout_ms, DOM_IDLE_THRESHOLD_MS]))
    except PlaywrightError as exc:
        log.debug("DOM idle probe interrupted (%s); waiting for load instead", exc)
        await page.wait_for_load_state("load", timeout=timeout_ms)
        return True


async def wait_until_settled(page: Page, timeout_ms: int) -> bool:
    """Wait for the load event, then for DOM idleness.

    Raises Playwright's ``TimeoutError`` when the load event does not fire in
    time; returns ``False`` when the DOM never went idle.
    """

    await page.wait_for_load_state("load", timeout=timeout_ms)
    return await wait_dom_idle(page, timeout_ms)
