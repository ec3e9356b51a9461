"""Run registered scenario groups against real browser sessions.

The runner owns the Playwright lifetime: one browser per run and one
context/page per scenario group.  Groups run one after another unless
``parallel_groups`` is enabled, in which case they run concurrently on
independent sessions and share only the append-safe :class:`RunReport`.
"""

from __future__ import annotations

import asyncio
import functools
import logging
import re
import uuid
from pathlib import Path
from typing import Callable, Iterable, Optional, Sequence

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from acceptance.errors import AcceptanceError
from acceptance.registry import Case, ScenarioGroup, run_group
from acceptance.report import CaseResult, RunReport
from driver.config import RunConfig
from driver.session import BrowserSession, SessionState
from driver.structured_logging import StructuredLogger

log = logging.getLogger(__name__)

SessionFactory = Callable[[ScenarioGroup], BrowserSession]


def _slug(text: str, limit: int = 60) -> str:
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[-\s]+", "_", text)
    return text.strip("_").lower()[:limit] or "case"


class SuiteRunner:
    """Execute scenario groups and collect a :class:`RunReport`."""

    def __init__(
        self,
        config: RunConfig,
        *,
        session_factory: Optional[SessionFactory] = None,
        events: Optional[StructuredLogger] = None,
        shots_dir: Optional[Path] = None,
    ) -> None:
        self.config = config
        self._session_factory = session_factory
        self._events = events
        self._shots_dir = shots_dir

    async def run_async(self, groups: Iterable[ScenarioGroup], *, run_id: Optional[str] = None) -> RunReport:
        groups = tuple(groups)
        report = RunReport(run_id=run_id or f"run-{uuid.uuid4().hex[:8]}")
        log.info(
            "Running %d group(s), %d case(s)%s",
            len(groups),
            sum(len(g.cases) for g in groups),
            " in parallel" if self.config.parallel_groups else "",
        )

        if self._session_factory is not None:
            await self._run_groups(groups, self._session_factory, report)
            return report

        async with async_playwright() as playwright:
            launcher = getattr(playwright, self.config.browser)
            try:
                browser = await launcher.launch(headless=self.config.headless)
            except PlaywrightError as exc:
                log.error("Could not launch %s: %s", self.config.browser, exc)
                for group in groups:
                    self._fail_group(group, report, exc, prefix="browser failed to launch: ")
                return report
            try:
                await self._run_groups(
                    groups,
                    lambda group: BrowserSession(self.config, browser=browser),
                    report,
                )
            finally:
                await browser.close()
        return report

    def run(self, groups: Iterable[ScenarioGroup], *, run_id: Optional[str] = None) -> RunReport:
        """Synchronous convenience wrapper around :meth:`run_async`."""

        return asyncio.run(self.run_async(groups, run_id=run_id))

    async def _run_groups(self, groups: Sequence[ScenarioGroup], factory: SessionFactory, report: RunReport) -> None:
        if self.config.parallel_groups:
            await asyncio.gather(*(self._run_one(group, factory, report) for group in groups))
            return
        for group in groups:
            await self._run_one(group, factory, report)

    async def _run_one(self, group: ScenarioGroup, factory: SessionFactory, report: RunReport) -> None:
        session = factory(group)
        try:
            await session.open()
        except (AcceptanceError, PlaywrightError) as exc:
            log.error("Group %r: could not open a browser session: %s", group.name, exc)
            await session.close()
            self._fail_group(group, report, exc, prefix="session failed to open: ")
            return

        try:
            await run_group(
                group,
                session,
                report,
                case_timeout_ms=self.config.case_timeout_ms,
                observer=functools.partial(self._observe, session),
            )
        finally:
            await session.close()

    def _fail_group(self, group: ScenarioGroup, report: RunReport, exc: BaseException, *, prefix: str) -> None:
        for case in group.cases:
            result = CaseResult.failed(group.name, case.description, exc, prefix=prefix)
            self._log_event(group, case, result, url=None)
            report.add(result)

    async def _observe(self, session: BrowserSession, group: ScenarioGroup, case: Case, result: CaseResult) -> None:
        url: Optional[str] = None
        if session.state is SessionState.READY:
            url = session.page.url
            if not result.ok and self.config.screenshot_on_failure and self._shots_dir is not None:
                path = self._shots_dir / f"{_slug(group.name)}__{_slug(case.description)}.png"
                try:
                    await session.screenshot(path)
                    result.screenshot = str(path)
                except (AcceptanceError, PlaywrightError, OSError) as exc:
                    log.warning("Failure screenshot for %r failed: %s", case.description, exc)
        self._log_event(group, case, result, url=url)

    def _log_event(self, group: ScenarioGroup, case: Case, result: CaseResult, *, url: Optional[str]) -> None:
        if self._events is None:
            return
        self._events.log_event(
            group=group.name,
            case=case.description,
            status=result.status,
            error=result.as_dict().get("error"),
            duration_ms=result.duration_ms,
            url=url,
            screenshot_path=Path(result.screenshot) if result.screenshot else None,
        )
