"""Scenario groups, their cases and the hook sequencing that runs them."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, Iterable, Iterator, Optional, Sequence, Tuple

from acceptance.errors import StepTimeoutError
from acceptance.report import CaseResult, RunReport

if TYPE_CHECKING:
    from driver.session import BrowserSession

log = logging.getLogger(__name__)

Hook = Callable[["BrowserSession"], Awaitable[None]]
CaseObserver = Callable[["ScenarioGroup", "Case", CaseResult], Awaitable[None]]


@dataclass(slots=True, frozen=True)
class Case:
    description: str
    body: Hook


@dataclass(slots=True, frozen=True)
class ScenarioGroup:
    """A named, ordered collection of cases sharing one browser session."""

    name: str
    cases: Tuple[Case, ...] = ()
    before_all: Optional[Hook] = None
    before_each: Optional[Hook] = None
    after_each: Optional[Hook] = None
    after_all: Optional[Hook] = None


class ScenarioRegistry:
    """Holds scenario groups in registration order."""

    def __init__(self) -> None:
        self._groups: Dict[str, ScenarioGroup] = {}

    def register_group(
        self,
        name: str,
        cases: Iterable[Case | Tuple[str, Hook]] = (),
        *,
        before_all: Optional[Hook] = None,
        before_each: Optional[Hook] = None,
        after_each: Optional[Hook] = None,
        after_all: Optional[Hook] = None,
    ) -> ScenarioGroup:
        if name in self._groups:
            raise ValueError(f"scenario group {name!r} is already registered")
        normalized = tuple(case if isinstance(case, Case) else Case(*case) for case in cases)
        group = ScenarioGroup(
            name=name,
            cases=normalized,
            before_all=before_all,
            before_each=before_each,
            after_each=after_each,
            after_all=after_all,
        )
        self._groups[name] = group
        log.debug("Registered group %r with %d case(s)", name, len(normalized))
        return group

    def add(self, group: ScenarioGroup) -> ScenarioGroup:
        if group.name in self._groups:
            raise ValueError(f"scenario group {group.name!r} is already registered")
        self._groups[group.name] = group
        return group

    def get(self, name: str) -> ScenarioGroup:
        try:
            return self._groups[name]
        except KeyError as exc:
            raise KeyError(f"Unknown scenario group '{name}'") from exc

    def groups(self) -> Sequence[ScenarioGroup]:
        return tuple(self._groups.values())

    def case_count(self) -> int:
        return sum(len(group.cases) for group in self._groups.values())

    def __iter__(self) -> Iterator[ScenarioGroup]:
        return iter(self.groups())

    def __len__(self) -> int:
        return len(self._groups)


default_registry = ScenarioRegistry()


async def _bounded(hook: Hook, session: BrowserSession, timeout_ms: int) -> None:
    try:
        async with asyncio.timeout(timeout_ms / 1000) as scope:
            await hook(session)
    except TimeoutError as exc:
        # Only the case deadline is relabelled; timeouts raised by the hook keep their own message.
        if scope.expired() and not isinstance(exc, StepTimeoutError):
            raise StepTimeoutError(f"exceeded the case timeout of {timeout_ms} ms") from exc
        raise


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


async def run_group(
    group: ScenarioGroup,
    session: BrowserSession,
    report: RunReport,
    *,
    case_timeout_ms: int,
    observer: Optional[CaseObserver] = None,
) -> None:
    """Run every case of ``group`` against ``session`` and record the outcomes.

    Errors raised by hooks and bodies are converted into failed case results;
    nothing raised by the scenario itself escapes this function.
    """

    log.info("Group %r: %d case(s)", group.name, len(group.cases))

    if group.before_all is not None:
        started = time.perf_counter()
        try:
            await _bounded(group.before_all, session, case_timeout_ms)
        except Exception as exc:
            log.warning("Group %r: before_all failed: %s", group.name, exc)
            for case in group.cases:
                result = CaseResult.failed(
                    group.name,
                    case.description,
                    exc,
                    duration_ms=_elapsed_ms(started),
                    prefix="before_all failed: ",
                )
                if observer is not None:
                    await observer(group, case, result)
                report.add(result)
            await _run_after_all(group, session, report, case_timeout_ms)
            return

    for case in group.cases:
        result = await _run_case(group, case, session, case_timeout_ms)
        if observer is not None:
            await observer(group, case, result)
        report.add(result)

    await _run_after_all(group, session, report, case_timeout_ms)


async def _run_case(group: ScenarioGroup, case: Case, session: BrowserSession, timeout_ms: int) -> CaseResult:
    started = time.perf_counter()
    failure: Optional[BaseException] = None
    prefix = ""
    try:
        if group.before_each is not None:
            prefix = "before_each failed: "
            await _bounded(group.before_each, session, timeout_ms)
        prefix = ""
        await _bounded(case.body, session, timeout_ms)
    except Exception as exc:
        failure = exc

    if group.after_each is not None:
        try:
            await _bounded(group.after_each, session, timeout_ms)
        except Exception as exc:
            log.warning("Group %r: after_each failed for %r: %s", group.name, case.description, exc)
            if failure is None:
                failure = exc
                prefix = "after_each failed: "

    duration = _elapsed_ms(started)
    if failure is None:
        log.info("  PASS %s", case.description)
        return CaseResult.passed(group.name, case.description, duration_ms=duration)
    log.info("  FAIL %s: %s", case.description, failure)
    return CaseResult.failed(group.name, case.description, failure, duration_ms=duration, prefix=prefix)


async def _run_after_all(group: ScenarioGroup, session: BrowserSession, report: RunReport, timeout_ms: int) -> None:
    if group.after_all is None:
        return
    try:
        await _bounded(group.after_all, session, timeout_ms)
    except Exception as exc:
        log.warning("Group %r: after_all failed: %s", group.name, exc)
        report.add_group_error(group.name, "after_all", exc)
