"""Turn declarative suite documents into registered scenario groups."""

from __future__ import annotations

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urljoin

from acceptance.assertions import assert_click_navigates_to, assert_page_contains, assert_url_contains
from acceptance.registry import Case, Hook, ScenarioGroup, ScenarioRegistry
from driver.session import BrowserSession

from .models import (
    ClickNavigatesToStep,
    ClickStep,
    ExpectTextStep,
    ExpectUrlStep,
    NavigateStep,
    ScreenshotStep,
    StepBase,
    SuiteSpec,
)

log = logging.getLogger(__name__)


class StepCompiler:
    """Compile step lists into session coroutines.

    Relative navigation URLs resolve against ``base_url``; screenshots land in
    ``shots_dir`` when one is set.
    """

    def __init__(self, base_url: str, shots_dir: Optional[Path] = None) -> None:
        self.base_url = base_url
        self.shots_dir = shots_dir

    def resolve_url(self, url: str) -> str:
        base = self.base_url if self.base_url.endswith("/") else self.base_url + "/"
        return urljoin(base, url)

    def compile(self, steps: Sequence[StepBase]) -> Optional[Hook]:
        if not steps:
            return None
        frozen = tuple(steps)

        async def run_steps(session: BrowserSession) -> None:
            for step in frozen:
                await self.execute(step, session)

        return run_steps

    async def execute(self, step: StepBase, session: BrowserSession) -> None:
        log.debug("Step %s", step.payload())
        if isinstance(step, NavigateStep):
            await session.navigate(self.resolve_url(step.url))
        elif isinstance(step, ClickStep):
            await session.click(step.target)
        elif isinstance(step, ExpectTextStep):
            await assert_page_contains(session, step.text, timeout_ms=step.timeout_ms)
        elif isinstance(step, ExpectUrlStep):
            await assert_url_contains(session, step.contains)
        elif isinstance(step, ClickNavigatesToStep):
            await assert_click_navigates_to(session, step.target, step.expect, timeout_ms=step.timeout_ms)
        elif isinstance(step, ScreenshotStep):
            directory = self.shots_dir or session.config.log_root
            await session.screenshot(directory / f"{step.name}.png")
        else:
            raise TypeError(f"Unsupported step type {type(step).__name__}")


def load_suite(path: Path) -> SuiteSpec:
    """Parse a JSON or TOML suite file."""

    suffix = path.suffix.lower()
    if suffix == ".json":
        return SuiteSpec.model_validate_json(path.read_text(encoding="utf-8"))
    if suffix == ".toml":
        with path.open("rb") as fh:
            data: Dict[str, Any] = tomllib.load(fh)
        return SuiteSpec.model_validate(data)
    raise ValueError(f"unsupported suite format {path.suffix!r} for {path}; use .json or .toml")


def build_groups(suite: SuiteSpec, compiler: StepCompiler) -> List[ScenarioGroup]:
    groups: List[ScenarioGroup] = []
    for spec in suite.groups:
        cases = []
        for case in spec.cases:
            body = compiler.compile(case.steps) or _noop
            cases.append(Case(description=case.description, body=body))
        groups.append(
            ScenarioGroup(
                name=spec.name,
                cases=tuple(cases),
                before_all=compiler.compile(spec.before_all),
                before_each=compiler.compile(spec.before_each),
                after_each=compiler.compile(spec.after_each),
                after_all=compiler.compile(spec.after_all),
            )
        )
    return groups


def register_suite(
    suite: SuiteSpec,
    registry: ScenarioRegistry,
    *,
    base_url: str,
    base_url_override: Optional[str] = None,
    shots_dir: Optional[Path] = None,
) -> List[ScenarioGroup]:
    """Register every group of ``suite``.

    URL precedence: ``base_url_override``, then the suite's ``base_url``,
    then ``base_url``.
    """

    compiler = StepCompiler(base_url_override or suite.base_url or base_url, shots_dir=shots_dir)
    groups = build_groups(suite, compiler)
    for group in groups:
        registry.add(group)
    return groups


async def _noop(session: BrowserSession) -> None:
    return None
