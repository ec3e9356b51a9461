"""Declarative browser acceptance-test runner."""

from . import errors
from .registry import Case, ScenarioGroup, ScenarioRegistry, default_registry, run_group
from .report import CaseResult, RunReport

__all__ = [
    "Case",
    "CaseResult",
    "RunReport",
    "ScenarioGroup",
    "ScenarioRegistry",
    "default_registry",
    "errors",
    "run_group",
]
