"""Typed step registry built on top of pydantic models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import TypeAdapter

from .models import (
    ClickNavigatesToStep,
    ClickStep,
    ExpectTextStep,
    ExpectUrlStep,
    NavigateStep,
    ScreenshotStep,
    StepBase,
)


@dataclass(slots=True)
class StepSpec:
    name: str
    model: Type[StepBase]


S = TypeVar("S", bound=StepBase)


class StepRegistry:
    """Central registry holding the step types a suite file may use."""

    def __init__(self) -> None:
        self._steps: Dict[str, StepSpec] = {}
        self._adapter: Optional[TypeAdapter[Any]] = None

    def register(self, model: Type[S], *, name: Optional[str] = None) -> Type[S]:
        if not issubclass(model, StepBase):
            raise TypeError("model must subclass StepBase")
        step_name = name or getattr(model, "__step_name__", None) or model.__name__
        model.__step_name__ = step_name
        self._steps[step_name] = StepSpec(name=step_name, model=model)
        self._adapter = None
        return model

    def _ensure_adapter(self) -> TypeAdapter[Any]:
        if self._adapter is None:
            if not self._steps:
                raise RuntimeError("No steps registered")
            step_types = tuple(spec.model for spec in self._steps.values())
            union = step_types[0]
            for model in step_types[1:]:
                union = union | model  # type: ignore[operator]
            self._adapter = TypeAdapter(union)
        return self._adapter

    def parse_step(self, data: Any) -> StepBase:
        if isinstance(data, dict):
            step_type = data.get("type", data.get("action"))
            if step_type is not None and step_type not in self._steps:
                raise ValueError(f"Unknown step type {step_type!r}; expected one of {sorted(self._steps)}")
        adapter = self._ensure_adapter()
        return adapter.validate_python(data)


registry = StepRegistry()

for _model in (NavigateStep, ClickStep, ExpectTextStep, ExpectUrlStep, ClickNavigatesToStep, ScreenshotStep):
    registry.register(_model)
