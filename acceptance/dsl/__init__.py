"""Suite file models and the step registry."""

from .models import (
    CaseSpec,
    ClickNavigatesToStep,
    ClickStep,
    ClickTarget,
    ExpectTextStep,
    ExpectUrlStep,
    GroupSpec,
    NavigateStep,
    ScreenshotStep,
    StepBase,
    SuiteSpec,
)
from .registry import StepRegistry, registry

__all__ = [
    "CaseSpec",
    "ClickNavigatesToStep",
    "ClickStep",
    "ClickTarget",
    "ExpectTextStep",
    "ExpectUrlStep",
    "GroupSpec",
    "NavigateStep",
    "ScreenshotStep",
    "StepBase",
    "StepRegistry",
    "SuiteSpec",
    "registry",
]
