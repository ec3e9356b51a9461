"""Typed models for declarative acceptance suites."""

from __future__ import annotations

import re
from typing import Any, ClassVar, Dict, List, Literal, Optional, Pattern

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

MatchPolicy = Literal["contains", "exact"]

_TAG_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9-]*$")


class ClickTarget(BaseModel):
    """A clickable element identified by its tag name and text content.

    ``match="contains"`` accepts any element whose text contains ``text``;
    ``match="exact"`` requires the trimmed text to equal it.  Both are case
    sensitive.  When ``unique`` is set, more than one candidate is an error
    instead of clicking the first one.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    tag: str = Field(validation_alias=AliasChoices("tag", "selector"))
    text: str
    match: MatchPolicy = "contains"
    unique: bool = False

    @field_validator("tag")
    @classmethod
    def _validate_tag(cls, value: str) -> str:
        value = value.strip()
        if not _TAG_RE.match(value):
            raise ValueError(f"tag must be a bare element name, got {value!r}")
        return value.lower()

    @field_validator("text")
    @classmethod
    def _validate_text(cls, value: str) -> str:
        if not value:
            raise ValueError("text must not be empty")
        return value

    def text_pattern(self) -> Pattern[str]:
        escaped = re.escape(self.text)
        if self.match == "exact":
            return re.compile(rf"^\s*{escaped}\s*$")
        return re.compile(escaped)

    def describe(self) -> str:
        relation = "equal to" if self.match == "exact" else "containing"
        return f"<{self.tag}> with text {relation} {self.text!r}"


class StepBase(BaseModel):
    """Base class for all suite steps."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    __step_name__: ClassVar[str]

    def payload(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.setdefault("type", self.__step_name__)
        return data


class _TargetStep(StepBase):
    target: ClickTarget

    @model_validator(mode="before")
    @classmethod
    def _coerce_flat_target(cls, value: Any) -> Any:
        # {"type": "click", "tag": "a", "text": "..."} is shorthand for a nested target
        if isinstance(value, dict) and "target" not in value and "tag" in value:
            value = dict(value)
            target = {key: value.pop(key) for key in ("tag", "text", "match", "unique") if key in value}
            value["target"] = target
        return value


class NavigateStep(StepBase):
    __step_name__ = "navigate"

    type: Literal["navigate"] = Field(default="navigate", validation_alias=AliasChoices("type", "action"))
    url: str = Field(default="/", validation_alias=AliasChoices("url", "target"))


class ClickStep(_TargetStep):
    __step_name__ = "click"

    type: Literal["click"] = Field(default="click", validation_alias=AliasChoices("type", "action"))


class ExpectTextStep(StepBase):
    __step_name__ = "expect_text"

    type: Literal["expect_text"] = Field(default="expect_text", validation_alias=AliasChoices("type", "action"))
    text: str = Field(validation_alias=AliasChoices("text", "contains"))
    timeout_ms: Optional[int] = Field(default=None, ge=0)


class ExpectUrlStep(StepBase):
    __step_name__ = "expect_url"

    type: Literal["expect_url"] = Field(default="expect_url", validation_alias=AliasChoices("type", "action"))
    contains: str


class ClickNavigatesToStep(_TargetStep):
    __step_name__ = "click_navigates_to"

    type: Literal["click_navigates_to"] = Field(
        default="click_navigates_to",
        validation_alias=AliasChoices("type", "action"),
    )
    expect: str
    timeout_ms: Optional[int] = Field(default=None, ge=0)


class ScreenshotStep(StepBase):
    __step_name__ = "screenshot"

    type: Literal["screenshot"] = Field(default="screenshot", validation_alias=AliasChoices("type", "action"))
    name: str

    @field_validator("name")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        if not value or "/" in value or "\\" in value:
            raise ValueError("screenshot name must be a plain file name")
        return value


class CaseSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = Field(validation_alias=AliasChoices("description", "it", "name"))
    steps: List[StepBase] = Field(default_factory=list)

    @field_validator("steps", mode="before")
    @classmethod
    def _parse_steps(cls, value: Any) -> Any:
        return _parse_step_list(value)


class GroupSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(validation_alias=AliasChoices("name", "describe"))
    before_all: List[StepBase] = Field(default_factory=list)
    before_each: List[StepBase] = Field(default_factory=list)
    after_each: List[StepBase] = Field(default_factory=list)
    after_all: List[StepBase] = Field(default_factory=list)
    cases: List[CaseSpec] = Field(default_factory=list)

    @field_validator("before_all", "before_each", "after_each", "after_all", mode="before")
    @classmethod
    def _parse_hooks(cls, value: Any) -> Any:
        return _parse_step_list(value)


class SuiteSpec(BaseModel):
    """Top level suite document."""

    model_config = ConfigDict(extra="forbid")

    base_url: Optional[str] = None
    groups: List[GroupSpec] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_group_names(self) -> "SuiteSpec":
        seen = set()
        for group in self.groups:
            if group.name in seen:
                raise ValueError(f"duplicate group name {group.name!r}")
            seen.add(group.name)
        return self


def _parse_step_list(value: Any) -> Any:
    if value is None:
        return []
    if not isinstance(value, list):
        return value
    from .registry import registry

    return [item if isinstance(item, StepBase) else registry.parse_step(item) for item in value]
