"""Configuration loader for acceptance runs."""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional


ENV_PREFIX = "ACCEPTANCE_"

DEFAULTS: Dict[str, Any] = {
    "base_url": "http://localhost:62449",
    "browser": "chromium",
    "headless": True,
    "navigation_timeout_ms": 30000,
    "action_timeout_ms": 5000,
    "settle_timeout_ms": 5000,
    "expect_timeout_ms": 1000,
    "case_timeout_ms": 60000,
    "parallel_groups": False,
    "screenshot_on_failure": True,
    "snippet_length": 200,
    "log_root": "runs",
}

_BROWSERS = {"chromium", "firefox", "webkit"}


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


@dataclass(slots=True)
class RunConfig:
    base_url: str = DEFAULTS["base_url"]
    browser: str = DEFAULTS["browser"]
    headless: bool = DEFAULTS["headless"]
    navigation_timeout_ms: int = DEFAULTS["navigation_timeout_ms"]
    action_timeout_ms: int = DEFAULTS["action_timeout_ms"]
    settle_timeout_ms: int = DEFAULTS["settle_timeout_ms"]
    expect_timeout_ms: int = DEFAULTS["expect_timeout_ms"]
    case_timeout_ms: int = DEFAULTS["case_timeout_ms"]
    parallel_groups: bool = DEFAULTS["parallel_groups"]
    screenshot_on_failure: bool = DEFAULTS["screenshot_on_failure"]
    snippet_length: int = DEFAULTS["snippet_length"]
    log_root: Path = field(default_factory=lambda: Path(DEFAULTS["log_root"]))

    @classmethod
    def from_mapping(cls, mapping: Dict[str, Any]) -> "RunConfig":
        data = dict(DEFAULTS)
        data.update({k: v for k, v in mapping.items() if k in DEFAULTS})
        browser = str(data["browser"]).lower()
        if browser not in _BROWSERS:
            raise ValueError(f"unsupported browser {browser!r}; expected one of {sorted(_BROWSERS)}")
        return cls(
            base_url=str(data["base_url"]),
            browser=browser,
            headless=_as_bool(data["headless"]),
            navigation_timeout_ms=int(data["navigation_timeout_ms"]),
            action_timeout_ms=int(data["action_timeout_ms"]),
            settle_timeout_ms=int(data["settle_timeout_ms"]),
            expect_timeout_ms=int(data["expect_timeout_ms"]),
            case_timeout_ms=int(data["case_timeout_ms"]),
            parallel_groups=_as_bool(data["parallel_groups"]),
            screenshot_on_failure=_as_bool(data["screenshot_on_failure"]),
            snippet_length=int(data["snippet_length"]),
            log_root=Path(data["log_root"]),
        )

    def with_overrides(self, **overrides: Any) -> "RunConfig":
        """Return a copy with every non-``None`` override applied."""

        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def _load_toml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    with path.open("rb") as fh:
        return tomllib.load(fh)


def load_config(config_path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> RunConfig:
    """Load configuration from defaults, an optional TOML file and the environment."""

    env = os.environ if environ is None else environ
    env_map: Dict[str, Any] = {}
    for key, value in env.items():
        if key.startswith(ENV_PREFIX):
            env_map[key[len(ENV_PREFIX):].lower()] = value

    path = config_path or Path("acceptance.toml")
    if config_path is not None and not config_path.exists():
        raise FileNotFoundError(f"config file {config_path} does not exist")
    file_map: Dict[str, Any] = _load_toml(path).get("acceptance", {})

    merged = {**file_map, **env_map}
    return RunConfig.from_mapping(merged)
