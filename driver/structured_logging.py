"""Structured logging utilities for acceptance runs."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

log = logging.getLogger(__name__)


@dataclass(slots=True)
class LogPaths:
    base: Path
    shots: Path
    events: Path


class StructuredLogger:
    """Writes one JSONL event per finished case."""

    def __init__(self, run_id: str, paths: LogPaths) -> None:
        self.run_id = run_id
        self.paths = paths
        self._step = 0
        self._events_file = paths.events.open("a", encoding="utf-8")

    def log_event(
        self,
        *,
        group: str,
        case: Optional[str],
        status: str,
        error: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        url: Optional[str] = None,
        screenshot_path: Optional[Path] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> int:
        self._step += 1
        payload = {
            "ts": time.time(),
            "run_id": self.run_id,
            "step": self._step,
            "group": group,
            "case": case,
            "status": status,
            "error": error,
            "duration_ms": duration_ms,
            "url": url,
            "screenshot_path": str(screenshot_path) if screenshot_path else None,
            "metadata": metadata or {},
        }
        self._events_file.write(json.dumps(payload, ensure_ascii=False) + "\n")
        self._events_file.flush()
        return self._step

    def close(self) -> None:
        try:
            self._events_file.close()
        except OSError as exc:
            log.warning("Failed to close event log %s: %s", self.paths.events, exc)


def prepare_log_paths(run_id: str, base_dir: Path) -> LogPaths:
    base_dir.mkdir(parents=True, exist_ok=True)
    shots_dir = base_dir / "shots"
    shots_dir.mkdir(parents=True, exist_ok=True)
    events_file = base_dir / "events.jsonl"
    return LogPaths(base=base_dir, shots=shots_dir, events=events_file)
