"""Pass/fail accumulator shared by every scenario group of a run."""

from __future__ import annotations

import json
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from acceptance.errors import AssertionMismatch, ErrorCode, classify, describe

PASSED = "passed"
FAILED = "failed"


@dataclass(slots=True)
class CaseResult:
    """Outcome of a single case."""

    group: str
    case: str
    status: str
    error_kind: Optional[str] = None
    message: Optional[str] = None
    expected: Optional[str] = None
    actual: Optional[str] = None
    duration_ms: float = 0.0
    screenshot: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == PASSED

    @classmethod
    def passed(cls, group: str, case: str, *, duration_ms: float = 0.0) -> "CaseResult":
        return cls(group=group, case=case, status=PASSED, duration_ms=duration_ms)

    @classmethod
    def failed(
        cls,
        group: str,
        case: str,
        exc: BaseException,
        *,
        duration_ms: float = 0.0,
        prefix: str = "",
    ) -> "CaseResult":
        result = cls(
            group=group,
            case=case,
            status=FAILED,
            error_kind=classify(exc).value,
            message=f"{prefix}{describe(exc)}",
            duration_ms=duration_ms,
        )
        if isinstance(exc, AssertionMismatch):
            result.expected = exc.expected
            result.actual = exc.actual_snippet
        return result

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "group": self.group,
            "case": self.case,
            "status": self.status,
            "duration_ms": round(self.duration_ms, 1),
        }
        if self.error_kind:
            payload["error"] = {
                "kind": self.error_kind,
                "message": self.message,
            }
            if self.expected is not None:
                payload["error"]["expected"] = self.expected
                payload["error"]["actual"] = self.actual
        if self.screenshot:
            payload["screenshot"] = self.screenshot
        return payload


@dataclass(slots=True)
class GroupError:
    """A teardown failure that does not belong to any single case."""

    group: str
    hook: str
    error_kind: str
    message: str

    def as_dict(self) -> Dict[str, Any]:
        return {"group": self.group, "hook": self.hook, "kind": self.error_kind, "message": self.message}


@dataclass
class RunReport:
    """Append-only report; safe to share between concurrently running groups."""

    run_id: str = "run"
    _results: List[CaseResult] = field(default_factory=list)
    _group_errors: List[GroupError] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, result: CaseResult) -> None:
        with self._lock:
            self._results.append(result)

    def add_group_error(self, group: str, hook: str, exc: BaseException) -> None:
        error = GroupError(group=group, hook=hook, error_kind=classify(exc).value, message=describe(exc))
        with self._lock:
            self._group_errors.append(error)

    @property
    def results(self) -> List[CaseResult]:
        with self._lock:
            return list(self._results)

    @property
    def group_errors(self) -> List[GroupError]:
        with self._lock:
            return list(self._group_errors)

    def outcomes(self) -> List[Tuple[str, str, str]]:
        """``(group, case, status)`` triples in recording order."""

        return [(r.group, r.case, r.status) for r in self.results]

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def passed(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failed(self) -> int:
        return self.total - self.passed

    @property
    def success(self) -> bool:
        return self.failed == 0 and not self.group_errors

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1

    def as_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "success": self.success,
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "cases": [r.as_dict() for r in self.results],
            "group_errors": [e.as_dict() for e in self.group_errors],
        }

    def write_json(self, path: Path) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as fh:
            json.dump(self.as_dict(), fh, indent=2, ensure_ascii=False)
        return path

    def render_text(self) -> str:
        lines: List[str] = []
        current_group: Optional[str] = None
        for result in self.results:
            if result.group != current_group:
                current_group = result.group
                lines.append(current_group)
            mark = "PASS" if result.ok else "FAIL"
            lines.append(f"  [{mark}] {result.case} ({result.duration_ms:.0f} ms)")
            if result.ok:
                continue
            lines.append(f"         {result.error_kind}: {result.message}")
            if result.error_kind == ErrorCode.ASSERTION_MISMATCH.value and result.expected is not None:
                lines.append(f"         expected: {result.expected!r}")
                lines.append(f"         observed: {result.actual!r}")
            if result.screenshot:
                lines.append(f"         screenshot: {result.screenshot}")
        for error in self.group_errors:
            lines.append(f"{error.group}: {error.hook} failed ({error.error_kind}): {error.message}")
        lines.append("")
        lines.append(f"Total: {self.total}, Passed: {self.passed}, Failed: {self.failed}")
        return "\n".join(lines)


__all__ = [
    "CaseResult",
    "FAILED",
    "GroupError",
    "PASSED",
    "RunReport",
]
