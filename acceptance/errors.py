"""
Error kinds raised while driving a scenario through the browser.

Every error carries a stable :class:`ErrorCode` so that reports can be
filtered by kind without inspecting exception classes.  All of them are
recovered at the case boundary by :func:`acceptance.registry.run_group`.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(Enum):
    """Standardized error kinds reported for failed cases."""

    NAVIGATION = "NavigationError"
    ELEMENT_NOT_FOUND = "ElementNotFoundError"
    AMBIGUOUS_ELEMENT = "AmbiguousElementError"
    TIMEOUT = "TimeoutError"
    ASSERTION_MISMATCH = "AssertionMismatch"
    SESSION_STATE = "SessionStateError"
    UNEXPECTED = "UnexpectedError"


class AcceptanceError(Exception):
    """Base class for every failure raised by the runner."""

    code: ErrorCode = ErrorCode.UNEXPECTED

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "code": self.code.value,
            "message": self.message,
        }
        if self.details:
            result["details"] = dict(self.details)
        return result


class NavigationError(AcceptanceError):
    code = ErrorCode.NAVIGATION


class ElementNotFoundError(AcceptanceError):
    code = ErrorCode.ELEMENT_NOT_FOUND


class AmbiguousElementError(AcceptanceError):
    code = ErrorCode.AMBIGUOUS_ELEMENT


class StepTimeoutError(AcceptanceError, TimeoutError):
    code = ErrorCode.TIMEOUT


class SessionStateError(AcceptanceError):
    code = ErrorCode.SESSION_STATE


class AssertionMismatch(AcceptanceError, AssertionError):
    """Expected substring was absent from the observed page text."""

    code = ErrorCode.ASSERTION_MISMATCH

    def __init__(self, expected: str, actual_snippet: str, *, message: Optional[str] = None) -> None:
        super().__init__(
            message or f"expected page text to contain {expected!r}",
            details={"expected": expected, "actual": actual_snippet},
        )
        self.expected = expected
        self.actual_snippet = actual_snippet


def classify(exc: BaseException) -> ErrorCode:
    """Map an arbitrary exception raised by a case onto an error kind."""

    if isinstance(exc, AcceptanceError):
        return exc.code
    if isinstance(exc, (asyncio.TimeoutError, TimeoutError)):
        return ErrorCode.TIMEOUT
    if isinstance(exc, AssertionError):
        return ErrorCode.ASSERTION_MISMATCH
    return ErrorCode.UNEXPECTED


def describe(exc: BaseException) -> str:
    """Return a human readable message for ``exc``."""

    if isinstance(exc, AcceptanceError):
        return exc.message
    text = str(exc)
    if classify(exc) is ErrorCode.UNEXPECTED:
        return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
    return text or type(exc).__name__
