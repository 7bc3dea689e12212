from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class Reason(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    PERMISSION_DENIED = "permission_denied"
    CONFLICT = "conflict"
    INVALID = "invalid"
    FAILURE = "failure"


@dataclass(frozen=True)
class Result:
    """Outcome of an expected-to-fail operation (lookup, subscribe, delete...)."""

    ok: bool
    reason: Reason
    message: str = ""
    value: Any = None

    @classmethod
    def success(cls, message: str = "", value: Any = None) -> "Result":
        return cls(ok=True, reason=Reason.OK, message=message, value=value)

    @classmethod
    def failure(cls, reason: Reason, message: str) -> "Result":
        if reason is Reason.OK:
            raise ValueError("failure() requires a non-OK reason")
        return cls(ok=False, reason=reason, message=message)


class StoreError(RuntimeError):
    """The registry store could not complete an operation."""
