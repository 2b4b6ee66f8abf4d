from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SlotErrorCode(str, Enum):
    STORAGE_UNAVAILABLE = "storage-unavailable"
    INVALID_SLOT = "invalid-slot"
    MISSING_SLOT = "missing-slot"
    INVALID_SAVE = "invalid-save"
    REHYDRATE_FAILED = "rehydrate-failed"
    MISSING_ROLLBACK = "missing-rollback"
    STORAGE_FAILED = "storage-failed"


@dataclass(frozen=True)
class SlotResult(Generic[T]):
    """Tagged result of a slot operation: ok with a value, or a failure code and message."""

    ok: bool
    value: Optional[T] = None
    code: Optional[SlotErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: T) -> "SlotResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, code: SlotErrorCode, message: str) -> "SlotResult[T]":
        return cls(ok=False, code=code, message=message)
