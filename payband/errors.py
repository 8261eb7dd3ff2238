from __future__ import annotations

import enum
from typing import Any


class ErrorCode(str, enum.Enum):
    INVALID_DATE = "INVALID_DATE"
    INVALID_RANGE = "INVALID_RANGE"
    UNBALANCED_DAY = "UNBALANCED_DAY"
    UNKNOWN_POLICY = "UNKNOWN_POLICY"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    POLICY_NOT_ASSIGNED = "POLICY_NOT_ASSIGNED"
    EXTRA_WITHIN_NORMAL = "EXTRA_WITHIN_NORMAL"
    LUNCH_NOT_PERMITTED = "LUNCH_NOT_PERMITTED"
    NORMAL_MINUTES_MISMATCH = "NORMAL_MINUTES_MISMATCH"
    HOLIDAY_WITH_NORMAL = "HOLIDAY_WITH_NORMAL"
    SEGMENTATION_FAILED = "SEGMENTATION_FAILED"


class ClassificationError(Exception):
    def __init__(self, code: ErrorCode, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code.value}] {self.message}"


def error_payload(exc: ClassificationError) -> dict[str, Any]:
    return {
        "error": {
            "code": exc.code.value,
            "message": exc.message,
            "details": exc.details,
        }
    }
