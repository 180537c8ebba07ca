"""
licenseguard Check Results

Every check returns a CheckResult: either the record it was given (PASS) or a
single typed failure reason (FAIL). There is no third state; a check that
cannot decide resolves to FAIL.
"""

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

if TYPE_CHECKING:
    from .record import LicenseRecord


class FailureReason(str, Enum):
    """Why a check did not pass."""
    INVALID_INPUT = "INVALID_INPUT"
    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    EXPIRED = "EXPIRED"
    SIGNATURE_TOO_OLD = "SIGNATURE_TOO_OLD"
    CLOCK_TAMPERED = "CLOCK_TAMPERED"
    TIME_UNAVAILABLE = "TIME_UNAVAILABLE"
    FEATURE_INDEX_OUT_OF_RANGE = "FEATURE_INDEX_OUT_OF_RANGE"
    FEATURE_NOT_SATISFIED = "FEATURE_NOT_SATISFIED"
    MACHINE_MISMATCH = "MACHINE_MISMATCH"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    PREDICATE_FAILED = "PREDICATE_FAILED"


class LicenseCheckError(ValueError):
    """Raised by CheckResult.unwrap() when the result is a failure."""

    def __init__(self, reason: FailureReason, detail: Optional[str] = None):
        self.reason = reason
        self.detail = detail
        message = reason.value if not detail else f"{reason.value}: {detail}"
        super().__init__(message)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of a single check or of a whole validation chain."""
    record: Optional['LicenseRecord'] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    check: Optional[str] = None

    @classmethod
    def success(cls, record: 'LicenseRecord', check: Optional[str] = None) -> 'CheckResult':
        return cls(record=record, check=check)

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        detail: Optional[str] = None,
        check: Optional[str] = None
    ) -> 'CheckResult':
        return cls(reason=reason, detail=detail, check=check)

    def passed(self) -> bool:
        return self.reason is None

    def failed(self) -> bool:
        return self.reason is not None

    def __bool__(self) -> bool:
        return self.passed()

    def then(self, step: Callable[['LicenseRecord'], 'CheckResult']) -> 'CheckResult':
        """
        Feed the validated record into the next check.

        A failed result is returned unchanged and `step` is never called.
        """
        if self.failed():
            return self
        return step(self.record)

    def unwrap(self) -> 'LicenseRecord':
        """Return the validated record or raise LicenseCheckError."""
        if self.failed():
            raise LicenseCheckError(self.reason, self.detail)
        return self.record

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"result": "PASS" if self.passed() else "FAIL"}
        if self.check:
            d["check"] = self.check
        if self.reason:
            d["reason"] = self.reason.value
        if self.detail:
            d["detail"] = self.detail
        if self.record is not None:
            d["key"] = self.record.key
        return d
