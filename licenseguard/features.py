"""
licenseguard Feature Flags

A record carries 8 entitlement flags, numbered 1..8. A feature number outside
that range is not an error to be raised: the check simply fails.
"""

from typing import Any

from .record import FEATURE_COUNT, LicenseRecord
from .results import CheckResult, FailureReason


def _feature_check(record: Any, number: Any, expected: bool, check: str) -> CheckResult:
    if not isinstance(record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", check)

    if isinstance(number, bool) or not isinstance(number, int) or not 1 <= number <= FEATURE_COUNT:
        return CheckResult.failure(
            FailureReason.FEATURE_INDEX_OUT_OF_RANGE,
            f"feature number must be in 1..{FEATURE_COUNT}, got {number!r}",
            check
        )

    if record.features[number - 1] != expected:
        state = "disabled" if expected else "enabled"
        return CheckResult.failure(
            FailureReason.FEATURE_NOT_SATISFIED,
            f"feature {number} is {state}",
            check
        )

    return CheckResult.success(record, check)


def has_feature(record: Any, number: Any) -> CheckResult:
    """Pass if feature `number` (1..8) is enabled."""
    return _feature_check(record, number, True, f"feature_{number}")


def has_not_feature(record: Any, number: Any) -> CheckResult:
    """Pass if feature `number` (1..8) is disabled."""
    return _feature_check(record, number, False, f"no_feature_{number}")
