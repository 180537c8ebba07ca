"""
licenseguard Expiration Policy

Two independent time checks:
- has_not_expired: the record's expiration date has not passed, optionally
  confirmed against trusted time so that winding the local clock back does
  not revive an expired license.
- has_valid_signature: the record is genuine and, if asked, was signed
  recently enough. This forces periodic re-validation with the licensing
  service instead of indefinite offline reuse of one signed record.
"""

import logging
from datetime import date
from typing import Any, Optional

from .record import LicenseRecord
from .results import CheckResult, FailureReason
from .signing import check_signature
from .timecheck import (
    TimeCheckStatus,
    TimeUnavailablePolicy,
    TrustedTimeSource,
    clock_is_trusted,
    default_unavailable_policy,
)

logger = logging.getLogger(__name__)


def days_until_expiration(record: LicenseRecord, today: Optional[date] = None) -> Optional[int]:
    """Signed day difference expires - today. None for a perpetual license."""
    if record.expires is None:
        return None
    today = today or date.today()
    return (record.expires - today).days


def has_not_expired(
    record: Any,
    check_with_trusted_time: bool = False,
    time_source: Optional[TrustedTimeSource] = None,
    on_time_unavailable: Optional[TimeUnavailablePolicy] = None,
    today: Optional[date] = None
) -> CheckResult:
    """
    Check that the expiration date is today or later.

    Args:
        record: The LicenseRecord to check
        check_with_trusted_time: Also verify that the local clock agrees with
            a trusted time source
        time_source: Trusted time source (default: configured HTTP source)
        on_time_unavailable: Whether an unreachable time source fails the
            check or is passed through
        today: Local date to compare against (default: date.today())

    Returns:
        CheckResult carrying the record, or EXPIRED / CLOCK_TAMPERED /
        TIME_UNAVAILABLE
    """
    check = "not_expired"
    if not isinstance(record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", check)

    remaining = days_until_expiration(record, today)
    if remaining is not None and remaining < 0:
        return CheckResult.failure(
            FailureReason.EXPIRED,
            f"expired on {record.expires.isoformat()}",
            check
        )

    if check_with_trusted_time:
        status = clock_is_trusted(time_source)
        if status == TimeCheckStatus.TAMPERED:
            return CheckResult.failure(
                FailureReason.CLOCK_TAMPERED,
                "local clock disagrees with trusted time",
                check
            )
        if status == TimeCheckStatus.UNAVAILABLE:
            policy = on_time_unavailable or default_unavailable_policy()
            if policy == TimeUnavailablePolicy.FAIL:
                return CheckResult.failure(
                    FailureReason.TIME_UNAVAILABLE,
                    "trusted time could not be obtained",
                    check
                )
            logger.info("Trusted time unavailable; accepting local clock for %s", record.key)

    return CheckResult.success(record, check)


def signature_age_days(record: LicenseRecord, today: Optional[date] = None) -> Optional[int]:
    """Whole days elapsed since signing. None if no signing date."""
    if record.signed_on is None:
        return None
    today = today or date.today()
    return (today - record.signed_on).days


def has_valid_signature(
    record: Any,
    public_key: Any,
    signature_expiration_interval: Optional[int] = None,
    today: Optional[date] = None
) -> CheckResult:
    """
    Check the signature and, optionally, its age.

    Args:
        record: The LicenseRecord to check
        public_key: Base64-encoded Ed25519 public key
        signature_expiration_interval: If the record carries a signing date,
            fail when more than this many days have passed since signing
        today: Local date to compare against (default: date.today())
    """
    check = "valid_signature"
    if signature_expiration_interval is not None and (
        isinstance(signature_expiration_interval, bool)
        or not isinstance(signature_expiration_interval, int)
        or signature_expiration_interval < 0
    ):
        return CheckResult.failure(
            FailureReason.INVALID_INPUT,
            "signature expiration interval must be a non-negative number of days",
            check
        )

    result = check_signature(record, public_key)
    if result.failed():
        return CheckResult.failure(result.reason, result.detail, check)

    if signature_expiration_interval is not None:
        age = signature_age_days(record, today)
        if age is not None and age > signature_expiration_interval:
            return CheckResult.failure(
                FailureReason.SIGNATURE_TOO_OLD,
                f"signed {age} days ago, limit is {signature_expiration_interval}",
                check
            )

    return CheckResult.success(record, check)
