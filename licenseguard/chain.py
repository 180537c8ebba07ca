"""
licenseguard Validation Chain

Composes checks into a fail-closed pipeline:

    result = (
        ValidationChain()
        .then(signature(public_key, max_age_days=30))
        .then(not_expired(check_with_trusted_time=True))
        .then(feature(1))
        .then(on_machine())
        .run(record)
    )

    if result.passed():
        record = result.record
    else:
        print(result.reason, result.detail)

Each step receives the record validated by the previous step. The first
failing step ends the chain; no later step runs. Any callable taking a
LicenseRecord and returning a CheckResult is a step.
"""

import logging
from datetime import date
from typing import Any, Callable, Iterable, List, Optional, Tuple

from .expiration import has_not_expired, has_valid_signature
from .features import has_feature, has_not_feature
from .hashing import sha256_hex
from .logging_config import audit_log, set_verification_id
from .machine import HashFunction, is_on_right_machine
from .persistence import Encoding, PathLike, save_record
from .record import LicenseRecord
from .results import CheckResult, FailureReason
from .timecheck import TimeUnavailablePolicy, TrustedTimeSource

logger = logging.getLogger(__name__)

Check = Callable[[LicenseRecord], CheckResult]


def _step_name(step: Check) -> str:
    return getattr(step, "check_name", None) or getattr(step, "__name__", None) or repr(step)


def _run_step(step: Check, record: LicenseRecord) -> CheckResult:
    """Run one step, turning anything that is not a clean result into FAIL."""
    name = _step_name(step)
    try:
        result = step(record)
    except Exception as e:
        logger.exception("Check %s raised", name)
        return CheckResult.failure(FailureReason.INVALID_INPUT, f"check raised {type(e).__name__}: {e}", name)

    if not isinstance(result, CheckResult):
        return CheckResult.failure(
            FailureReason.INVALID_INPUT,
            f"check returned {type(result).__name__}, expected CheckResult",
            name
        )
    if result.passed() and not isinstance(result.record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "check passed without a record", name)
    return result


class ValidationChain:
    """
    An ordered, immutable sequence of checks.

    then() returns a new chain, so a base chain can be shared and extended
    by different call sites.
    """

    def __init__(self, steps: Iterable[Check] = ()):
        self._steps: Tuple[Check, ...] = tuple(steps)

    @property
    def steps(self) -> Tuple[Check, ...]:
        return self._steps

    def then(self, step: Check) -> 'ValidationChain':
        if not callable(step):
            raise TypeError("a chain step must be callable")
        return ValidationChain(self._steps + (step,))

    def __len__(self) -> int:
        return len(self._steps)

    def run(self, record: Any) -> CheckResult:
        """
        Run every step in order, stopping at the first failure.

        Returns:
            CheckResult carrying the original record if every step passed,
            otherwise the first failure
        """
        set_verification_id()

        if not isinstance(record, LicenseRecord):
            result = CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", "chain")
            audit_log.chain_rejected(None, result.check, result.reason.value)
            return result

        completed: List[str] = []
        current = CheckResult.success(record, "chain")
        for step in self._steps:
            current = current.then(lambda r, step=step: _run_step(step, r))
            if current.failed():
                audit_log.check_failed(record.key, current.check, current.reason.value, current.detail)
                audit_log.chain_rejected(record.key, current.check, current.reason.value)
                return current
            completed.append(current.check or _step_name(step))

        audit_log.chain_validated(record.key, completed)
        return CheckResult.success(record, "chain")


def validate(record: Any, *steps: Check) -> CheckResult:
    """Functional form: run `steps` over `record` as one chain."""
    return ValidationChain(steps).run(record)


# ============================================================
# Step factories
# ============================================================

def _named(name: str, fn: Check) -> Check:
    fn.check_name = name
    return fn


def signature(
    public_key: str,
    max_age_days: Optional[int] = None,
    today: Optional[date] = None
) -> Check:
    """Step: the record is genuine (and, optionally, recently signed)."""
    return _named("valid_signature", lambda record: has_valid_signature(
        record, public_key, signature_expiration_interval=max_age_days, today=today
    ))


def not_expired(
    check_with_trusted_time: bool = False,
    time_source: Optional[TrustedTimeSource] = None,
    on_time_unavailable: Optional[TimeUnavailablePolicy] = None,
    today: Optional[date] = None
) -> Check:
    """Step: the expiration date has not passed."""
    return _named("not_expired", lambda record: has_not_expired(
        record,
        check_with_trusted_time=check_with_trusted_time,
        time_source=time_source,
        on_time_unavailable=on_time_unavailable,
        today=today,
    ))


def feature(number: int) -> Check:
    """Step: feature `number` is enabled."""
    return _named(f"feature_{number}", lambda record: has_feature(record, number))


def no_feature(number: int) -> Check:
    """Step: feature `number` is disabled."""
    return _named(f"no_feature_{number}", lambda record: has_not_feature(record, number))


def on_machine(
    hash_function: HashFunction = sha256_hex,
    identifiers: Optional[str] = None
) -> Check:
    """Step: the record is bound to this machine."""
    return _named("on_machine", lambda record: is_on_right_machine(
        record, hash_function=hash_function, identifiers=identifiers
    ))


def predicate(fn: Callable[[LicenseRecord], bool], description: str = "predicate") -> Check:
    """Step: any boolean condition on the record."""
    def check(record: LicenseRecord) -> CheckResult:
        if fn(record):
            return CheckResult.success(record, description)
        return CheckResult.failure(FailureReason.PREDICATE_FAILED, f"{description} not satisfied", description)
    return _named(description, check)


def saved_to(path: PathLike, encoding: Encoding = Encoding.RAW) -> Check:
    """Step: persist the validated record; fails if it cannot be written."""
    return _named("save", lambda record: save_record(record, path, encoding))
