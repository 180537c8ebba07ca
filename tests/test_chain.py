"""
Validation chain tests.

The chain must stop at the first failing step, report that step's reason,
and never run a later step.
"""

import logging
from datetime import date, timedelta

import pytest

from licenseguard import (
    CheckResult,
    Encoding,
    FailureReason,
    FixedTimeSource,
    LicenseCheckError,
    LicenseRecord,
    ValidationChain,
    feature,
    load_record,
    machine_code,
    no_feature,
    not_expired,
    on_machine,
    predicate,
    saved_to,
    signature,
    validate,
)


def recording_step(calls, name, result_reason=None):
    def step(record):
        calls.append(name)
        if result_reason:
            return CheckResult.failure(result_reason, check=name)
        return CheckResult.success(record, name)
    return step


def test_empty_chain_returns_record(make_record):
    record = make_record()
    result = ValidationChain().run(record)
    assert result.passed()
    assert result.record is record


def test_full_chain_passes(make_record, public_key, today):
    record = make_record(mid=machine_code())
    result = (
        ValidationChain()
        .then(signature(public_key, max_age_days=30, today=today))
        .then(not_expired(today=today))
        .then(feature(1))
        .then(no_feature(2))
        .then(on_machine())
        .run(record)
    )
    assert result.passed()
    assert result.record is record


def test_short_circuits_on_first_failure(make_record):
    calls = []
    chain = ValidationChain([
        recording_step(calls, "first"),
        recording_step(calls, "second", FailureReason.MACHINE_MISMATCH),
        recording_step(calls, "third"),
    ])
    result = chain.run(make_record())
    assert calls == ["first", "second"]
    assert result.reason == FailureReason.MACHINE_MISMATCH
    assert result.check == "second"


def test_order_decides_reported_reason(make_record, other_public_key, today):
    record = make_record(expires=today - timedelta(days=1))
    sig_first = validate(record, signature(other_public_key), not_expired(today=today))
    exp_first = validate(record, not_expired(today=today), signature(other_public_key))
    assert sig_first.reason == FailureReason.SIGNATURE_INVALID
    assert exp_first.reason == FailureReason.EXPIRED


def test_then_does_not_mutate_chain(make_record):
    base = ValidationChain().then(feature(1))
    extended = base.then(feature(2))
    assert len(base) == 1
    assert len(extended) == 2
    assert base.run(make_record()).passed()
    assert extended.run(make_record()).reason == FailureReason.FEATURE_NOT_SATISFIED


def test_none_record_fails_before_steps():
    calls = []
    result = ValidationChain([recording_step(calls, "step")]).run(None)
    assert result.reason == FailureReason.INVALID_INPUT
    assert calls == []


def test_raising_step_is_contained(make_record):
    def explode(record):
        raise KeyError("missing")

    calls = []
    result = validate(make_record(), explode, recording_step(calls, "after"))
    assert result.reason == FailureReason.INVALID_INPUT
    assert calls == []


def test_step_returning_wrong_type_fails(make_record):
    result = validate(make_record(), lambda record: True)
    assert result.reason == FailureReason.INVALID_INPUT


def test_non_callable_step_rejected():
    with pytest.raises(TypeError):
        ValidationChain().then("feature 1")


def test_custom_predicate(make_record):
    is_acme = predicate(lambda r: r.fields["customer"]["name"] == "Acme Corp", "acme_customer")
    is_other = predicate(lambda r: r.fields["customer"]["name"] == "Other", "other_customer")
    assert validate(make_record(), is_acme).passed()
    result = validate(make_record(), is_other)
    assert result.reason == FailureReason.PREDICATE_FAILED
    assert result.check == "other_customer"


def test_check_result_then_skips_after_failure(make_record):
    calls = []
    failed = CheckResult.failure(FailureReason.EXPIRED)
    assert failed.then(recording_step(calls, "never")) is failed
    assert calls == []

    passed = CheckResult.success(make_record()).then(recording_step(calls, "once"))
    assert passed.passed()
    assert calls == ["once"]


def test_unwrap(make_record):
    record = make_record()
    assert CheckResult.success(record).unwrap() is record
    with pytest.raises(LicenseCheckError) as exc:
        CheckResult.failure(FailureReason.EXPIRED, "expired on 2020-01-01").unwrap()
    assert exc.value.reason == FailureReason.EXPIRED


def test_trusted_time_step(make_record, today):
    result = validate(
        make_record(),
        not_expired(check_with_trusted_time=True, time_source=FixedTimeSource(None), today=today),
    )
    assert result.reason == FailureReason.TIME_UNAVAILABLE


def test_saved_to_step(tmp_path, make_record, public_key, today):
    path = tmp_path / "validated.json"
    record = make_record()
    result = validate(record, signature(public_key, today=today), saved_to(path, Encoding.STRUCTURED))
    assert result.passed()
    assert load_record(path, Encoding.STRUCTURED).record == record


def test_failed_chain_does_not_save(tmp_path, make_record, other_public_key):
    path = tmp_path / "validated.lic"
    validate(make_record(), signature(other_public_key), saved_to(path))
    assert not path.exists()


def test_chain_logs_rejection(make_record, caplog):
    with caplog.at_level(logging.WARNING, logger="licenseguard.audit"):
        validate(make_record(), feature(2))
    events = [getattr(r, "extra_fields", {}).get("event_type") for r in caplog.records]
    assert "CHAIN_REJECTED" in events


def test_scenario_abc_record(sign_record, public_key, other_public_key):
    record = sign_record(LicenseRecord(
        key="ABC",
        expires=date(2020, 1, 1),
        features=(True,) + (False,) * 7,
        mid="",
    ))

    wrong_key = validate(record, signature(other_public_key), not_expired())
    assert wrong_key.reason == FailureReason.SIGNATURE_INVALID

    right_key = validate(record, signature(public_key), not_expired())
    assert right_key.reason == FailureReason.EXPIRED
    assert right_key.check == "not_expired"
