import json
import logging
from datetime import date, datetime

import pytest

from licenseguard import canonicalize, canonicalize_str, payload_digest, sha256_hex
from licenseguard.logging_config import StructuredFormatter, mask_key, set_verification_id


def test_keys_sorted_and_compact():
    assert canonicalize_str({"b": 1, "a": [True, None]}) == '{"a":[true,null],"b":1}'


def test_unicode_is_not_escaped():
    assert canonicalize({"n": "ünïcode"}) == '{"n":"ünïcode"}'.encode('utf-8')


def test_dates_are_iso():
    assert canonicalize_str([date(2024, 2, 29)]) == '["2024-02-29"]'


@pytest.mark.parametrize("value", [datetime(2024, 1, 1), object(), {1: "a"}, float("nan"), b"bytes"])
def test_values_without_canonical_form(value):
    with pytest.raises(ValueError):
        canonicalize({"v": value})


def test_payload_digest_is_sha256_of_canonical_bytes():
    payload = {"z": 1, "a": 2}
    assert payload_digest(payload).hex() == sha256_hex(b'{"a":2,"z":1}')


def test_mask_key():
    assert mask_key("ABCDE-12345") == "*******2345"
    assert mask_key("AB") == "**"
    assert mask_key(None) is None


def test_structured_formatter_includes_verification_id():
    verification_id = set_verification_id("run-1")
    record = logging.LogRecord("licenseguard.test", logging.INFO, __file__, 1, "hello %s", ("world",), None)
    record.extra_fields = {"event_type": "CHAIN_VALIDATED"}
    data = json.loads(StructuredFormatter().format(record))
    assert data["message"] == "hello world"
    assert data["verification_id"] == verification_id
    assert data["event_type"] == "CHAIN_VALIDATED"
