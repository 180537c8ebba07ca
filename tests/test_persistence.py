import json
import os
from datetime import date

import pytest

from licenseguard import (
    Encoding,
    FailureReason,
    LicenseRecord,
    is_genuine,
    load_record,
    save_record,
)
from licenseguard import persistence


@pytest.fixture(params=[Encoding.RAW, Encoding.STRUCTURED])
def encoding(request):
    return request.param


def test_round_trip(tmp_path, make_record, encoding):
    record = make_record()
    path = tmp_path / "license.lic"
    assert save_record(record, path, encoding).passed()
    loaded = load_record(path, encoding)
    assert loaded.passed()
    assert loaded.record == record


def test_round_trip_keeps_signature_valid(tmp_path, make_record, public_key, encoding):
    path = tmp_path / "license.lic"
    save_record(make_record(), path, encoding)
    assert is_genuine(load_record(path, encoding).record, public_key)


def test_round_trip_absent_optionals(tmp_path, encoding):
    record = LicenseRecord(key="K")
    path = tmp_path / "bare.lic"
    save_record(record, path, encoding)
    loaded = load_record(path, encoding).record
    assert loaded == record
    assert loaded.expires is None
    assert loaded.signed_on is None
    assert loaded.signature is None


def test_round_trip_awkward_strings(tmp_path, make_record, encoding):
    record = make_record(
        key="key=with\nnewline %20 and ünïcode",
        mid="+-",
        fields={"notes": "line1\nline2\r\n=sha256=", "empty": "", "nested": [1, 2.5, None, True]},
    )
    path = tmp_path / "awkward.lic"
    save_record(record, path, encoding)
    assert load_record(path, encoding).record == record


def test_round_trip_nested_fields(tmp_path, encoding):
    record = LicenseRecord(
        key="K",
        fields={"seats": (1, 2), "limits": {"max": 2.5, "tags": ["a", {"b": None}]}},
    )
    path = tmp_path / "nested.lic"
    assert save_record(record, path, encoding).passed()
    loaded = load_record(path, encoding).record
    assert loaded == record
    assert loaded.fields["seats"] == (1, 2)


@pytest.mark.parametrize("fields", [
    {1: "one"},
    {"since": date(2024, 1, 1)},
    {"x": {1, 2}},
    {"x": object()},
    {"nested": {"ratio": float("nan")}},
])
def test_fields_encoders_cannot_reproduce_are_rejected(fields):
    with pytest.raises(ValueError):
        LicenseRecord(key="K", fields=fields)


def test_save_overwrites_existing_file(tmp_path, make_record, encoding):
    path = tmp_path / "license.lic"
    save_record(make_record(key="FIRST"), path, encoding)
    save_record(make_record(key="SECOND"), path, encoding)
    assert load_record(path, encoding).record.key == "SECOND"


def test_missing_file(tmp_path, encoding):
    result = load_record(tmp_path / "absent.lic", encoding)
    assert result.reason == FailureReason.PERSISTENCE_FAILURE


def test_save_into_missing_directory(tmp_path, make_record, encoding):
    result = save_record(make_record(), tmp_path / "no" / "such" / "dir.lic", encoding)
    assert result.reason == FailureReason.PERSISTENCE_FAILURE


def test_save_none(tmp_path):
    assert save_record(None, tmp_path / "x.lic").reason == FailureReason.INVALID_INPUT


def test_wrong_encoding_fails(tmp_path, make_record):
    path = tmp_path / "license.lic"
    save_record(make_record(), path, Encoding.RAW)
    assert load_record(path, Encoding.STRUCTURED).failed()
    save_record(make_record(), path, Encoding.STRUCTURED)
    assert load_record(path, Encoding.RAW).failed()


@pytest.mark.parametrize("cut", [1, 10, 50, -80, -2])
def test_truncated_file_is_rejected(tmp_path, make_record, encoding, cut):
    path = tmp_path / "license.lic"
    save_record(make_record(), path, encoding)
    data = path.read_bytes()
    path.write_bytes(data[:cut])
    assert load_record(path, encoding).reason == FailureReason.PERSISTENCE_FAILURE


class TestRawEncoding:

    def test_layout(self, make_record):
        text = persistence.encode_raw(make_record(signed=False, signed_on=None)).decode('utf-8')
        lines = text.splitlines()
        assert lines[0] == "LICENSEGUARD-RAW 1"
        assert "features=10100001" in lines
        assert "signed_on=-" in lines
        assert "signature=-" in lines
        assert lines[-1].startswith("sha256=")

    def test_edited_value_fails_checksum(self, tmp_path, make_record):
        path = tmp_path / "license.lic"
        save_record(make_record(), path, Encoding.RAW)
        text = path.read_text(encoding="utf-8")
        path.write_text(text.replace("features=10100001", "features=11111111"), encoding="utf-8")
        result = load_record(path, Encoding.RAW)
        assert result.reason == FailureReason.PERSISTENCE_FAILURE
        assert "checksum" in result.detail


class TestStructuredEncoding:

    def test_document_shape(self, tmp_path, make_record):
        path = tmp_path / "license.json"
        save_record(make_record(), path, Encoding.STRUCTURED)
        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["format"] == "licenseguard/structured"
        assert document["version"] == 1
        assert len(document["record"]["features"]) == 8

    @pytest.mark.parametrize("mutate", [
        lambda d: d["record"].update(features=[True] * 7),
        lambda d: d["record"].update(features=["yes"] * 8),
        lambda d: d["record"].update(expires="tomorrow"),
        lambda d: d["record"].update(key=""),
        lambda d: d["record"].pop("key"),
        lambda d: d.update(version=2),
        lambda d: d.update(format="something-else"),
    ])
    def test_invalid_documents_rejected(self, tmp_path, make_record, mutate):
        path = tmp_path / "license.json"
        save_record(make_record(), path, Encoding.STRUCTURED)
        document = json.loads(path.read_text(encoding="utf-8"))
        mutate(document)
        path.write_text(json.dumps(document), encoding="utf-8")
        assert load_record(path, Encoding.STRUCTURED).reason == FailureReason.PERSISTENCE_FAILURE


def test_failed_write_leaves_no_partial_file(tmp_path, make_record, monkeypatch, encoding):
    path = tmp_path / "license.lic"
    save_record(make_record(key="ORIGINAL"), path, encoding)

    def failing_replace(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(persistence.os, "replace", failing_replace)
    result = save_record(make_record(key="NEW"), path, encoding)
    monkeypatch.undo()

    assert result.reason == FailureReason.PERSISTENCE_FAILURE
    assert load_record(path, encoding).record.key == "ORIGINAL"
    assert sorted(os.listdir(tmp_path)) == ["license.lic"]
