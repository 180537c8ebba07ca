import base64
from datetime import date, timedelta

import pytest
from nacl.signing import SigningKey

from licenseguard import LicenseRecord, payload_digest


def b64e(b: bytes) -> str:
    return base64.b64encode(b).decode('ascii')


def sign(record: LicenseRecord, signing_key: SigningKey) -> LicenseRecord:
    """Sign a record the way the licensing service does."""
    sig = signing_key.sign(payload_digest(record.signable_payload())).signature
    return record.with_signature(b64e(sig))


@pytest.fixture(scope="session")
def signing_key():
    return SigningKey.generate()


@pytest.fixture(scope="session")
def public_key(signing_key):
    return b64e(bytes(signing_key.verify_key))


@pytest.fixture(scope="session")
def other_public_key():
    return b64e(bytes(SigningKey.generate().verify_key))


@pytest.fixture
def today():
    return date(2024, 6, 15)


@pytest.fixture
def make_record(signing_key, today):
    """Factory for signed records; pass signed=False for an unsigned one."""
    def _make(signed=True, **overrides):
        values = dict(
            key="ABCDE-FGHIJ-KLMNO-PQRST",
            expires=today + timedelta(days=30),
            features=(True, False, True, False, False, False, False, True),
            signed_on=today,
            mid="",
            fields={"customer": {"name": "Acme Corp", "id": 42}, "notes": "annual"},
        )
        values.update(overrides)
        record = LicenseRecord(**values)
        return sign(record, signing_key) if signed else record
    return _make


@pytest.fixture
def sign_record(signing_key):
    """Re-sign a record, e.g. after building it by hand."""
    return lambda record: sign(record, signing_key)
