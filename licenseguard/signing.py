"""
licenseguard Signature Verification

Records are signed by the licensing service with Ed25519 (RFC 8032) over the
SHA-256 digest of the record's canonical payload. This module only verifies;
it holds no private key material.
"""

import base64
import binascii
import logging
from typing import Any, Optional

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import VerifyKey

from .hashing import payload_digest
from .record import LicenseRecord
from .results import CheckResult, FailureReason

logger = logging.getLogger(__name__)

CHECK_NAME = "signature"


class MalformedKeyError(ValueError):
    """The public key is not a base64 encoded Ed25519 verify key."""


def decode_public_key(public_key_b64: Any) -> VerifyKey:
    """
    Decode a base64 Ed25519 public key.

    Raises:
        MalformedKeyError: if the value is not valid base64 or not 32 bytes
    """
    if not isinstance(public_key_b64, str) or not public_key_b64:
        raise MalformedKeyError("public key must be a non-empty base64 string")
    try:
        raw = base64.b64decode(public_key_b64.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise MalformedKeyError(f"public key is not valid base64: {e}") from e
    try:
        return VerifyKey(raw)
    except (CryptoError, ValueError, TypeError) as e:
        raise MalformedKeyError(f"public key is not an Ed25519 key: {e}") from e


def _decode_signature(signature_b64: Optional[str]) -> Optional[bytes]:
    if not signature_b64:
        return None
    try:
        return base64.b64decode(signature_b64.encode('ascii'), validate=True)
    except (binascii.Error, UnicodeEncodeError):
        return None


def _verify(record: LicenseRecord, verify_key: VerifyKey) -> bool:
    signature = _decode_signature(record.signature)
    if signature is None:
        return False
    try:
        verify_key.verify(payload_digest(record.signable_payload()), signature)
        return True
    except (BadSignatureError, CryptoError, ValueError, TypeError):
        return False


def is_genuine(record: Any, public_key: Any) -> bool:
    """
    Check that the record was signed by the holder of `public_key`.

    Args:
        record: The LicenseRecord to check
        public_key: Base64-encoded Ed25519 public key

    Returns:
        True if the signature is valid, False otherwise (never raises)
    """
    if not isinstance(record, LicenseRecord):
        return False
    try:
        verify_key = decode_public_key(public_key)
    except MalformedKeyError:
        return False
    return _verify(record, verify_key)


def check_signature(record: Any, public_key: Any) -> CheckResult:
    """
    Signature check with a typed failure reason.

    A missing record or malformed key is INVALID_INPUT; everything else that
    does not verify is SIGNATURE_INVALID.
    """
    if not isinstance(record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", CHECK_NAME)
    try:
        verify_key = decode_public_key(public_key)
    except MalformedKeyError as e:
        return CheckResult.failure(FailureReason.INVALID_INPUT, str(e), CHECK_NAME)

    if record.signature is None:
        return CheckResult.failure(FailureReason.SIGNATURE_INVALID, "record is not signed", CHECK_NAME)

    if not _verify(record, verify_key):
        logger.debug("Signature did not verify for key %s", record.key)
        return CheckResult.failure(FailureReason.SIGNATURE_INVALID, "signature mismatch", CHECK_NAME)

    return CheckResult.success(record, CHECK_NAME)


def is_valid(record: Any, public_key: Optional[str] = None) -> bool:
    """
    True if a record is present and, when a public key is given, genuine.
    """
    if not isinstance(record, LicenseRecord):
        return False
    if public_key is None:
        return True
    return is_genuine(record, public_key)
