"""
licenseguard Hashing

All digests use SHA-256. Hex output is lowercase.
"""

import hashlib
import hmac
from typing import Union

from .canonicalization import canonicalize


def sha256_hex(data: Union[bytes, str]) -> str:
    """
    Compute SHA-256 and return lowercase hexadecimal.

    This is also the default machine fingerprint hash strategy: it maps the
    concatenated local machine identifiers to a stable machine code.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest().lower()


def sha256_bytes(data: Union[bytes, str]) -> bytes:
    """Compute SHA-256 and return the raw digest."""
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).digest()


def payload_digest(payload: dict) -> bytes:
    """
    Digest of a signable payload.

    digest = SHA-256(canonical(payload))

    This is the message the licensing service signs.
    """
    return sha256_bytes(canonicalize(payload))


def constant_time_compare(a: Union[str, bytes], b: Union[str, bytes]) -> bool:
    """Compare two strings/bytes in constant time."""
    if isinstance(a, str):
        a = a.encode('utf-8')
    if isinstance(b, str):
        b = b.encode('utf-8')
    return hmac.compare_digest(a, b)
