"""
licenseguard Machine Binding

A machine-locked record carries the machine code of the computer it was
activated on. The local machine code is the hash of the local hardware
identifiers; the hash strategy is pluggable so the fingerprint algorithm can
change without touching the comparison.
"""

import logging
import platform
import uuid
from typing import Any, Callable, Optional

from .hashing import constant_time_compare, sha256_hex
from .record import LicenseRecord
from .results import CheckResult, FailureReason

logger = logging.getLogger(__name__)

HashFunction = Callable[[str], str]

CHECK_NAME = "on_machine"


def machine_identifiers() -> str:
    """
    Concatenated identifiers of this machine.

    MAC address (as an integer), hostname, OS name and architecture.
    """
    components = [
        str(uuid.getnode()),
        platform.node(),
        platform.system(),
        platform.machine(),
    ]
    return "|".join(components)


def machine_code(
    hash_function: HashFunction = sha256_hex,
    identifiers: Optional[str] = None
) -> str:
    """
    Fingerprint of this machine.

    Args:
        hash_function: Maps the identifier string to a machine code
        identifiers: Identifier string to hash (default: machine_identifiers())
    """
    if identifiers is None:
        identifiers = machine_identifiers()
    return hash_function(identifiers)


def is_on_right_machine(
    record: Any,
    hash_function: HashFunction = sha256_hex,
    identifiers: Optional[str] = None
) -> CheckResult:
    """Pass only if this machine's code equals the record's mid exactly."""
    if not isinstance(record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", CHECK_NAME)

    try:
        code = machine_code(hash_function, identifiers)
    except Exception as e:
        logger.warning("Machine code hash function failed: %s", e)
        return CheckResult.failure(FailureReason.INVALID_INPUT, f"hash function failed: {e}", CHECK_NAME)

    if not isinstance(code, str):
        return CheckResult.failure(
            FailureReason.INVALID_INPUT,
            f"hash function returned {type(code).__name__}, expected str",
            CHECK_NAME
        )

    if not constant_time_compare(code, record.mid):
        return CheckResult.failure(
            FailureReason.MACHINE_MISMATCH,
            "record is bound to a different machine",
            CHECK_NAME
        )

    return CheckResult.success(record, CHECK_NAME)
