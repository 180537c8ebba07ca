"""
licenseguard: Client-side License Verification

Version: 1.0.0
License: Apache 2.0

Decides whether a signed license record handed out by a licensing service is
authentic, unexpired, bound to this machine and carries the expected
features. Every check resolves to PASS (carrying the record) or FAIL
(carrying one reason). There is no third state.

Usage:
    from licenseguard import (
        LicenseRecord,
        ValidationChain,
        signature,
        not_expired,
        feature,
        on_machine,
        load_record,
    )

    record = LicenseRecord.from_dict(service_response)

    result = (
        ValidationChain()
        .then(signature(PUBLIC_KEY, max_age_days=30))
        .then(not_expired(check_with_trusted_time=True))
        .then(feature(1))
        .then(on_machine())
        .run(record)
    )

    if result.passed():
        # All conditions held; result.record is the validated record
        ...
    else:
        # result.reason is the first check that failed
        ...
"""

__version__ = "1.0.0"
__license__ = "Apache-2.0"

# Record model
from .record import (
    LicenseRecord,
    FEATURE_COUNT,
    SIGNED_PAYLOAD_VERSION,
)

# Canonicalization and hashing
from .canonicalization import canonicalize, canonicalize_str
from .hashing import sha256_hex, sha256_bytes, payload_digest

# Results
from .results import (
    CheckResult,
    FailureReason,
    LicenseCheckError,
)

# Checks
from .signing import (
    is_genuine,
    is_valid,
    check_signature,
    decode_public_key,
    MalformedKeyError,
)
from .expiration import (
    has_not_expired,
    has_valid_signature,
    days_until_expiration,
    signature_age_days,
)
from .timecheck import (
    TimeCheckStatus,
    TimeUnavailablePolicy,
    TrustedTimeSource,
    HttpDateTimeSource,
    FixedTimeSource,
    clock_is_trusted,
    default_time_source,
)
from .features import has_feature, has_not_feature
from .machine import (
    HashFunction,
    machine_code,
    machine_identifiers,
    is_on_right_machine,
)

# Chain
from .chain import (
    Check,
    ValidationChain,
    validate,
    signature,
    not_expired,
    feature,
    no_feature,
    on_machine,
    predicate,
    saved_to,
)

# Persistence
from .persistence import (
    Encoding,
    PersistenceError,
    save_record,
    load_record,
)


__all__ = [
    "__version__",

    # Record
    "LicenseRecord",
    "FEATURE_COUNT",
    "SIGNED_PAYLOAD_VERSION",

    # Canonicalization
    "canonicalize",
    "canonicalize_str",
    "sha256_hex",
    "sha256_bytes",
    "payload_digest",

    # Results
    "CheckResult",
    "FailureReason",
    "LicenseCheckError",

    # Signature
    "is_genuine",
    "is_valid",
    "check_signature",
    "decode_public_key",
    "MalformedKeyError",

    # Expiration
    "has_not_expired",
    "has_valid_signature",
    "days_until_expiration",
    "signature_age_days",
    "TimeCheckStatus",
    "TimeUnavailablePolicy",
    "TrustedTimeSource",
    "HttpDateTimeSource",
    "FixedTimeSource",
    "clock_is_trusted",
    "default_time_source",

    # Features
    "has_feature",
    "has_not_feature",

    # Machine
    "HashFunction",
    "machine_code",
    "machine_identifiers",
    "is_on_right_machine",

    # Chain
    "Check",
    "ValidationChain",
    "validate",
    "signature",
    "not_expired",
    "feature",
    "no_feature",
    "on_machine",
    "predicate",
    "saved_to",

    # Persistence
    "Encoding",
    "PersistenceError",
    "save_record",
    "load_record",
]
