"""
licenseguard License Record

The immutable, signed license payload handed out by the licensing service.
"""

import math
from dataclasses import dataclass, field, replace
from datetime import date
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

FEATURE_COUNT = 8

# Bumped whenever the set or encoding of signed fields changes
SIGNED_PAYLOAD_VERSION = 1


def parse_date(value: Any, name: str) -> Optional[date]:
    """Parse an optional YYYY-MM-DD value."""
    if value is None:
        return None
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a YYYY-MM-DD string or null")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Invalid {name} '{value}': expected YYYY-MM-DD")


def format_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def freeze_fields(value: Any, path: str = "fields") -> Any:
    """
    Deep-copy a JSON-native value into read-only containers.

    Objects become mappingproxy, arrays become tuples. Anything both
    encodings could not reproduce exactly (non-str keys, dates, sets, NaN,
    arbitrary objects) is rejected.
    """
    if value is None or isinstance(value, (bool, str, int)):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"{path} must be a finite number")
        return value
    if isinstance(value, Mapping):
        frozen = {}
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValueError(f"{path} keys must be strings, got {type(k).__name__}")
            frozen[k] = freeze_fields(v, f"{path}.{k}")
        return MappingProxyType(frozen)
    if isinstance(value, (list, tuple)):
        return tuple(freeze_fields(v, f"{path}[{i}]") for i, v in enumerate(value))
    raise ValueError(f"{path} has no JSON form: {type(value).__name__}")


def thaw_fields(value: Any) -> Any:
    """Plain dict/list copy of a frozen value, for serialization."""
    if isinstance(value, Mapping):
        return {k: thaw_fields(v) for k, v in value.items()}
    if isinstance(value, tuple):
        return [thaw_fields(v) for v in value]
    return value


@dataclass(frozen=True)
class LicenseRecord:
    """
    A signed license record.

    Fields:
    - key: Unique license key
    - expires: Expiration date, None for a perpetual license
    - features: Exactly 8 ordered entitlement flags (feature 1 is index 0)
    - signed_on: Date the service signed the record, if reported
    - mid: Machine code the license is locked to, "" when not locked
    - signature: Base64 signature over the canonical payload
    - fields: Opaque business fields (customer, notes, ...). JSON-native
      values only; nested objects and arrays are frozen on construction
    """
    key: str
    expires: Optional[date] = None
    features: Tuple[bool, ...] = (False,) * FEATURE_COUNT
    signed_on: Optional[date] = None
    mid: str = ""
    signature: Optional[str] = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self._validate()
        # Normalize containers so the record cannot be changed after construction
        object.__setattr__(self, "features", tuple(self.features))
        object.__setattr__(self, "fields", freeze_fields(self.fields))

    def __hash__(self):
        # Equal records share key and signature; fields itself is unhashable
        return hash((self.key, self.signature))

    def _validate(self):
        if not isinstance(self.key, str) or not self.key:
            raise ValueError("key must be a non-empty string")

        for name in ("expires", "signed_on"):
            value = getattr(self, name)
            if value is not None and type(value) is not date:
                raise ValueError(f"{name} must be a date or None")

        if not isinstance(self.features, (list, tuple)):
            raise ValueError("features must be a sequence of booleans")
        if len(self.features) != FEATURE_COUNT:
            raise ValueError(
                f"features must contain exactly {FEATURE_COUNT} flags, got {len(self.features)}"
            )
        if not all(isinstance(flag, bool) for flag in self.features):
            raise ValueError("features must contain only booleans")

        if not isinstance(self.mid, str):
            raise ValueError("mid must be a string")

        if self.signature is not None and not isinstance(self.signature, str):
            raise ValueError("signature must be a base64 string or None")

        if not isinstance(self.fields, Mapping):
            raise ValueError("fields must be an object/dict")

    def signable_payload(self) -> Dict[str, Any]:
        """
        The fields covered by the signature.

        Everything except the signature itself. Absent optionals are kept as
        explicit nulls so presence is part of what is signed.
        """
        return {
            "v": SIGNED_PAYLOAD_VERSION,
            "key": self.key,
            "expires": format_date(self.expires),
            "features": list(self.features),
            "signed_on": format_date(self.signed_on),
            "mid": self.mid,
            "fields": thaw_fields(self.fields),
        }

    def with_signature(self, signature: Optional[str]) -> 'LicenseRecord':
        """Return a copy of this record carrying a different signature."""
        return replace(self, signature=signature)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "key": self.key,
            "expires": format_date(self.expires),
            "features": list(self.features),
            "signed_on": format_date(self.signed_on),
            "mid": self.mid,
            "signature": self.signature,
            "fields": thaw_fields(self.fields),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'LicenseRecord':
        """Create a record from a service response or persisted dictionary."""
        if not isinstance(data, Mapping):
            raise ValueError("record data must be an object/dict")

        required = ["key", "features"]
        missing = [f for f in required if f not in data]
        if missing:
            raise ValueError(f"Missing required fields: {missing}")

        return cls(
            key=data["key"],
            expires=parse_date(data.get("expires"), "expires"),
            features=data["features"],
            signed_on=parse_date(data.get("signed_on"), "signed_on"),
            mid="" if data.get("mid") is None else data["mid"],
            signature=data.get("signature"),
            fields={} if data.get("fields") is None else data["fields"],
        )
