"""
licenseguard Canonical Encoding

Produces the exact byte sequence a license record is signed over.
Semantically identical records always produce identical bytes, regardless of
the order their fields were supplied in or the locale of the verifying host.
"""

import json
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Union


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to its canonical JSON encoding.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens (compact form)
    - UTF-8 encoding, no BOM
    - Dates as ISO-8601 (YYYY-MM-DD), never locale formatted
    - Lowercase true/false, null for absent values
    - Arrays (and tuples) preserve order

    Returns:
        UTF-8 encoded bytes of canonical JSON

    Raises:
        ValueError: if the object contains a value with no canonical form
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(
        canonical,
        separators=(',', ':'),
        ensure_ascii=False,
        allow_nan=False,
    ).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def _canonicalize_value(value: Any) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, (int, float)):
        return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, datetime):
        # datetime is a date subclass; signed dates are day granularity only
        raise ValueError("Cannot canonicalize datetime: use a date")
    elif isinstance(value, date):
        return value.isoformat()
    elif isinstance(value, Mapping):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Mapping[str, Any]) -> Dict[str, Any]:
    """Canonicalize an object by sorting keys lexicographically."""
    for k in obj.keys():
        if not isinstance(k, str):
            raise ValueError(f"Object keys must be strings, got {type(k)}")
    sorted_keys = sorted(obj.keys())
    return {k: _canonicalize_value(obj[k]) for k in sorted_keys}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    """Canonicalize an array, preserving order."""
    return [_canonicalize_value(item) for item in arr]
