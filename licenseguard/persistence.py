"""
licenseguard Record Persistence

Saves license records to disk and loads them back, in one of two encodings:

RAW: line-oriented text, one `name=value` line per field, closed by a
SHA-256 trailer over everything before it.

    LICENSEGUARD-RAW 1
    key=ABC-123
    expires=+2030-01-01
    features=10100000
    signed_on=-
    mid=
    signature=+q1w2...
    fields=%7B%7D
    sha256=9f86d0...

Optional fields are `-` when absent and `+value` when present. Values are
percent-escaped so they never contain a newline or `=`.

STRUCTURED: an indented JSON document validated with pydantic on load.

Writes go to a temporary file beside the destination and are atomically
renamed over it, so an interrupted save never leaves a half-written file in
place of a good one.
"""

import contextlib
import json
import logging
import os
import tempfile
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union
from urllib.parse import quote, unquote

from pydantic import BaseModel, Field, StrictBool, ValidationError

from .canonicalization import canonicalize_str
from .hashing import constant_time_compare, sha256_hex
from .logging_config import audit_log
from .record import FEATURE_COUNT, LicenseRecord, format_date, parse_date, thaw_fields
from .results import CheckResult, FailureReason

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

RAW_HEADER = "LICENSEGUARD-RAW 1"
RAW_TRAILER = "sha256="
STRUCTURED_FORMAT = "licenseguard/structured"
STRUCTURED_VERSION = 1


class Encoding(str, Enum):
    """On-disk encodings of a license record."""
    RAW = "raw"
    STRUCTURED = "structured"


class PersistenceError(ValueError):
    """A record could not be encoded, decoded, written or read."""


# ============================================================
# Structured (JSON) encoding
# ============================================================

class StructuredRecord(BaseModel):
    key: str
    expires: Optional[date] = None
    features: List[StrictBool] = Field(min_length=FEATURE_COUNT, max_length=FEATURE_COUNT)
    signed_on: Optional[date] = None
    mid: str = ""
    signature: Optional[str] = None
    extra_fields: Dict[str, Any] = Field(default_factory=dict, alias="fields")


class StructuredDocument(BaseModel):
    format: Literal["licenseguard/structured"]
    version: Literal[1]
    record: StructuredRecord


def encode_structured(record: LicenseRecord) -> bytes:
    document = {
        "format": STRUCTURED_FORMAT,
        "version": STRUCTURED_VERSION,
        "record": record.to_dict(),
    }
    text = json.dumps(document, indent=2, sort_keys=True, ensure_ascii=False, allow_nan=False)
    return (text + "\n").encode('utf-8')


def decode_structured(data: bytes) -> LicenseRecord:
    try:
        document = StructuredDocument.model_validate_json(data)
    except ValidationError as e:
        raise PersistenceError(f"invalid structured license file: {e.error_count()} error(s)") from e

    r = document.record
    try:
        return LicenseRecord(
            key=r.key,
            expires=r.expires,
            features=tuple(r.features),
            signed_on=r.signed_on,
            mid=r.mid,
            signature=r.signature,
            fields=r.extra_fields,
        )
    except ValueError as e:
        raise PersistenceError(str(e)) from e


# ============================================================
# Raw (text) encoding
# ============================================================

def _escape(value: str) -> str:
    return quote(value, safe='')


def _optional(value: Optional[str]) -> str:
    return "-" if value is None else "+" + _escape(value)


def _parse_optional(value: str, name: str) -> Optional[str]:
    if value == "-":
        return None
    if value.startswith("+"):
        return unquote(value[1:])
    raise PersistenceError(f"{name} must be '-' or '+value'")


def encode_raw(record: LicenseRecord) -> bytes:
    fields_json = canonicalize_str(thaw_fields(record.fields))
    lines = [
        RAW_HEADER,
        f"key={_escape(record.key)}",
        f"expires={_optional(format_date(record.expires))}",
        "features=" + "".join("1" if flag else "0" for flag in record.features),
        f"signed_on={_optional(format_date(record.signed_on))}",
        f"mid={_escape(record.mid)}",
        f"signature={_optional(record.signature)}",
        f"fields={_escape(fields_json)}",
    ]
    body = "\n".join(lines) + "\n"
    return (body + RAW_TRAILER + sha256_hex(body) + "\n").encode('utf-8')


def decode_raw(data: bytes) -> LicenseRecord:
    try:
        text = data.decode('utf-8')
    except UnicodeDecodeError as e:
        raise PersistenceError("raw license file is not UTF-8") from e

    trailer_at = text.rfind("\n" + RAW_TRAILER)
    if trailer_at < 0:
        raise PersistenceError("raw license file has no checksum trailer")
    body = text[:trailer_at + 1]
    declared = text[trailer_at + 1 + len(RAW_TRAILER):].rstrip("\n")
    if not constant_time_compare(sha256_hex(body), declared):
        raise PersistenceError("raw license file checksum mismatch")

    lines = body.rstrip("\n").split("\n")
    if not lines or lines[0] != RAW_HEADER:
        raise PersistenceError("not a raw license file")

    values: Dict[str, str] = {}
    for line in lines[1:]:
        name, sep, value = line.partition("=")
        if not sep:
            raise PersistenceError(f"malformed line: {line!r}")
        if name in values:
            raise PersistenceError(f"duplicate field: {name}")
        values[name] = value

    expected = ["key", "expires", "features", "signed_on", "mid", "signature", "fields"]
    missing = [name for name in expected if name not in values]
    if missing:
        raise PersistenceError(f"missing fields: {missing}")

    flags = values["features"]
    if len(flags) != FEATURE_COUNT or set(flags) - {"0", "1"}:
        raise PersistenceError(f"features must be {FEATURE_COUNT} characters of 0/1")

    try:
        fields = json.loads(unquote(values["fields"]))
        return LicenseRecord(
            key=unquote(values["key"]),
            expires=parse_date(_parse_optional(values["expires"], "expires"), "expires"),
            features=tuple(flag == "1" for flag in flags),
            signed_on=parse_date(_parse_optional(values["signed_on"], "signed_on"), "signed_on"),
            mid=unquote(values["mid"]),
            signature=_parse_optional(values["signature"], "signature"),
            fields=fields,
        )
    except PersistenceError:
        raise
    except ValueError as e:
        # json.JSONDecodeError is a ValueError
        raise PersistenceError(str(e)) from e


_ENCODERS = {Encoding.RAW: encode_raw, Encoding.STRUCTURED: encode_structured}
_DECODERS = {Encoding.RAW: decode_raw, Encoding.STRUCTURED: decode_structured}


# ============================================================
# File I/O
# ============================================================

def _atomic_write(path: Path, data: bytes) -> None:
    """Write data to path via a temporary file and an atomic rename."""
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


def save_record(
    record: Any,
    path: PathLike,
    encoding: Encoding = Encoding.RAW
) -> CheckResult:
    """
    Save a record to `path`.

    Returns:
        CheckResult carrying the record on success, PERSISTENCE_FAILURE
        (or INVALID_INPUT for a missing record) otherwise
    """
    check = "save"
    if not isinstance(record, LicenseRecord):
        return CheckResult.failure(FailureReason.INVALID_INPUT, "no license record", check)

    path = Path(path)
    try:
        data = _ENCODERS[Encoding(encoding)](record)
        _atomic_write(path, data)
    except (PersistenceError, OSError, ValueError) as e:
        audit_log.persistence_failure(str(path), "save", str(e))
        return CheckResult.failure(FailureReason.PERSISTENCE_FAILURE, str(e), check)

    logger.debug("Saved license record to %s (%s)", path, Encoding(encoding).value)
    return CheckResult.success(record, check)


def load_record(path: PathLike, encoding: Encoding = Encoding.RAW) -> CheckResult:
    """
    Load a record saved with save_record().

    Returns:
        CheckResult carrying the loaded record, or PERSISTENCE_FAILURE
    """
    check = "load"
    path = Path(path)
    try:
        decoder = _DECODERS[Encoding(encoding)]
        with open(path, "rb") as f:
            data = f.read()
        record = decoder(data)
    except (PersistenceError, OSError, ValueError) as e:
        audit_log.persistence_failure(str(path), "load", str(e))
        return CheckResult.failure(FailureReason.PERSISTENCE_FAILURE, str(e), check)

    return CheckResult.success(record, check)
