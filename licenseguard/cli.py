#!/usr/bin/env python3
"""
licenseguard Command Line Interface

Usage:
    licenseguard verify --file <file> --public-key <key> [--feature N] [--machine]
    licenseguard fingerprint
    licenseguard convert --file <file> --output <file> --to structured
    licenseguard digest --file <file>
"""

import argparse
import json
import sys
from typing import List, Optional

from . import config
from .logging_config import configure_logging


def _encoding(structured: bool):
    from .persistence import Encoding
    return Encoding.STRUCTURED if structured else Encoding.RAW


def _load(path: str, structured: bool):
    from .persistence import load_record

    result = load_record(path, _encoding(structured))
    if result.failed():
        print(f"✗ Cannot load {path}: {result.detail}", file=sys.stderr)
        return None
    return result.record


def cmd_verify(args) -> int:
    """Verify a saved license record."""
    from .chain import ValidationChain, feature, no_feature, not_expired, on_machine, signature
    from .timecheck import TimeUnavailablePolicy

    record = _load(args.file, args.structured)
    if record is None:
        return 1

    chain = ValidationChain().then(signature(args.public_key, max_age_days=args.max_age))
    chain = chain.then(not_expired(
        check_with_trusted_time=args.trusted_time,
        on_time_unavailable=TimeUnavailablePolicy(args.time_unavailable) if args.time_unavailable else None,
    ))
    for number in args.feature or []:
        chain = chain.then(feature(number))
    for number in args.no_feature or []:
        chain = chain.then(no_feature(number))
    if args.machine:
        chain = chain.then(on_machine())

    result = chain.run(record)

    if result.passed():
        print(f"✓ VALID: {record.key}")
        return 0
    print(f"✗ {result.reason.value} at {result.check}")
    if result.detail:
        print(f"  {result.detail}")
    return 1


def cmd_fingerprint(args) -> int:
    """Print this machine's machine code."""
    from .machine import machine_code

    print(machine_code())
    return 0


def cmd_convert(args) -> int:
    """Re-encode a saved record."""
    from .persistence import Encoding, save_record

    record = _load(args.file, args.structured)
    if record is None:
        return 1

    result = save_record(record, args.output, Encoding(args.to))
    if result.failed():
        print(f"✗ Cannot save {args.output}: {result.detail}", file=sys.stderr)
        return 1
    print(f"Record saved to: {args.output}")
    return 0


def cmd_digest(args) -> int:
    """Print the canonical signed payload and its digest."""
    from .canonicalization import canonicalize_str
    from .hashing import sha256_hex

    record = _load(args.file, args.structured)
    if record is None:
        return 1

    payload = canonicalize_str(record.signable_payload())
    print(json.dumps({"payload": payload, "sha256": sha256_hex(payload)}, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="licenseguard",
        description="License record verification",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  licenseguard verify -f license.lic -k <base64 key> --feature 1 --machine
  licenseguard verify -f license.json --structured -k <base64 key> --max-age 30
  licenseguard fingerprint
  licenseguard convert -f license.lic -o license.json --to structured
        """
    )
    parser.add_argument("--log-level", default=config.LOG_LEVEL, help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_file_args(p):
        p.add_argument("-f", "--file", required=True, help="Saved license record")
        p.add_argument("--structured", action="store_true", help="File uses the structured (JSON) encoding")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify a license record")
    add_file_args(verify_parser)
    verify_parser.add_argument("-k", "--public-key", required=True, help="Base64 Ed25519 public key")
    verify_parser.add_argument("--max-age", type=int, help="Maximum days since signing")
    verify_parser.add_argument("--feature", type=int, action="append", help="Require feature N (1-8)")
    verify_parser.add_argument("--no-feature", type=int, action="append", help="Require feature N to be off")
    verify_parser.add_argument("--machine", action="store_true", help="Require the record to be bound to this machine")
    verify_parser.add_argument("--trusted-time", action="store_true", help="Check the local clock against trusted time")
    verify_parser.add_argument(
        "--time-unavailable",
        choices=["fail", "pass"],
        help="Outcome when trusted time cannot be obtained (default: LICENSEGUARD_TIME_UNAVAILABLE)"
    )

    # fingerprint
    subparsers.add_parser("fingerprint", help="Print this machine's machine code")

    # convert
    convert_parser = subparsers.add_parser("convert", help="Re-encode a license record")
    add_file_args(convert_parser)
    convert_parser.add_argument("-o", "--output", required=True, help="Output file")
    convert_parser.add_argument("--to", choices=["raw", "structured"], default="structured", help="Target encoding")

    # digest
    digest_parser = subparsers.add_parser("digest", help="Show the signed payload of a record")
    add_file_args(digest_parser)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, json_format=config.LOG_JSON)

    commands = {
        "verify": cmd_verify,
        "fingerprint": cmd_fingerprint,
        "convert": cmd_convert,
        "digest": cmd_digest,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 2
    return command(args)


if __name__ == "__main__":
    sys.exit(main())
