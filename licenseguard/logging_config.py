"""
Logging configuration for licenseguard.

Provides structured JSON logging and an audit logger for verification
decisions. The library never installs handlers on import; applications (or
the CLI) call configure_logging().
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict, List, Optional

# Context variable tying together the events of one validation run
verification_id_var: ContextVar[str] = ContextVar('verification_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        verification_id = verification_id_var.get()
        if verification_id:
            log_data["verification_id"] = verification_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Logger for license verification decisions.

    Keys are masked; a license key is a credential.
    """

    def __init__(self, name: str = "licenseguard.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        if not self._logger.isEnabledFor(level):
            return
        extra = {
            "event_type": event_type,
            "verification_id": verification_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def check_failed(self, key: Optional[str], check: Optional[str], reason: str, detail: Optional[str] = None) -> None:
        """Log a single failing check."""
        self._log(
            logging.WARNING,
            "CHECK_FAILED",
            license_key=mask_key(key),
            check=check,
            reason=reason,
            detail=detail,
            message=f"Check {check} failed: {reason}"
        )

    def chain_validated(self, key: str, checks: List[str]) -> None:
        """Log a record that passed every step of a chain."""
        self._log(
            logging.INFO,
            "CHAIN_VALIDATED",
            license_key=mask_key(key),
            checks=checks,
            message=f"License validated by {len(checks)} checks"
        )

    def chain_rejected(self, key: Optional[str], check: Optional[str], reason: str) -> None:
        """Log a chain that stopped at a failing step."""
        self._log(
            logging.WARNING,
            "CHAIN_REJECTED",
            license_key=mask_key(key),
            check=check,
            reason=reason,
            message=f"License rejected at {check}: {reason}"
        )

    def clock_check(self, status: str, source: str) -> None:
        """Log the outcome of a trusted time comparison."""
        level = logging.INFO if status == "TRUSTED" else logging.WARNING
        self._log(
            level,
            "CLOCK_CHECK",
            status=status,
            source=source,
            message=f"Clock check against {source}: {status}"
        )

    def persistence_failure(self, path: str, operation: str, error: str) -> None:
        """Log a failed save or load."""
        self._log(
            logging.ERROR,
            "PERSISTENCE_FAILURE",
            path=path,
            operation=operation,
            error=error,
            message=f"Could not {operation} {path}"
        )


def mask_key(value: Optional[str], visible_chars: int = 4) -> Optional[str]:
    """Mask a license key, showing only the last N characters."""
    if value is None:
        return None
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for an application using licenseguard.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # stderr keeps stdout free for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_verification_id(verification_id: Optional[str] = None) -> str:
    """
    Set the verification ID for the current context.

    Returns:
        The verification ID that was set
    """
    if verification_id is None:
        verification_id = str(uuid.uuid4())
    verification_id_var.set(verification_id)
    return verification_id


# Shared, stateless audit logger
audit_log = AuditLogger()
