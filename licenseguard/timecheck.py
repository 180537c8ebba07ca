"""
licenseguard Trusted Time

Detects a local clock that has been wound back to keep an expired license
alive. The local UTC clock is compared with the Date header of an HTTPS
response; a difference beyond the tolerance means the clock cannot be trusted.

Inability to reach the time source is reported as UNAVAILABLE, never as
TAMPERED. Callers decide what UNAVAILABLE means for them.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Callable, Optional

import requests

from . import config
from .logging_config import audit_log

logger = logging.getLogger(__name__)


class TimeCheckStatus(str, Enum):
    """Result of comparing the local clock with trusted time."""
    TRUSTED = "TRUSTED"
    TAMPERED = "TAMPERED"
    UNAVAILABLE = "UNAVAILABLE"


class TimeUnavailablePolicy(str, Enum):
    """How an expiration check treats an unreachable time source."""
    FAIL = "fail"
    PASS = "pass"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def compare_clocks(
    local: datetime,
    trusted: datetime,
    tolerance: timedelta
) -> TimeCheckStatus:
    """Classify the local clock against trusted time."""
    if abs(local - trusted) > tolerance:
        return TimeCheckStatus.TAMPERED
    return TimeCheckStatus.TRUSTED


class TrustedTimeSource(ABC):
    """Something that can tell whether the local clock is trustworthy."""

    @abstractmethod
    def check(self) -> TimeCheckStatus:
        """Must return a status, never raise."""
        pass


class HttpDateTimeSource(TrustedTimeSource):
    """
    Trusted time from the Date header of an HTTP HEAD response.

    Args:
        url: Endpoint to query
        timeout: Seconds before the query is abandoned
        tolerance: Allowed drift between local and trusted time
        clock: Local UTC clock (injectable)
    """

    def __init__(
        self,
        url: str = config.TIME_URL,
        timeout: float = config.TIME_TIMEOUT,
        tolerance: timedelta = timedelta(hours=config.CLOCK_TOLERANCE_HOURS),
        clock: Callable[[], datetime] = _utc_now
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.url = url
        self.timeout = timeout
        self.tolerance = tolerance
        self._clock = clock

    def fetch_time(self) -> Optional[datetime]:
        """Return trusted UTC time, or None if it cannot be obtained."""
        try:
            response = requests.head(self.url, timeout=self.timeout, allow_redirects=False)
        except requests.RequestException as e:
            logger.warning("Trusted time query to %s failed: %s", self.url, e)
            return None

        if response.status_code >= 400:
            logger.warning("Trusted time query to %s returned HTTP %s", self.url, response.status_code)
            return None

        header = response.headers.get("Date")
        if not header:
            logger.warning("Trusted time response from %s has no Date header", self.url)
            return None

        try:
            trusted = parsedate_to_datetime(header)
        except (TypeError, ValueError):
            logger.warning("Unparsable Date header from %s: %r", self.url, header)
            return None

        if trusted.tzinfo is None:
            trusted = trusted.replace(tzinfo=timezone.utc)
        return trusted

    def check(self) -> TimeCheckStatus:
        trusted = self.fetch_time()
        if trusted is None:
            return TimeCheckStatus.UNAVAILABLE
        status = compare_clocks(self._clock(), trusted, self.tolerance)
        if status == TimeCheckStatus.TAMPERED:
            logger.warning("Local clock differs from trusted time by more than %s", self.tolerance)
        return status


class FixedTimeSource(TrustedTimeSource):
    """
    Trusted time supplied by the caller.

    For applications that already obtain authenticated time elsewhere.
    With trusted=None the source reports UNAVAILABLE.
    """

    def __init__(
        self,
        trusted: Optional[datetime],
        tolerance: timedelta = timedelta(hours=config.CLOCK_TOLERANCE_HOURS),
        clock: Callable[[], datetime] = _utc_now
    ):
        self.trusted = trusted
        self.tolerance = tolerance
        self._clock = clock

    def check(self) -> TimeCheckStatus:
        if self.trusted is None:
            return TimeCheckStatus.UNAVAILABLE
        return compare_clocks(self._clock(), self.trusted, self.tolerance)


def default_time_source() -> TrustedTimeSource:
    """Build the time source described by the environment configuration."""
    return HttpDateTimeSource(
        url=config.TIME_URL,
        timeout=config.TIME_TIMEOUT,
        tolerance=timedelta(hours=config.CLOCK_TOLERANCE_HOURS),
    )


def default_unavailable_policy() -> TimeUnavailablePolicy:
    """Policy named by LICENSEGUARD_TIME_UNAVAILABLE; unknown values fail closed."""
    try:
        return TimeUnavailablePolicy(config.TIME_UNAVAILABLE)
    except ValueError:
        return TimeUnavailablePolicy.FAIL


def clock_is_trusted(source: Optional[TrustedTimeSource] = None) -> TimeCheckStatus:
    """Query a trusted time source (the configured HTTP source by default)."""
    source = source or default_time_source()
    try:
        status = TimeCheckStatus(source.check())
    except Exception as e:
        # Custom sources are caller code; a crash means time could not be verified
        logger.warning("Trusted time source %r raised: %s", source, e)
        status = TimeCheckStatus.UNAVAILABLE
    audit_log.clock_check(status.value, getattr(source, "url", type(source).__name__))
    return status
