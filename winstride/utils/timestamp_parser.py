"""
Timestamp Parser Utility
========================

Parses the ISO-8601 ``timeCreated`` strings carried by event records and the
time-range bounds kept in filter state, normalizing them to timezone-naive
datetimes in UTC so they compare cleanly.

Supported Formats:
- ISO 8601 strings with or without offset (``Z``, ``+02:00``)
- Fractional seconds of 1 to 7 digits (.NET ``DateTime`` round-trip format,
  which trims trailing zeros)
- Python datetime objects
"""

import datetime
import logging
import re
from typing import Optional, Union

# Configure logger
logger = logging.getLogger(__name__)

# .NET emits up to 7 fractional digits and trims trailing zeros; older
# fromisoformat only accepts exactly 3 or 6
_FRACTION_RE = re.compile(r'\.(\d+)')


def _normalize_fraction(match) -> str:
    return '.' + match.group(1)[:6].ljust(6, '0')


class TimestampParser:
    """
    Timestamp parser for event-log records.

    All results are timezone-naive datetimes in UTC.
    """

    # Maximum reasonable timestamp (year 2100) - timezone-naive
    MAX_TIMESTAMP = datetime.datetime(2100, 1, 1)

    # Minimum reasonable timestamp (year 1980 - before Windows) - timezone-naive
    MIN_TIMESTAMP = datetime.datetime(1980, 1, 1)

    MONTHS = ['Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun',
              'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec']

    @staticmethod
    def parse_timestamp(timestamp: Union[str, datetime.datetime, None]) -> Optional[datetime.datetime]:
        """
        Parse a timestamp and return a naive datetime in UTC.

        Args:
            timestamp: ISO 8601 string, datetime, or None

        Returns:
            datetime.datetime: Parsed timestamp in UTC, or None if parsing fails

        Examples:
            >>> TimestampParser.parse_timestamp("2026-02-17T10:15:30Z")
            datetime.datetime(2026, 2, 17, 10, 15, 30)
        """
        if timestamp is None:
            return None

        if isinstance(timestamp, datetime.datetime):
            return TimestampParser._ensure_utc(timestamp)

        if not isinstance(timestamp, str):
            logger.warning(f"Unknown timestamp type: {type(timestamp)}")
            return None

        text = timestamp.strip()
        if not text:
            return None

        text = _FRACTION_RE.sub(_normalize_fraction, text.replace('Z', '+00:00'))
        try:
            dt = datetime.datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Failed to parse string timestamp: {timestamp}")
            return None

        dt = TimestampParser._ensure_utc(dt)
        if not TimestampParser._is_reasonable_timestamp(dt):
            logger.debug(f"Timestamp out of range: {timestamp}")
            return None
        return dt

    @staticmethod
    def _ensure_utc(dt: datetime.datetime) -> datetime.datetime:
        """
        Ensure datetime object is in UTC and timezone-naive.

        Args:
            dt: Datetime object

        Returns:
            datetime.datetime: Timezone-naive datetime in UTC
        """
        if dt.tzinfo is None:
            return dt
        return dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)

    @staticmethod
    def _is_reasonable_timestamp(dt: datetime.datetime) -> bool:
        """Check that the timestamp falls between 1980 and 2100."""
        return TimestampParser.MIN_TIMESTAMP <= dt <= TimestampParser.MAX_TIMESTAMP

    @staticmethod
    def utc_now() -> datetime.datetime:
        """Current time as a naive UTC datetime."""
        return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)

    @staticmethod
    def to_iso(dt: datetime.datetime) -> str:
        """Format a naive UTC datetime as an ISO 8601 string with a ``Z`` suffix."""
        return TimestampParser._ensure_utc(dt).isoformat(timespec='milliseconds') + 'Z'

    @staticmethod
    def days_ago_iso(days: float, now: Optional[datetime.datetime] = None) -> str:
        """
        ISO string for a point ``days`` before ``now``.

        Used for the default lower bound of the time-range filter.
        """
        now = now or TimestampParser.utc_now()
        return TimestampParser.to_iso(now - datetime.timedelta(days=days))

    @staticmethod
    def relative_time(iso: str, now: Optional[datetime.datetime] = None) -> str:
        """
        Short human-readable age of a timestamp ("42s ago", "3h ago", "Feb 17").

        Args:
            iso: ISO 8601 timestamp
            now: Reference time (defaults to current UTC time)

        Returns:
            str: Relative time label, or empty string if ``iso`` is unparseable
        """
        then = TimestampParser.parse_timestamp(iso)
        if then is None:
            return ""

        now = now or TimestampParser.utc_now()
        diff = (now - then).total_seconds()

        if diff < 0:
            return "just now"
        if diff < 60:
            return f"{int(diff)}s ago"
        if diff < 3600:
            return f"{int(diff // 60)}m ago"
        if diff < 86400:
            return f"{int(diff // 3600)}h ago"
        if diff < 604800:
            return f"{int(diff // 86400)}d ago"
        return f"{TimestampParser.MONTHS[then.month - 1]} {then.day}"
