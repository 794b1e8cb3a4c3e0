"""
Timestamp helpers.

Cells hold local-time strings without a zone suffix; the configured IANA
zone is implied. New rows are written as DD/MM/YYYY HH:mm:ss. Older rows
also use YYYY-MM-DD H:mm:ss or ISO-8601, so parsing accepts all three.
"""

import logging
import re
from datetime import date, datetime, tzinfo
from typing import Optional
from zoneinfo import ZoneInfo

from timeclock.clock import Clock
from timeclock.exceptions import ValidationError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%d/%m/%Y %H:%M:%S"

_DMY = re.compile(
    r"^(\d{1,2})/(\d{1,2})/(\d{4})(?:[ T,]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)
_YMD = re.compile(
    r"^(\d{4})[-/](\d{1,2})[-/](\d{1,2})(?:[ T]+(\d{1,2}):(\d{2})(?::(\d{2}))?)?$"
)


def get_timezone(name: str) -> ZoneInfo:
    return ZoneInfo(name)


def _build(year: str, month: str, day: str, hour: Optional[str], minute: Optional[str],
           second: Optional[str], tz: tzinfo) -> Optional[datetime]:
    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour or 0), int(minute or 0), int(second or 0),
            tzinfo=tz,
        )
    except ValueError:
        return None


def parse_timestamp(value: str, tz: tzinfo) -> Optional[datetime]:
    """
    Parse a cell timestamp into an aware datetime in tz.

    Returns:
        The datetime, or None if the value is empty or unrecognised.
    """
    if not value:
        return None
    text = str(value).strip()

    match = _DMY.match(text)
    if match:
        day, month, year, hour, minute, second = match.groups()
        return _build(year, month, day, hour, minute, second, tz)

    match = _YMD.match(text)
    if match:
        year, month, day, hour, minute, second = match.groups()
        return _build(year, month, day, hour, minute, second, tz)

    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def format_timestamp(moment: datetime) -> str:
    return moment.strftime(TIMESTAMP_FORMAT)


def format_time(moment: datetime) -> str:
    return moment.strftime("%H:%M:%S")


def extract_date(value: str, tz: tzinfo) -> Optional[date]:
    """Calendar date of a cell timestamp, or None if it cannot be parsed."""
    parsed = parse_timestamp(value, tz)
    return parsed.date() if parsed else None


def resolve_timestamp(override: Optional[str], clock: Clock, tz: tzinfo) -> datetime:
    """
    Pick the instant for a clock event.

    A caller-supplied override (backfill, tests) wins over the current time.

    Raises:
        ValidationError: If the override cannot be parsed.
    """
    if override:
        parsed = parse_timestamp(override, tz)
        if parsed is None:
            raise ValidationError(f"Invalid timestamp: {override}", field="timestamp")
        return parsed
    return clock.now(tz)


def elapsed_seconds(start: datetime, end: datetime) -> float:
    """Seconds between two aware instants, counting UTC offset changes (DST)."""
    return end.timestamp() - start.timestamp()


def calculate_working_hours(
    clock_in: str,
    clock_out: Optional[str] = None,
    *,
    tz: tzinfo,
    now: Optional[datetime] = None,
) -> float:
    """
    Fractional hours between clock-in and clock-out.

    Without a clock-out the duration runs to `now`, which is how the live
    "currently working" figure is computed. Unparsable input gives 0.
    Negative durations (clock skew, bad edits) are logged and give 0.
    """
    start = parse_timestamp(clock_in, tz)
    if start is None:
        logger.warning(f"Cannot calculate hours, invalid clock-in: {clock_in!r}")
        return 0.0

    if clock_out:
        end = parse_timestamp(clock_out, tz)
        if end is None:
            logger.warning(f"Cannot calculate hours, invalid clock-out: {clock_out!r}")
            return 0.0
    else:
        end = now or datetime.now(tz)

    hours = elapsed_seconds(start, end) / 3600
    if hours < 0:
        logger.warning(
            f"Negative working hours ({hours:.2f}) for {clock_in} -> {clock_out or end}, using 0"
        )
        return 0.0
    return hours


def format_hours(hours: float) -> str:
    return f"{hours:.2f}"
