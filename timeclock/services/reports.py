"""
Reporting over the cached datasets.

Everything here is a display path: reads go through safe_fetch and never
raise for remote trouble. Report rows are plain dicts handed to the external
Excel renderer.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Any, Callable, Dict, List, Mapping, Optional

from timeclock.clock import Clock, SystemClock
from timeclock.exceptions import ValidationError
from timeclock.services.fetcher import ResilientFetcher
from timeclock.services.time_utils import calculate_working_hours, extract_date, parse_timestamp
from timeclock.sheets.enums import Dataset
from timeclock.sheets.models import LedgerEntry, WorkSession

logger = logging.getLogger(__name__)

REPORT_TYPES = ("daily", "monthly", "range")


def _parse_date(value: Any, name: str) -> date:
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid or missing '{name}' (expected YYYY-MM-DD)", field=name) from e


def _parse_int(value: Any, name: str, low: int, high: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"Invalid or missing '{name}'", field=name) from e
    if not low <= number <= high:
        raise ValidationError(f"'{name}' must be between {low} and {high}", field=name)
    return number


def build_date_filter(report_type: str, params: Mapping[str, Any]) -> Callable[[date], bool]:
    """
    Predicate over clock-in dates for a report type.

    Raises:
        ValidationError: Unsupported type or bad parameters.
    """
    if report_type == "daily":
        target = _parse_date(params.get("date"), "date")
        return lambda day: day == target

    if report_type == "monthly":
        month = _parse_int(params.get("month"), "month", 1, 12)
        year = _parse_int(params.get("year"), "year", 1970, 9999)
        return lambda day: day.year == year and day.month == month

    if report_type == "range":
        start = _parse_date(params.get("startDate"), "startDate")
        end = _parse_date(params.get("endDate"), "endDate")
        if end < start:
            raise ValidationError("'endDate' is before 'startDate'", field="endDate")
        return lambda day: start <= day <= end

    raise ValidationError(f"Unsupported report type: {report_type}", field="type")


def to_report_record(number: int, entry: LedgerEntry) -> Dict[str, Any]:
    return {
        "no": number,
        "employee": entry.employee,
        "lineName": entry.line_name,
        "clockIn": entry.clock_in,
        "clockOut": entry.clock_out,
        "note": entry.note,
        "workingHours": entry.working_hours,
        "locationIn": entry.entry_location,
        "locationOut": entry.exit_location,
    }


class ReportService:
    """Roster listing, dashboard stats and report rows."""

    def __init__(self, fetcher: ResilientFetcher, tz: tzinfo, clock: Optional[Clock] = None) -> None:
        self._fetcher = fetcher
        self._tz = tz
        self._clock = clock or SystemClock()

    async def get_employees(self) -> List[str]:
        names: List[str] = await self._fetcher.safe_fetch(Dataset.ROSTER)
        return [name for name in names if name]

    def _working_entry(self, session: WorkSession, now: datetime) -> Dict[str, str]:
        hours = 0.0
        clock_in = ""
        if session.clock_in:
            hours = calculate_working_hours(session.clock_in, tz=self._tz, now=now)
            started = parse_timestamp(session.clock_in, self._tz)
            clock_in = started.strftime("%H:%M") if started else ""
        return {
            "name": session.display_name,
            "clockIn": clock_in,
            "workingHours": f"{hours:.1f} h" if hours > 0 else "0 h",
        }

    async def get_admin_stats(self) -> Dict[str, Any]:
        """Dashboard figures, cached under the stats dataset."""
        cache = self._fetcher.cache
        if cache.is_valid(Dataset.STATS):
            logger.debug("Using cached admin stats")
            return cache.get(Dataset.STATS)

        roster = await self.get_employees()
        sessions: List[WorkSession] = await self._fetcher.safe_fetch(Dataset.ON_WORK)

        now = self._clock.now(self._tz)
        today = now.date()
        present_today = sum(
            1 for session in sessions if extract_date(session.clock_in, self._tz) == today
        )

        stats = {
            "totalEmployees": len(roster),
            "presentToday": present_today,
            "workingNow": len(sessions),
            "absentToday": max(len(roster) - present_today, 0),
            "workingEmployees": [self._working_entry(s, now) for s in sessions],
        }
        logger.info(
            f"Admin stats: total={stats['totalEmployees']} present={present_today} "
            f"working={stats['workingNow']}"
        )
        cache.set(Dataset.STATS, stats)
        return stats

    async def get_report_data(self, report_type: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        """
        Ledger rows for a daily, monthly or date-range report.

        Raises:
            ValidationError: Unsupported type or bad parameters.
        """
        matches_day = build_date_filter(report_type, params)
        ledger: List[LedgerEntry] = await self._fetcher.safe_fetch(Dataset.LEDGER)

        selected = []
        for entry in ledger:
            day = extract_date(entry.clock_in, self._tz)
            if day is not None and matches_day(day):
                selected.append(entry)

        logger.info(f"Report '{report_type}' prepared: {len(selected)} of {len(ledger)} records")
        return [to_report_record(number, entry) for number, entry in enumerate(selected, start=1)]
