"""
Missed-Checkout Sweeper.

Once a day, at the cutoff, every open session that started today is closed
at HH:MM:59 with a fixed note. Exempt employees (night shifts) and sessions
from earlier days are left open for manual review. One summary goes out per
run, not one per employee.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, Dict, List, Optional, Sequence

from timeclock.clock import Clock, SystemClock
from timeclock.services.fetcher import ResilientFetcher
from timeclock.services.matcher import is_exempt
from timeclock.services.notifications import LineNotifier
from timeclock.services.reconciler import WorkSessionReconciler
from timeclock.services.time_utils import extract_date, format_hours, format_time, format_timestamp
from timeclock.sheets.enums import Dataset
from timeclock.sheets.models import WorkSession

logger = logging.getLogger(__name__)

MISSED_CHECKOUT_NOTE = "Forgot to clock out (auto)"


@dataclass
class SweepReport:
    processed: int = 0
    exempted: int = 0
    failed: int = 0
    skipped: int = 0
    total_checked: int = 0
    results: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def needs_summary(self) -> bool:
        return bool(self.processed or self.exempted or self.failed)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "success": self.success,
            "processedCount": self.processed,
            "exemptedCount": self.exempted,
            "failedCount": self.failed,
            "skippedCount": self.skipped,
            "totalChecked": self.total_checked,
            "results": self.results,
            "message": (
                f"Processed {self.processed} missed checkouts, "
                f"exempted {self.exempted} employees"
            ),
        }
        if self.error:
            result["error"] = self.error
        return result


def format_sweep_summary(report: SweepReport, moment: datetime, exempt_names: Sequence[str]) -> str:
    """Plain-text summary for the admin chat."""
    lines = [
        f"Automatic clock-out report - {moment.strftime('%d/%m/%Y')}",
        "",
        f"Auto clocked out: {report.processed}",
        f"Exempted: {report.exempted}",
        f"Failed: {report.failed}",
    ]

    sections = (
        ("exempted", "Exempted employees:", lambda r: f"- {r['employee']} - clocked in {r['clockIn']}"),
        ("processed", "Clocked out:", lambda r: f"- {r['employee']} - auto clock-out {r['autoClockOut']}"),
        ("failed", "Failed:", lambda r: f"- {r['employee']} - {r['error']}"),
    )
    for action, title, render in sections:
        matching = [r for r in report.results if r["action"] == action]
        if matching:
            lines.extend(["", title])
            lines.extend(render(r) for r in matching)

    lines.extend([
        "",
        f"Processed at {format_time(moment)}",
        f"Exempt list: {', '.join(exempt_names) or '-'}",
    ])
    return "\n".join(lines)


class MissedCheckoutSweeper:
    """
    Args:
        fetcher: Reads the open-session dataset.
        reconciler: Performs each forced close.
        tz: Zone defining "today" and the cutoff.
        cutoff_hour / cutoff_minute: Synthesized clock-out (seconds are 59).
        exempt_names: Names never auto-closed, matched with the name policy.
        notifier: Optional LINE push for the summary.
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        reconciler: WorkSessionReconciler,
        tz: tzinfo,
        cutoff_hour: int = 23,
        cutoff_minute: int = 59,
        exempt_names: Sequence[str] = (),
        notifier: Optional[LineNotifier] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._fetcher = fetcher
        self._reconciler = reconciler
        self._tz = tz
        self._cutoff_hour = cutoff_hour
        self._cutoff_minute = cutoff_minute
        self._exempt_names = list(exempt_names)
        self._notifier = notifier
        self._clock = clock or SystemClock()

    def cutoff_for(self, now: datetime) -> datetime:
        return now.replace(
            hour=self._cutoff_hour, minute=self._cutoff_minute, second=59, microsecond=0
        )

    async def run(self) -> SweepReport:
        now = self._clock.now(self._tz)
        cutoff = self.cutoff_for(now)
        report = SweepReport()

        logger.info(f"Starting missed checkout sweep, cutoff {format_timestamp(cutoff)}")
        try:
            sessions: List[WorkSession] = await self._fetcher.fetch(Dataset.ON_WORK)
        except Exception as e:
            logger.error(f"Missed checkout sweep could not read open sessions: {e}")
            report.error = str(e)
            return report

        report.total_checked = len(sessions)
        for session in sessions:
            await self._process(session, now, cutoff, report)

        logger.info(
            f"Missed checkout sweep done: checked={report.total_checked} "
            f"processed={report.processed} exempted={report.exempted} "
            f"failed={report.failed} skipped={report.skipped}"
        )

        if report.needs_summary:
            await self._send_summary(report, now)
        return report

    async def _process(self, session: WorkSession, now: datetime, cutoff: datetime,
                       report: SweepReport) -> None:
        employee = session.display_name
        if not employee or not session.clock_in:
            logger.warning(f"Missing data for open session {session.row_id}: {employee or 'Unknown'}")
            report.skipped += 1
            return

        if is_exempt(employee, self._exempt_names):
            logger.info(f"EXEMPT: {employee} - skipping auto checkout")
            report.exempted += 1
            report.results.append({
                "employee": employee,
                "action": "exempted",
                "clockIn": session.clock_in,
            })
            return

        started = extract_date(session.clock_in, self._tz)
        if started != now.date():
            logger.info(f"Skipping {employee} - not clocked in today ({started})")
            report.skipped += 1
            return

        try:
            hours = await self._reconciler.force_close(session, cutoff, MISSED_CHECKOUT_NOTE)
        except Exception as e:
            logger.error(f"Failed to process missed checkout for {employee}: {e}")
            report.failed += 1
            report.results.append({"employee": employee, "action": "failed", "error": str(e)})
            return

        report.processed += 1
        report.results.append({
            "employee": employee,
            "action": "processed",
            "clockIn": session.clock_in,
            "autoClockOut": format_timestamp(cutoff),
            "hoursWorked": format_hours(hours),
        })

    async def _send_summary(self, report: SweepReport, now: datetime) -> None:
        if self._notifier is None or not self._notifier.is_configured():
            logger.info("Summary notifier not configured, skipping missed checkout summary")
            return
        text = format_sweep_summary(report, now, self._exempt_names)
        if not await self._notifier.send_text(text):
            logger.warning("Missed checkout summary could not be delivered")
