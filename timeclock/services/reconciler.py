"""
Work-Session Reconciler.

Keeps the two tables in step for each employee:

    NOT_WORKING --clock_in--> WORKING --clock_out--> NOT_WORKING

A clock-in appends a LedgerEntry and a WorkSession pointing at it. A
clock-out closes the LedgerEntry found by the locator chain and deletes the
WorkSession. Public operations return a ClockResult instead of raising, so
the caller always gets a structured outcome.

Operations for the same employee (by normalized name) are serialized with
an asyncio.Lock, which closes the double clock-in race inside one process.
Name variants that only match by containment get separate locks.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from timeclock.clock import Clock, SystemClock
from timeclock.exceptions import AttendanceError, NotFound, RateLimitExceeded, ValidationError
from timeclock.services.fetcher import ResilientFetcher
from timeclock.services.geocoding import NominatimGeocoder
from timeclock.services.locators import LocatorHint, locate_ledger_entry
from timeclock.services.matcher import is_name_match, normalize_name, similar_names
from timeclock.services.notifications import BestEffortDispatcher, MapWebhookNotifier
from timeclock.services.time_utils import (
    calculate_working_hours,
    format_hours,
    format_time,
    format_timestamp,
    resolve_timestamp,
)
from timeclock.sheets.columns import FormConfig
from timeclock.sheets.enums import Dataset
from timeclock.sheets.models import LedgerEntry, WorkSession
from timeclock.sheets.service import SheetStore

logger = logging.getLogger(__name__)

SESSION_STATUS_WORKING = "Working"
WARM_UP_DELAY = 2.0

MSG_CLOCK_IN_OK = "Clock-in recorded"
MSG_CLOCK_OUT_OK = "Clock-out recorded"
MSG_ALREADY_IN = "Already clocked in. Please clock out first."
MSG_NOT_IN = "You must clock in first, or check the name you entered."
MSG_NO_LEDGER_ROW = "No matching clock-in record found. Please contact an administrator."
MSG_TOO_MANY = "Too many requests. Please try again in a moment."


@dataclass(frozen=True)
class EmployeeStatus:
    is_working: bool
    session: Optional[WorkSession] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnWork": self.is_working,
            "workRecord": self.session.to_dict() if self.session else None,
        }


@dataclass
class ClockRequest:
    """Caller input for clock-in and clock-out."""

    employee: str
    lat: Any = None
    lon: Any = None
    line_name: str = ""
    line_picture: str = ""
    note: str = ""
    timestamp: Optional[str] = None

    def validate(self) -> None:
        if not self.employee or not self.employee.strip():
            raise ValidationError("Employee name is required", field="employee")
        if self.lat in (None, "") or self.lon in (None, ""):
            raise ValidationError("Location coordinates are required", field="lat")

    @property
    def coordinates(self) -> str:
        return f"{self.lat},{self.lon}"


@dataclass
class ClockResult:
    success: bool
    message: str
    employee: str = ""
    time: Optional[str] = None
    hours: Optional[str] = None
    current_status: Optional[str] = None
    clock_in_time: Optional[str] = None
    suggestions: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "message": self.message,
            "employee": self.employee,
        }
        optional = {
            "time": self.time,
            "hours": self.hours,
            "currentStatus": self.current_status,
            "clockInTime": self.clock_in_time,
        }
        result.update({key: value for key, value in optional.items() if value is not None})
        if self.suggestions:
            result["suggestions"] = self.suggestions
        return result


class WorkSessionReconciler:
    """
    Clock-in / clock-out state machine over the ledger and open-session forms.

    Args:
        fetcher: Cached, budget-gated reads.
        store: Remote store for writes.
        ledger_form: Field registry of the ledger form.
        on_work_form: Field registry of the open-session form.
        geocoder: Coordinates -> location label.
        dispatcher: Runs best-effort side effects.
        map_notifier: Optional map webhook.
        warm_up: Optional coroutine factory re-filling caches after writes.
            Assignable after construction.
        tz: Zone for every timestamp.
        clock: Time source.
    """

    def __init__(
        self,
        fetcher: ResilientFetcher,
        store: SheetStore,
        ledger_form: FormConfig,
        on_work_form: FormConfig,
        geocoder: NominatimGeocoder,
        dispatcher: BestEffortDispatcher,
        tz: tzinfo,
        map_notifier: Optional[MapWebhookNotifier] = None,
        warm_up: Optional[Callable[[], Awaitable[Any]]] = None,
        clock: Optional[Clock] = None,
        warm_up_delay: float = WARM_UP_DELAY,
    ) -> None:
        self._fetcher = fetcher
        self._store = store
        self._ledger_form = ledger_form
        self._on_work_form = on_work_form
        self._geocoder = geocoder
        self._dispatcher = dispatcher
        self._tz = tz
        self._map_notifier = map_notifier
        self.warm_up = warm_up
        self._clock = clock or SystemClock()
        self._warm_up_delay = warm_up_delay
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    @asynccontextmanager
    async def _employee_lock(self, employee: str) -> AsyncIterator[None]:
        """Serialize operations per normalized name. Unused locks are dropped."""
        key = normalize_name(employee)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                del self._locks[key]

    async def _sessions(self) -> List[WorkSession]:
        return await self._fetcher.safe_fetch(Dataset.ON_WORK)

    async def get_status(self, employee: str) -> EmployeeStatus:
        """Find the first open session whose system or display name matches."""
        for session in await self._sessions():
            if is_name_match(employee, session.system_name) or is_name_match(
                employee, session.employee_name
            ):
                return EmployeeStatus(is_working=True, session=session)
        return EmployeeStatus(is_working=False)

    # =========================================================================
    # Store writes
    # =========================================================================

    async def _append(self, form: FormConfig, values: Dict[str, Any]) -> int:
        with self._fetcher.limiter.budget(f"append:{form.form_key}"):
            return await self._store.append_row(form, values)

    async def _update(self, form: FormConfig, row_id: int, values: Dict[str, Any]) -> None:
        with self._fetcher.limiter.budget(f"update:{form.form_key}"):
            await self._store.update_fields(form, row_id, values)

    async def _delete(self, form: FormConfig, row_id: int) -> None:
        with self._fetcher.limiter.budget(f"delete:{form.form_key}"):
            await self._store.delete_row(form, row_id)

    def _invalidate(self) -> None:
        cache = self._fetcher.cache
        for dataset in (Dataset.ON_WORK, Dataset.LEDGER, Dataset.STATS):
            cache.invalidate(dataset)

    def _after_write(self, action: str, data: Dict[str, Any]) -> None:
        self._invalidate()
        if self._map_notifier is not None:
            self._dispatcher.dispatch(f"map-{action}", self._map_notifier.notify(action, data))
        if self.warm_up is not None:
            self._dispatcher.dispatch("cache-warm-up", self.warm_up(), delay=self._warm_up_delay)

    def _failure(self, employee: str, action: str, error: Exception) -> ClockResult:
        if isinstance(error, ValidationError):
            return ClockResult(success=False, message=str(error), employee=employee)
        if isinstance(error, RateLimitExceeded):
            logger.warning(f"{action} for {employee} denied by call budget")
            return ClockResult(success=False, message=MSG_TOO_MANY, employee=employee)
        logger.error(f"{action} error for {employee}: {error}")
        return ClockResult(success=False, message=f"An error occurred: {error}", employee=employee)

    # =========================================================================
    # Clock in
    # =========================================================================

    async def clock_in(self, request: ClockRequest) -> ClockResult:
        employee = (request.employee or "").strip()
        logger.info(f"Clock in request for: '{employee}'")
        try:
            request.validate()
            async with self._employee_lock(employee):
                return await self._clock_in(employee, request)
        except Exception as e:
            return self._failure(employee, "Clock in", e)

    async def _clock_in(self, employee: str, request: ClockRequest) -> ClockResult:
        status = await self.get_status(employee)
        if status.is_working:
            logger.info(f"Employee '{employee}' is already clocked in")
            return ClockResult(
                success=False,
                message=MSG_ALREADY_IN,
                employee=employee,
                current_status="clocked_in",
                clock_in_time=status.session.clock_in if status.session else None,
            )

        moment = resolve_timestamp(request.timestamp, self._clock, self._tz)
        timestamp = format_timestamp(moment)
        location = await self._geocoder.reverse(request.lat, request.lon)

        ledger_row = await self._append(self._ledger_form, {
            "EMPLOYEE": employee,
            "LINE_NAME": request.line_name,
            "LINE_PICTURE": request.line_picture,
            "CLOCK_IN": timestamp,
            "NOTE": request.note,
            "ENTRY_COORDINATES": request.coordinates,
            "ENTRY_LOCATION": location,
        })
        logger.info(f"Ledger row {ledger_row} created for {employee}")

        await self._append(self._on_work_form, {
            "TIMESTAMP": timestamp,
            "SYSTEM_NAME": employee,
            "CLOCK_IN": timestamp,
            "STATUS": SESSION_STATUS_WORKING,
            "NOTE": request.note,
            "COORDINATES": request.coordinates,
            "LOCATION": location,
            "LEDGER_ROW": str(ledger_row),
            "LINE_NAME": request.line_name,
            "LINE_PICTURE": request.line_picture,
            "EMPLOYEE_NAME": employee,
        })

        self._after_write("clockin", {
            "employee": employee,
            "lat": request.lat,
            "lon": request.lon,
            "line_name": request.line_name,
            "timestamp": timestamp,
        })
        logger.info(f"Clock in successful: {employee} at {format_time(moment)}")
        return ClockResult(
            success=True,
            message=MSG_CLOCK_IN_OK,
            employee=employee,
            time=format_time(moment),
            current_status="clocked_in",
        )

    # =========================================================================
    # Clock out
    # =========================================================================

    async def clock_out(self, request: ClockRequest) -> ClockResult:
        employee = (request.employee or "").strip()
        logger.info(f"Clock out request for: '{employee}'")
        try:
            request.validate()
            async with self._employee_lock(employee):
                return await self._clock_out(employee, request)
        except Exception as e:
            return self._failure(employee, "Clock out", e)

    async def suggestions_for(self, employee: str) -> List[Dict[str, str]]:
        """Open sessions whose names look like a typo of employee."""
        result: List[Dict[str, str]] = []
        for session in await self._sessions():
            names = [n for n in (session.system_name, session.employee_name) if n]
            if names and similar_names(employee, names):
                result.append({
                    "systemName": session.system_name,
                    "employeeName": session.employee_name,
                })
        return result

    async def _locate(self, employee: str, session: WorkSession) -> LedgerEntry:
        ledger: List[LedgerEntry] = await self._fetcher.fetch(Dataset.LEDGER)
        entry = locate_ledger_entry(ledger, LocatorHint(employee=employee, session=session, tz=self._tz))
        if entry is None:
            raise NotFound(f"No open ledger row for {employee}")
        return entry

    async def _clock_out(self, employee: str, request: ClockRequest) -> ClockResult:
        status = await self.get_status(employee)
        if not status.is_working or status.session is None:
            logger.info(f"Employee '{employee}' is not clocked in")
            suggestions = await self.suggestions_for(employee)
            message = MSG_NOT_IN
            if suggestions:
                names = [s["systemName"] or s["employeeName"] for s in suggestions]
                message = f"No clock-in found. Similar names: {', '.join(names)}"
            return ClockResult(
                success=False,
                message=message,
                employee=employee,
                current_status="not_clocked_in",
                suggestions=suggestions,
            )

        session = status.session
        moment = resolve_timestamp(request.timestamp, self._clock, self._tz)
        timestamp = format_timestamp(moment)
        hours = calculate_working_hours(session.clock_in, timestamp, tz=self._tz)
        location = await self._geocoder.reverse(request.lat, request.lon)

        try:
            entry = await self._locate(employee, session)
        except NotFound:
            return ClockResult(success=False, message=MSG_NO_LEDGER_ROW, employee=employee)

        await self._update(self._ledger_form, entry.row_id, {
            "CLOCK_OUT": timestamp,
            "EXIT_COORDINATES": request.coordinates,
            "EXIT_LOCATION": location,
            "WORKING_HOURS": format_hours(hours),
        })

        try:
            await self._delete(self._on_work_form, session.row_id)
        except AttendanceError as e:
            logger.error(f"Ledger row {entry.row_id} closed but open session {session.row_id} "
                         f"could not be removed: {e}")

        self._after_write("clockout", {
            "employee": employee,
            "lat": request.lat,
            "lon": request.lon,
            "line_name": request.line_name,
            "timestamp": timestamp,
            "hoursWorked": round(hours, 2),
        })
        logger.info(f"Clock out successful: {employee} at {format_time(moment)} ({format_hours(hours)} hours)")
        return ClockResult(
            success=True,
            message=MSG_CLOCK_OUT_OK,
            employee=employee,
            time=format_time(moment),
            hours=format_hours(hours),
            current_status="clocked_out",
        )

    # =========================================================================
    # Forced close
    # =========================================================================

    async def force_close(self, session: WorkSession, at: datetime, note: str) -> float:
        """
        Close a session without caller input (missed checkout).

        Writes note, clock-out and hours on the ledger row, then deletes the
        session. Unlike clock_out, failures propagate.

        Returns:
            Worked hours written to the ledger.

        Raises:
            NotFound: If no ledger row can be located.
            RateLimitExceeded: If the call budget denies a write.
        """
        employee = session.display_name
        async with self._employee_lock(employee):
            timestamp = format_timestamp(at)
            hours = calculate_working_hours(session.clock_in, timestamp, tz=self._tz)
            entry = await self._locate(employee, session)

            await self._update(self._ledger_form, entry.row_id, {
                "NOTE": note,
                "CLOCK_OUT": timestamp,
                "WORKING_HOURS": format_hours(hours),
            })
            await self._delete(self._on_work_form, session.row_id)
            self._invalidate()

        logger.info(f"Force-closed session of {employee} at {timestamp} ({format_hours(hours)} hours)")
        return hours
