"""
Unit Tests for the Missed-Checkout Sweeper.
"""

import json
from datetime import datetime

import httpx
import pytest

from timeclock.exceptions import RemoteUnavailable
from timeclock.services.attendance import create_attendance_service
from timeclock.services.sweeper import MISSED_CHECKOUT_NOTE, SweepReport, format_sweep_summary


def open_session(store, employee, clock_in):
    ledger_id = store.seed("ledger", EMPLOYEE=employee, CLOCK_IN=clock_in)
    session_id = store.seed("on_work", SYSTEM_NAME=employee, EMPLOYEE_NAME=employee,
                            CLOCK_IN=clock_in, LEDGER_ROW=str(ledger_id))
    return ledger_id, session_id


@pytest.fixture
def at_cutoff(fake_clock, tz):
    fake_clock.set(datetime(2025, 1, 1, 23, 59, 0, tzinfo=tz))
    return fake_clock


class TestSweep:
    @pytest.mark.asyncio
    async def test_closes_todays_sessions(self, service, memory_store, at_cutoff):
        ledger_id, _ = open_session(memory_store, "Somchai Jones", "01/01/2025 08:00:00")

        report = await service.run_missed_checkout_sweep()

        assert report.success
        assert report.processed == 1
        assert memory_store.rows("on_work") == {}
        row = memory_store.rows("ledger")[ledger_id]
        assert row["NOTE"] == MISSED_CHECKOUT_NOTE
        assert row["CLOCK_OUT"] == "01/01/2025 23:59:59"
        assert row["WORKING_HOURS"] == "16.00"
        assert report.results[0]["autoClockOut"] == "01/01/2025 23:59:59"

    @pytest.mark.asyncio
    async def test_exempt_employee_stays_open(self, service, memory_store, at_cutoff):
        ledger_id, session_id = open_session(memory_store, "Night Guard", "01/01/2025 20:00:00")

        report = await service.run_missed_checkout_sweep()

        assert report.exempted == 1
        assert report.processed == 0
        assert session_id in memory_store.rows("on_work")
        assert "CLOCK_OUT" not in memory_store.rows("ledger")[ledger_id]

    @pytest.mark.asyncio
    async def test_sessions_from_other_days_are_skipped(self, service, memory_store, at_cutoff):
        _, session_id = open_session(memory_store, "Alice Brown", "31/12/2024 08:00:00")

        report = await service.run_missed_checkout_sweep()

        assert report.skipped == 1
        assert report.processed == 0
        assert session_id in memory_store.rows("on_work")

    @pytest.mark.asyncio
    async def test_incomplete_session_is_skipped(self, service, memory_store, at_cutoff):
        memory_store.seed("on_work", SYSTEM_NAME="", EMPLOYEE_NAME="", CLOCK_IN="01/01/2025 08:00:00")

        report = await service.run_missed_checkout_sweep()

        assert report.skipped == 1
        assert report.total_checked == 1

    @pytest.mark.asyncio
    async def test_failure_is_counted_and_others_continue(self, service, memory_store, at_cutoff):
        memory_store.seed("on_work", SYSTEM_NAME="Ghost", EMPLOYEE_NAME="Ghost",
                          CLOCK_IN="01/01/2025 09:00:00")
        open_session(memory_store, "Somchai Jones", "01/01/2025 08:00:00")

        report = await service.run_missed_checkout_sweep()

        assert report.failed == 1
        assert report.processed == 1
        failed, = [r for r in report.results if r["action"] == "failed"]
        assert failed["employee"] == "Ghost"

    @pytest.mark.asyncio
    async def test_unreadable_sessions_end_the_run(self, service, memory_store, at_cutoff):
        memory_store.fetch_error = RemoteUnavailable("Ragic API error 502", status_code=502)

        report = await service.run_missed_checkout_sweep()

        assert report.success is False
        assert "502" in report.error
        assert report.to_dict()["error"] == report.error

    @pytest.mark.asyncio
    async def test_nothing_open(self, service, at_cutoff):
        report = await service.run_missed_checkout_sweep()

        assert report.total_checked == 0
        assert report.needs_summary is False


@pytest.mark.asyncio
async def test_summary_pushed_to_line(settings_factory, mock_transport_factory, memory_store, fake_clock, tz):
    seen = []
    transport = mock_transport_factory(lambda request: httpx.Response(200, json={}), seen)
    settings = settings_factory(line_channel_access_token="line-token", line_admin_target="Cadmin")
    fake_clock.set(datetime(2025, 1, 1, 23, 59, 0, tzinfo=tz))
    open_session(memory_store, "Somchai Jones", "01/01/2025 08:00:00")

    async with httpx.AsyncClient(transport=transport) as client:
        service = create_attendance_service(settings, client, clock=fake_clock, store=memory_store)
        await service.run_missed_checkout_sweep()
        await service.dispatcher.drain(timeout=0)

    push, = [r for r in seen if r.url.path.endswith("/message/push")]
    assert push.headers["Authorization"] == "Bearer line-token"
    body = json.loads(push.content)
    assert body["to"] == "Cadmin"
    assert "Somchai Jones" in body["messages"][0]["text"]


def test_format_sweep_summary(tz):
    report = SweepReport(processed=1, exempted=1, failed=1, total_checked=3, results=[
        {"employee": "Night Guard", "action": "exempted", "clockIn": "01/01/2025 20:00:00"},
        {"employee": "Somchai Jones", "action": "processed", "autoClockOut": "01/01/2025 23:59:59"},
        {"employee": "Ghost", "action": "failed", "error": "No open ledger row for Ghost"},
    ])

    text = format_sweep_summary(report, datetime(2025, 1, 1, 23, 59, 0, tzinfo=tz), ["Night Guard"])

    assert text.startswith("Automatic clock-out report - 01/01/2025")
    assert "- Night Guard - clocked in 01/01/2025 20:00:00" in text
    assert "- Somchai Jones - auto clock-out 01/01/2025 23:59:59" in text
    assert "- Ghost - No open ledger row for Ghost" in text
    assert text.endswith("Exempt list: Night Guard")
