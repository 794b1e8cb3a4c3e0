"""
Unit Tests for dashboard stats and report rows.
"""

from datetime import date

import pytest

from timeclock.exceptions import ValidationError
from timeclock.services.reports import build_date_filter
from timeclock.sheets.enums import Dataset


@pytest.fixture
def populated(memory_store):
    for name in ("Somchai Jones", "Alice Brown", "Night Guard"):
        memory_store.seed("roster", FULL_NAME=name)
    memory_store.seed("roster", FULL_NAME="")

    memory_store.seed("ledger", EMPLOYEE="Alice Brown", CLOCK_IN="31/12/2024 08:00:00",
                      CLOCK_OUT="31/12/2024 17:00:00", WORKING_HOURS="9.00")
    memory_store.seed("ledger", EMPLOYEE="Somchai Jones", CLOCK_IN="01/01/2025 08:00:00")
    memory_store.seed("ledger", EMPLOYEE="Night Guard", CLOCK_IN="2025-02-03 20:00:00")

    memory_store.seed("on_work", SYSTEM_NAME="Somchai Jones", EMPLOYEE_NAME="Somchai Jones",
                      CLOCK_IN="01/01/2025 08:00:00")
    memory_store.seed("on_work", SYSTEM_NAME="Night Guard", EMPLOYEE_NAME="Night Guard",
                      CLOCK_IN="31/12/2024 20:00:00")
    return memory_store


@pytest.mark.asyncio
async def test_get_employees_skips_blank_names(service, populated):
    assert await service.get_employees() == ["Somchai Jones", "Alice Brown", "Night Guard"]


class TestAdminStats:
    @pytest.mark.asyncio
    async def test_figures(self, service, populated):
        stats = await service.get_admin_stats()

        assert stats["totalEmployees"] == 3
        assert stats["presentToday"] == 1
        assert stats["workingNow"] == 2
        assert stats["absentToday"] == 2
        assert stats["workingEmployees"][0] == {
            "name": "Somchai Jones", "clockIn": "08:00", "workingHours": "2.0 h",
        }
        assert stats["workingEmployees"][1]["workingHours"] == "14.0 h"

    @pytest.mark.asyncio
    async def test_cached_until_invalidated(self, service, populated):
        first = await service.get_admin_stats()
        populated.seed("roster", FULL_NAME="New Hire")

        assert await service.get_admin_stats() is first
        service.fetcher.cache.invalidate(Dataset.STATS)
        service.fetcher.cache.invalidate(Dataset.ROSTER)
        assert (await service.get_admin_stats())["totalEmployees"] == 4

    @pytest.mark.asyncio
    async def test_remote_down_gives_empty_dashboard(self, service, memory_store):
        from timeclock.exceptions import RemoteUnavailable

        memory_store.fetch_error = RemoteUnavailable("down")
        stats = await service.get_admin_stats()

        assert stats["totalEmployees"] == 0
        assert stats["workingEmployees"] == []
        assert service.emergency_mode is True


class TestReportData:
    @pytest.mark.asyncio
    async def test_daily(self, service, populated):
        rows = await service.get_report_data("daily", {"date": "2025-01-01"})

        assert [r["employee"] for r in rows] == ["Somchai Jones"]
        assert rows[0]["no"] == 1
        assert rows[0]["clockOut"] == ""

    @pytest.mark.asyncio
    async def test_monthly_accepts_either_timestamp_format(self, service, populated):
        rows = await service.get_report_data("monthly", {"month": "2", "year": "2025"})
        assert [r["employee"] for r in rows] == ["Night Guard"]

    @pytest.mark.asyncio
    async def test_range_is_inclusive(self, service, populated):
        rows = await service.get_report_data("range", {"startDate": "2024-12-31", "endDate": "2025-01-01"})

        assert [r["employee"] for r in rows] == ["Alice Brown", "Somchai Jones"]
        assert [r["no"] for r in rows] == [1, 2]
        assert rows[0]["workingHours"] == "9.00"


class TestDateFilter:
    def test_unsupported_type(self):
        with pytest.raises(ValidationError, match="Unsupported report type"):
            build_date_filter("weekly", {})

    @pytest.mark.parametrize("params", [{}, {"date": "01/01/2025x"}, {"date": "tomorrow"}])
    def test_daily_requires_iso_date(self, params):
        with pytest.raises(ValidationError):
            build_date_filter("daily", params)

    def test_month_out_of_range(self):
        with pytest.raises(ValidationError, match="month"):
            build_date_filter("monthly", {"month": 13, "year": 2025})

    def test_range_order(self):
        with pytest.raises(ValidationError, match="endDate"):
            build_date_filter("range", {"startDate": "2025-02-01", "endDate": "2025-01-01"})

    def test_range_predicate(self):
        in_range = build_date_filter("range", {"startDate": "2025-01-01", "endDate": "2025-01-31"})
        assert in_range(date(2025, 1, 31))
        assert not in_range(date(2025, 2, 1))
