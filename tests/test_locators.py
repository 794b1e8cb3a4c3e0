"""
Unit Tests for the ledger locator chain.

Each strategy is tested on its own, then the chain as a whole.
"""

from zoneinfo import ZoneInfo

import pytest

from timeclock.services.locators import (
    LOCATORS,
    LocatorHint,
    closest_in_time,
    index_match,
    latest_open_match,
    locate_ledger_entry,
    unique_open_match,
)
from timeclock.sheets.models import LedgerEntry, WorkSession


def entry(row_id, employee, clock_in, clock_out=""):
    return LedgerEntry(row_id=row_id, employee=employee, clock_in=clock_in, clock_out=clock_out)


def hint(tz, employee="Somchai", clock_in="01/01/2025 08:00:00", ledger_row=None):
    session = WorkSession(row_id=99, system_name=employee, employee_name=employee,
                          clock_in=clock_in, ledger_row=ledger_row)
    return LocatorHint(employee=employee, session=session, tz=tz)


class TestIndexMatch:
    def test_accepts_matching_name(self, tz):
        ledger = [entry(10, "Alice", "01/01/2025 07:00:00"), entry(11, "Somchai", "01/01/2025 08:00:00")]
        assert index_match(ledger, hint(tz, ledger_row=11)).row_id == 11

    def test_rejects_name_mismatch(self, tz):
        ledger = [entry(10, "Alice", "01/01/2025 07:00:00")]
        assert index_match(ledger, hint(tz, ledger_row=10)) is None

    def test_missing_or_unknown_index(self, tz):
        ledger = [entry(10, "Somchai", "01/01/2025 08:00:00")]
        assert index_match(ledger, hint(tz)) is None
        assert index_match(ledger, hint(tz, ledger_row=404)) is None


class TestUniqueOpenMatch:
    def test_single_open_row(self, tz):
        ledger = [
            entry(1, "Somchai", "31/12/2024 08:00:00", clock_out="31/12/2024 17:00:00"),
            entry(2, "Somchai", "01/01/2025 08:00:00"),
            entry(3, "Alice", "01/01/2025 08:00:00"),
        ]
        assert unique_open_match(ledger, hint(tz)).row_id == 2

    def test_ambiguous_returns_none(self, tz):
        ledger = [entry(1, "Somchai", "31/12/2024 08:00:00"), entry(2, "Somchai", "01/01/2025 08:00:00")]
        assert unique_open_match(ledger, hint(tz)) is None


class TestClosestInTime:
    def test_picks_nearest_within_threshold(self, tz):
        ledger = [
            entry(1, "Somchai", "31/12/2024 08:00:00"),
            entry(2, "Somchai", "01/01/2025 08:02:00"),
            entry(3, "Somchai", "01/01/2025 09:00:00"),
        ]
        assert closest_in_time(ledger, hint(tz)).row_id == 2

    def test_nearest_outside_threshold(self, tz):
        ledger = [entry(1, "Somchai", "01/01/2025 07:00:00"), entry(2, "Somchai", "01/01/2025 08:05:00")]
        assert closest_in_time(ledger, hint(tz)) is None

    def test_needs_multiple_candidates(self, tz):
        ledger = [entry(1, "Somchai", "01/01/2025 08:00:00")]
        assert closest_in_time(ledger, hint(tz)) is None


def test_latest_open_match_scans_backwards(tz):
    ledger = [
        entry(1, "Somchai", "30/12/2024 08:00:00"),
        entry(2, "Somchai", "31/12/2024 08:00:00"),
        entry(3, "Somchai", "01/01/2025 08:00:00", clock_out="01/01/2025 17:00:00"),
    ]
    assert latest_open_match(ledger, hint(tz)).row_id == 2


class TestChain:
    def test_order_of_strategies(self):
        assert [name for name, _ in LOCATORS] == [
            "index_match", "unique_open_match", "closest_in_time", "latest_open_match",
        ]

    def test_falls_through_to_latest_open(self, tz):
        ledger = [entry(1, "Somchai", "30/12/2024 08:00:00"), entry(2, "Somchai", "31/12/2024 08:00:00")]
        assert locate_ledger_entry(ledger, hint(tz, ledger_row=404)).row_id == 2

    def test_no_candidates(self, tz):
        ledger = [entry(1, "Alice", "01/01/2025 08:00:00")]
        assert locate_ledger_entry(ledger, hint(tz)) is None

    @pytest.mark.parametrize("ledger_row", [None, 4, 5, 404])
    def test_single_open_row_is_always_found(self, tz, ledger_row):
        ledger = [
            entry(4, "Somchai", "31/12/2024 08:00:00", clock_out="31/12/2024 17:00:00"),
            entry(5, "Somchai", "01/01/2025 08:00:00"),
        ]
        assert locate_ledger_entry(ledger, hint(tz, ledger_row=ledger_row)).row_id == 5


def test_index_match_skips_closed_row(tz):
    ledger = [entry(4, "Somchai", "31/12/2024 08:00:00", clock_out="31/12/2024 17:00:00")]
    assert index_match(ledger, hint(tz, ledger_row=4)) is None


def test_closest_in_time_across_daylight_saving_change():
    new_york = ZoneInfo("America/New_York")
    ledger = [
        entry(1, "Somchai", "09/03/2025 01:58:00"),
        entry(2, "Somchai", "09/03/2025 03:10:00"),
    ]
    # 01:58 EST and 03:01 EDT are three minutes apart
    found = closest_in_time(ledger, hint(new_york, clock_in="09/03/2025 03:01:00"))
    assert found.row_id == 1
