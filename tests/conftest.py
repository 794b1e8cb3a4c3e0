"""
Pytest Configuration and Shared Fixtures.

Provides a controllable clock, an in-memory sheet store standing in for
Ragic, and a fully wired AttendanceService built on top of them.
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

import httpx
import pytest
import pytest_asyncio

from timeclock.config import TimeclockSettings
from timeclock.services.attendance import AttendanceService, create_attendance_service
from timeclock.sheets.columns import FormConfig
from timeclock.sheets.models import SheetRow

BANGKOK = ZoneInfo("Asia/Bangkok")


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self._now = start.timestamp()

    def time(self) -> float:
        return self._now

    def now(self, tz) -> datetime:
        return datetime.fromtimestamp(self._now, tz)

    def advance(self, seconds: float) -> None:
        self._now += seconds

    def set(self, moment: datetime) -> None:
        self._now = moment.timestamp()


@pytest.fixture
def tz() -> ZoneInfo:
    return BANGKOK


@pytest.fixture
def fake_clock() -> FakeClock:
    """10:00 Bangkok time on 2025-01-01."""
    return FakeClock(datetime(2025, 1, 1, 10, 0, 0, tzinfo=BANGKOK))


# =============================================================================
# Sheet store
# =============================================================================


class InMemorySheetStore:
    """
    SheetStore backed by dicts, keyed by form_key.

    Record ids are allocated from a single counter, like Ragic does per
    database. fetch_error / write_error make the next calls fail; latency
    makes every call yield to the event loop.
    """

    def __init__(self) -> None:
        self.tables: Dict[str, Dict[int, Dict[str, Any]]] = {}
        self.fetch_calls: Dict[str, int] = {}
        self.fetch_error: Optional[Exception] = None
        self.write_error: Optional[Exception] = None
        self.deleted: List[int] = []
        self.latency = 0.0
        self._next_id = 1

    def seed(self, form_key: str, **values: Any) -> int:
        row_id = self._next_id
        self._next_id += 1
        self.tables.setdefault(form_key, {})[row_id] = {k: str(v) for k, v in values.items()}
        return row_id

    async def _yield(self) -> None:
        if self.latency:
            await asyncio.sleep(self.latency)

    def rows(self, form_key: str) -> Dict[int, Dict[str, Any]]:
        return self.tables.get(form_key, {})

    async def fetch_rows(self, form: FormConfig) -> List[SheetRow]:
        await self._yield()
        self.fetch_calls[form.form_key] = self.fetch_calls.get(form.form_key, 0) + 1
        if self.fetch_error is not None:
            raise self.fetch_error
        table = self.rows(form.form_key)
        return [
            SheetRow(row_id=row_id, values={name: table[row_id].get(name, "") for name in form.fields})
            for row_id in sorted(table)
        ]

    async def append_row(self, form: FormConfig, values: Dict[str, Any]) -> int:
        await self._yield()
        if self.write_error is not None:
            raise self.write_error
        form.to_field_ids(values)
        return self.seed(form.form_key, **values)

    async def update_fields(self, form: FormConfig, row_id: int, values: Dict[str, Any]) -> None:
        await self._yield()
        if self.write_error is not None:
            raise self.write_error
        form.to_field_ids(values)
        self.tables[form.form_key][row_id].update({k: str(v) for k, v in values.items()})

    async def delete_row(self, form: FormConfig, row_id: int) -> None:
        await self._yield()
        if self.write_error is not None:
            raise self.write_error
        del self.tables[form.form_key][row_id]
        self.deleted.append(row_id)


@pytest.fixture
def memory_store() -> InMemorySheetStore:
    return InMemorySheetStore()


# =============================================================================
# Settings & service
# =============================================================================


@pytest.fixture
def settings_factory() -> Callable[..., TimeclockSettings]:
    """Settings isolated from the host environment and .env file."""
    def _create(**overrides: Any) -> TimeclockSettings:
        values: Dict[str, Any] = {
            "ragic_api_key": "test-ragic-key",
            "geocoding_enabled": False,
            "jwt_secret_key": "test-secret-key-12345",
            "exempt_employees": ["Night Guard"],
        }
        values.update(overrides)
        return TimeclockSettings(_env_file=None, **values)
    return _create


@pytest.fixture
def settings(settings_factory) -> TimeclockSettings:
    return settings_factory()


@pytest.fixture
def mock_transport_factory() -> Callable[..., httpx.MockTransport]:
    """MockTransport recording every request it answers."""
    def _create(handler: Callable[[httpx.Request], httpx.Response], seen: Optional[list] = None):
        def _record(request: httpx.Request) -> httpx.Response:
            if seen is not None:
                seen.append(request)
            return handler(request)
        return httpx.MockTransport(_record)
    return _create


@pytest_asyncio.fixture
async def http_client():
    """Client that refuses every request; services under test must not reach the network."""
    def _refuse(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "network disabled in tests"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(_refuse)) as client:
        yield client


@pytest_asyncio.fixture
async def service(settings, http_client, fake_clock, memory_store) -> AttendanceService:
    service = create_attendance_service(settings, http_client, clock=fake_clock, store=memory_store)
    yield service
    await service.dispatcher.drain(timeout=0)
