"""
Attendance service.

Single entry point for the route layer and the scheduler. Composes the call
budget, dataset cache, fetch façade, reconciler, sweeper and reports, and
is built once per process by create_attendance_service().
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from timeclock.clock import Clock, SystemClock
from timeclock.config import TimeclockSettings
from timeclock.services.cache import DatasetCache
from timeclock.services.fetcher import ResilientFetcher
from timeclock.services.geocoding import NominatimGeocoder
from timeclock.services.matcher import find_matches
from timeclock.services.notifications import BestEffortDispatcher, LineNotifier, MapWebhookNotifier
from timeclock.services.rate_limiter import CallBudgetLimiter, RateLimitConfig
from timeclock.services.reconciler import (
    ClockRequest,
    ClockResult,
    EmployeeStatus,
    WorkSessionReconciler,
)
from timeclock.services.reports import ReportService
from timeclock.services.sweeper import MissedCheckoutSweeper, SweepReport
from timeclock.services.time_utils import get_timezone
from timeclock.sheets.columns import FormConfig, get_form_config
from timeclock.sheets.enums import Dataset
from timeclock.sheets.models import LedgerEntry, WorkSession
from timeclock.sheets.service import RagicSheetStore, SheetStore

logger = logging.getLogger(__name__)


class AttendanceService:
    """Operations exposed to the API and the daily scheduler."""

    def __init__(
        self,
        fetcher: ResilientFetcher,
        reconciler: WorkSessionReconciler,
        sweeper: MissedCheckoutSweeper,
        reports: ReportService,
        dispatcher: BestEffortDispatcher,
    ) -> None:
        self.fetcher = fetcher
        self.reconciler = reconciler
        self.sweeper = sweeper
        self.reports = reports
        self.dispatcher = dispatcher

    # =========================================================================
    # Employee operations
    # =========================================================================

    async def get_status(self, employee: str) -> EmployeeStatus:
        return await self.reconciler.get_status(employee)

    async def check_status(self, employee: str) -> Dict[str, Any]:
        """Status plus every open session, for diagnosing name mismatches."""
        status = await self.reconciler.get_status(employee)
        sessions: List[WorkSession] = await self.fetcher.safe_fetch(Dataset.ON_WORK)
        current = [session.to_dict() for session in sessions]

        suggestions = list(dict.fromkeys(
            session.system_name or session.employee_name
            for session in sessions
            if find_matches(employee, (session.system_name, session.employee_name))
        ))

        return {
            "employee": employee,
            "isOnWork": status.is_working,
            "hasWorkRecord": status.session is not None,
            "workRecord": status.session.to_dict() if status.session else None,
            "allCurrentEmployees": current,
            "suggestions": suggestions,
        }

    async def clock_in(self, request: ClockRequest) -> ClockResult:
        return await self.reconciler.clock_in(request)

    async def clock_out(self, request: ClockRequest) -> ClockResult:
        return await self.reconciler.clock_out(request)

    # =========================================================================
    # Reporting
    # =========================================================================

    async def get_employees(self) -> List[str]:
        return await self.reports.get_employees()

    async def get_admin_stats(self) -> Dict[str, Any]:
        return await self.reports.get_admin_stats()

    async def get_report_data(self, report_type: str, params: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.reports.get_report_data(report_type, params)

    async def warm_up(self) -> None:
        """Re-fill the open-session cache and the dashboard stats."""
        await self.fetcher.safe_fetch(Dataset.ON_WORK)
        await self.reports.get_admin_stats()

    # =========================================================================
    # Operations and introspection
    # =========================================================================

    def set_emergency_mode(self, enabled: bool) -> None:
        self.fetcher.set_emergency_mode(enabled)

    @property
    def emergency_mode(self) -> bool:
        return self.fetcher.emergency_mode

    async def refresh_cache(self) -> None:
        """
        Drop every cached dataset, then re-read the open sessions and roster.

        Raises:
            AttendanceError: If either re-read fails.
        """
        logger.info("Manual cache refresh initiated")
        self.fetcher.cache.invalidate()
        await self.fetcher.fetch(Dataset.ON_WORK)
        await self.fetcher.fetch(Dataset.ROSTER)

    def get_cache_status(self) -> Dict[str, Any]:
        return {
            "emergencyMode": self.fetcher.emergency_mode,
            "datasets": self.fetcher.cache.snapshot(),
        }

    def get_api_stats(self) -> Dict[str, Any]:
        return self.fetcher.limiter.get_stats()

    async def get_quota_status(self) -> Dict[str, Any]:
        """Check the roster read without accepting stale data."""
        api_healthy = True
        last_error: Optional[str] = None
        try:
            await self.fetcher.fetch(Dataset.ROSTER, allow_stale=False)
        except Exception as e:
            api_healthy = False
            last_error = str(e)
            logger.warning(f"Quota health check failed: {e}")

        if api_healthy:
            recommendations = ["System operating normally"]
        else:
            recommendations = [
                "Wait for the remote quota to reset",
                "Cached data is served in the meantime",
                "Reduce use of features that call the remote store",
            ]
        return {
            "apiHealthy": api_healthy,
            "emergencyMode": self.fetcher.emergency_mode,
            "lastError": last_error,
            "apiStats": self.get_api_stats(),
            "recommendations": recommendations,
        }

    async def run_missed_checkout_sweep(self) -> SweepReport:
        return await self.sweeper.run()

    async def shutdown(self) -> None:
        await self.dispatcher.drain(timeout=5.0)
        await self.fetcher.limiter.stop()


def _build_loaders(store: SheetStore, forms: Mapping[str, FormConfig]):
    async def load_roster() -> List[str]:
        rows = await store.fetch_rows(forms["roster"])
        return [row.get("FULL_NAME") for row in rows if row.get("FULL_NAME")]

    async def load_on_work() -> List[WorkSession]:
        return [WorkSession.from_row(row) for row in await store.fetch_rows(forms["on_work"])]

    async def load_ledger() -> List[LedgerEntry]:
        return [LedgerEntry.from_row(row) for row in await store.fetch_rows(forms["ledger"])]

    return {
        Dataset.ROSTER: load_roster,
        Dataset.ON_WORK: load_on_work,
        Dataset.LEDGER: load_ledger,
    }


def load_forms(settings: TimeclockSettings) -> Dict[str, FormConfig]:
    return {
        "ledger": get_form_config("ledger", settings.ragic_ledger_path or None),
        "on_work": get_form_config("on_work", settings.ragic_on_work_path or None),
        "roster": get_form_config("roster", settings.ragic_roster_path or None),
    }


def create_attendance_service(
    settings: TimeclockSettings,
    http_client: httpx.AsyncClient,
    clock: Optional[Clock] = None,
    store: Optional[SheetStore] = None,
) -> AttendanceService:
    """
    Wire the service graph.

    Args:
        settings: Loaded settings.
        http_client: Shared client for the store, geocoder and notifiers.
        clock: Time source (tests pass a fake).
        store: Remote store override (tests pass an in-memory store).
    """
    clock = clock or SystemClock()
    tz = get_timezone(settings.timezone)
    forms = load_forms(settings)

    if store is None:
        store = RagicSheetStore(
            http_client=http_client,
            api_key=settings.ragic_api_key.get_secret_value(),
            base_url=settings.ragic_base_url,
            timeout=settings.http_timeout,
        )

    limiter = CallBudgetLimiter(
        config=RateLimitConfig(
            max_calls_per_minute=settings.rate_limit_per_minute,
            max_calls_per_hour=settings.rate_limit_per_hour,
            burst_limit=settings.rate_limit_burst,
            burst_reset_seconds=settings.burst_reset_seconds,
        ),
        clock=clock,
    )
    cache = DatasetCache(settings.dataset_ttls(), clock=clock)
    fetcher = ResilientFetcher(
        cache=cache,
        limiter=limiter,
        loaders=_build_loaders(store, forms),
        emergency_ttl=settings.emergency_ttl,
    )

    dispatcher = BestEffortDispatcher()
    geocoder = NominatimGeocoder(
        http_client,
        url=settings.geocoding_url,
        language=settings.geocoding_language,
        enabled=settings.geocoding_enabled,
    )
    map_notifier = MapWebhookNotifier(
        http_client,
        url=settings.map_webhook_url,
        secret=settings.webhook_secret.get_secret_value(),
        tz=tz,
    )
    line_notifier = LineNotifier(
        http_client,
        access_token=settings.line_channel_access_token.get_secret_value(),
        target=settings.line_admin_target,
    )
    reports = ReportService(fetcher, tz=tz, clock=clock)

    reconciler = WorkSessionReconciler(
        fetcher=fetcher,
        store=store,
        ledger_form=forms["ledger"],
        on_work_form=forms["on_work"],
        geocoder=geocoder,
        dispatcher=dispatcher,
        tz=tz,
        map_notifier=map_notifier,
        clock=clock,
    )
    sweeper = MissedCheckoutSweeper(
        fetcher=fetcher,
        reconciler=reconciler,
        tz=tz,
        cutoff_hour=settings.auto_checkout_hour,
        cutoff_minute=settings.auto_checkout_minute,
        exempt_names=settings.exempt_employees,
        notifier=line_notifier,
        clock=clock,
    )

    service = AttendanceService(fetcher, reconciler, sweeper, reports, dispatcher)
    reconciler.warm_up = service.warm_up
    logger.info(f"Attendance service ready (timezone {settings.timezone})")
    return service
