"""
Attendance services.

Components:
    - CallBudgetLimiter: outbound call budget
    - DatasetCache: per-dataset TTL cache
    - ResilientFetcher: cache-first, budget-gated reads with stale fallback
    - WorkSessionReconciler: clock-in / clock-out
    - MissedCheckoutSweeper: daily forced close of forgotten sessions
    - ReportService: roster, dashboard stats, report rows
    - AttendanceService: composition root used by the API
"""

from timeclock.services.attendance import AttendanceService, create_attendance_service
from timeclock.services.cache import DatasetCache
from timeclock.services.fetcher import ResilientFetcher
from timeclock.services.rate_limiter import CallBudgetLimiter, RateLimitConfig
from timeclock.services.reconciler import (
    ClockRequest,
    ClockResult,
    EmployeeStatus,
    WorkSessionReconciler,
)
from timeclock.services.reports import ReportService
from timeclock.services.sweeper import MissedCheckoutSweeper, SweepReport

__all__ = [
    "AttendanceService",
    "create_attendance_service",
    "DatasetCache",
    "ResilientFetcher",
    "CallBudgetLimiter",
    "RateLimitConfig",
    "ClockRequest",
    "ClockResult",
    "EmployeeStatus",
    "WorkSessionReconciler",
    "ReportService",
    "MissedCheckoutSweeper",
    "SweepReport",
]
