"""
Attendance API.

Thin HTTP layer over AttendanceService. Handlers translate request bodies
into service calls and errors into JSON bodies:

    ValidationError      -> 400
    RateLimitExceeded    -> 429
    other AttendanceError-> 500
"""

import logging
from datetime import datetime
from typing import Annotated, Any, Dict, Optional, Union

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from timeclock.api.security import CurrentAdmin
from timeclock.exceptions import AttendanceError, RateLimitExceeded, ValidationError
from timeclock.services.attendance import AttendanceService
from timeclock.services.reconciler import ClockRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["attendance"])


# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------


class ClockBody(BaseModel):
    """Clock-in / clock-out payload sent by the LIFF client."""

    employee: str = ""
    lat: Optional[Union[float, str]] = None
    lon: Optional[Union[float, str]] = None
    line_name: str = ""
    line_picture: str = ""
    userinfo: str = ""
    mock_time: Optional[str] = Field(default=None, description="Override timestamp (backfill, tests)")

    def to_request(self) -> ClockRequest:
        return ClockRequest(
            employee=self.employee,
            lat=self.lat,
            lon=self.lon,
            line_name=self.line_name,
            line_picture=self.line_picture,
            note=self.userinfo,
            timestamp=self.mock_time,
        )


class EmployeeBody(BaseModel):
    employee: str = ""


class EmergencyModeBody(BaseModel):
    enabled: bool


# -----------------------------------------------------------------------------
# Dependencies & helpers
# -----------------------------------------------------------------------------


def get_attendance_service(request: Request) -> AttendanceService:
    """FastAPI dependency: the service built during app lifespan."""
    service = getattr(request.app.state, "attendance_service", None)
    if service is None:
        raise RuntimeError("Attendance service not initialized. Check app lifespan.")
    return service


Service = Annotated[AttendanceService, Depends(get_attendance_service)]


def error_response(error: Exception, default: str) -> JSONResponse:
    if isinstance(error, ValidationError):
        code, message = status.HTTP_400_BAD_REQUEST, str(error)
    elif isinstance(error, RateLimitExceeded):
        code, message = status.HTTP_429_TOO_MANY_REQUESTS, "Too many requests, please try again later"
    else:
        logger.error(f"{default}: {error}")
        code, message = status.HTTP_500_INTERNAL_SERVER_ERROR, default
    return JSONResponse(status_code=code, content={"success": False, "error": message})


def _missing_fields() -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Missing required fields"},
    )


# -----------------------------------------------------------------------------
# Employee endpoints
# -----------------------------------------------------------------------------


@router.get("/health")
async def health_check(service: Service) -> Dict[str, Any]:
    return {
        "status": "healthy",
        "timestamp": datetime.now().astimezone().isoformat(),
        "emergencyMode": service.emergency_mode,
    }


@router.post("/employees", response_model=None)
async def list_employees(service: Service) -> Union[Dict[str, Any], JSONResponse]:
    try:
        return {"success": True, "data": await service.get_employees()}
    except AttendanceError as e:
        return error_response(e, "Failed to get employees")


@router.post("/check-status", response_model=None)
async def check_status(body: EmployeeBody, service: Service) -> Union[Dict[str, Any], JSONResponse]:
    if not body.employee.strip():
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"success": False, "error": "Missing employee name"},
        )
    try:
        return {"success": True, "data": await service.check_status(body.employee)}
    except AttendanceError as e:
        return error_response(e, "Failed to check status")


@router.post("/clockin", response_model=None)
async def clock_in(body: ClockBody, service: Service) -> Union[Dict[str, Any], JSONResponse]:
    if not body.employee or body.lat in (None, "") or body.lon in (None, ""):
        return _missing_fields()
    result = await service.clock_in(body.to_request())
    return result.to_dict()


@router.post("/clockout", response_model=None)
async def clock_out(body: ClockBody, service: Service) -> Union[Dict[str, Any], JSONResponse]:
    if not body.employee or body.lat in (None, "") or body.lon in (None, ""):
        return _missing_fields()
    result = await service.clock_out(body.to_request())
    return result.to_dict()


# -----------------------------------------------------------------------------
# Admin endpoints
# -----------------------------------------------------------------------------


@router.get("/admin/stats", response_model=None)
async def admin_stats(_: CurrentAdmin, service: Service) -> Union[Dict[str, Any], JSONResponse]:
    try:
        return {"success": True, "data": await service.get_admin_stats()}
    except AttendanceError as e:
        return error_response(e, "Failed to get stats")


@router.get("/admin/report/{report_type}", response_model=None)
async def admin_report(
    report_type: str, request: Request, _: CurrentAdmin, service: Service
) -> Union[Dict[str, Any], JSONResponse]:
    """Report rows for the Excel renderer; parameters come from the query string."""
    try:
        records = await service.get_report_data(report_type, dict(request.query_params))
    except AttendanceError as e:
        return error_response(e, "Failed to get report data")
    return {"success": True, "type": report_type, "count": len(records), "data": records}


@router.get("/admin/api-stats")
async def api_stats(_: CurrentAdmin, service: Service) -> Dict[str, Any]:
    return {"success": True, "data": service.get_api_stats()}


@router.get("/admin/quota-status")
async def quota_status(_: CurrentAdmin, service: Service) -> Dict[str, Any]:
    return {"success": True, "data": await service.get_quota_status()}


@router.get("/admin/cache-status")
async def cache_status(_: CurrentAdmin, service: Service) -> Dict[str, Any]:
    return {"success": True, "data": service.get_cache_status()}


@router.post("/admin/refresh-cache", response_model=None)
async def refresh_cache(_: CurrentAdmin, service: Service) -> Union[Dict[str, Any], JSONResponse]:
    try:
        await service.refresh_cache()
    except AttendanceError as e:
        return error_response(e, "Failed to refresh cache")
    return {"success": True, "message": "Cache refreshed successfully"}


@router.post("/admin/emergency-mode")
async def emergency_mode(body: EmergencyModeBody, _: CurrentAdmin, service: Service) -> Dict[str, Any]:
    service.set_emergency_mode(body.enabled)
    return {
        "success": True,
        "message": f"Emergency mode {'enabled' if body.enabled else 'disabled'}",
        "emergencyMode": body.enabled,
    }


@router.post("/admin/missed-checkout/run")
async def run_missed_checkout(_: CurrentAdmin, service: Service) -> Dict[str, Any]:
    report = await service.run_missed_checkout_sweep()
    return report.to_dict()
