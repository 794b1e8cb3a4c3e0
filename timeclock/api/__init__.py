"""
HTTP layer.

Components:
    - router: attendance and admin endpoints
    - get_current_admin: admin bearer token dependency
    - get_app_settings: settings attached to the app by create_app
"""

from timeclock.api.routes import get_attendance_service, router
from timeclock.api.security import get_app_settings, get_current_admin

__all__ = ["router", "get_attendance_service", "get_app_settings", "get_current_admin"]
