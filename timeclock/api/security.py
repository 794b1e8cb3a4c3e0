"""
Admin token verification.

Tokens are issued by the admin login service; this module only checks the
signature, expiry and the "admin_access" type claim.
"""

from typing import Annotated, Any, Dict

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from timeclock.config import TimeclockSettings

security = HTTPBearer()

ADMIN_TOKEN_TYPE = "admin_access"


def decode_admin_token(token: str, settings: TimeclockSettings) -> Dict[str, Any]:
    """
    Validate an admin JWT and return its claims.

    Raises:
        HTTPException 401: If the token is invalid, expired or of the wrong type.
    """
    secret = settings.jwt_secret_key.get_secret_value()
    if not secret:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Admin authentication not configured",
        )

    try:
        payload = jwt.decode(token, secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )

    if payload.get("type") != ADMIN_TOKEN_TYPE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )
    return payload


def get_app_settings(request: Request) -> TimeclockSettings:
    """FastAPI dependency: the settings the app was created with."""
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise RuntimeError("Settings not initialized. Build the app with create_app().")
    return settings


async def get_current_admin(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    settings: Annotated[TimeclockSettings, Depends(get_app_settings)],
) -> Dict[str, Any]:
    """FastAPI dependency: claims of a valid admin token."""
    return decode_admin_token(credentials.credentials, settings)


CurrentAdmin = Annotated[Dict[str, Any], Depends(get_current_admin)]
