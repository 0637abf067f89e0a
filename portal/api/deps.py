import hmac
import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from portal.config import Settings, settings
from portal.core.locks import CustomerLockRegistry, customer_locks
from portal.database import get_db


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; credentials may also arrive as ?secret=
security = HTTPBearer(auto_error=False)


def get_app_settings() -> Settings:
    """Settings dependency, overridable in tests."""
    return settings


def get_customer_locks() -> CustomerLockRegistry:
    """Process-wide per-customer lock registry."""
    return customer_locks


def _matches(supplied: Optional[str], expected: str) -> bool:
    if not supplied:
        return False
    return hmac.compare_digest(supplied.encode(), expected.encode())


async def verify_trigger_secret(
    request: Request,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    app_settings: Annotated[Settings, Depends(get_app_settings)],
) -> None:
    """
    Guard for the invoice generation triggers (scheduler / cron callers).

    INVOICE_TRIGGER_AUTH_REQUIRED=False leaves the triggers open. Otherwise
    INVOICE_CRON_SECRET must be configured and supplied either as a bearer
    token or as the `secret` query parameter.
    """
    if not app_settings.INVOICE_TRIGGER_AUTH_REQUIRED:
        return

    expected = app_settings.INVOICE_CRON_SECRET
    if not expected:
        logger.error("Invoice trigger called but INVOICE_CRON_SECRET is not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Invoice trigger secret not configured",
        )

    bearer = credentials.credentials if credentials else None
    if _matches(bearer, expected) or _matches(request.query_params.get("secret"), expected):
        return

    logger.warning("Rejected invoice trigger call with missing or invalid secret")
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def require_admin(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    app_settings: Annotated[Settings, Depends(get_app_settings)],
    x_admin_user: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    Admin guard. Returns the acting admin's name from the X-Admin-User header.
    """
    expected = app_settings.ADMIN_API_TOKEN
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin access not configured",
        )

    if not _matches(credentials.credentials if credentials else None, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )

    actor = (x_admin_user or "").strip()
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Admin-User header is required",
        )
    return actor


DB = Annotated[AsyncSession, Depends(get_db)]
Locks = Annotated[CustomerLockRegistry, Depends(get_customer_locks)]
AdminUser = Annotated[str, Depends(require_admin)]
