"""
FastAPI Dependencies - API key check and receipt service wiring.
"""

import secrets

import httpx
from fastapi import Depends, Header, HTTPException, Request, status
from structlog import get_logger

from iap_receipts.config import Settings, get_settings
from iap_receipts.services.receipt_service import ReceiptService, create_receipt_service

logger = get_logger(__name__)


async def require_api_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    """
    FastAPI dependency enforcing the optional API key.

    When API_KEY is not configured every caller is accepted.

    Raises:
        HTTPException 401 if the key is missing or wrong
    """
    if not settings.api_key:
        return

    if x_api_key is None or not secrets.compare_digest(x_api_key, settings.api_key):
        logger.warning("api_key_rejected", has_key=x_api_key is not None)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
        )


def get_http_client(request: Request) -> httpx.AsyncClient | None:
    """Shared httpx client opened by the application lifespan, if any."""
    return getattr(request.app.state, "http_client", None)


def get_receipt_service(
    settings: Settings = Depends(get_settings),
    http_client: httpx.AsyncClient | None = Depends(get_http_client),
) -> ReceiptService:
    """Build a receipt service from settings for the current request."""
    return create_receipt_service(
        shared_secret=settings.apple_shared_secret or None,
        environment=settings.apple_environment,
        exclude_old_transactions=settings.apple_exclude_old_transactions,
        timeout=settings.apple_request_timeout,
        http_client=http_client,
    )
