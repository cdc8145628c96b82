"""
Status API routes - Reachability checks for Apple's verifyReceipt endpoints.

Public endpoint (no auth) for status page aggregation.
Results are cached for 10 seconds, so repeated requests do not reach Apple.
"""

import asyncio
import time
from datetime import UTC, datetime
from enum import StrEnum

import httpx
from fastapi import APIRouter
from pydantic import BaseModel, Field
from structlog import get_logger

from iap_receipts.config import settings
from iap_receipts.models.receipt import AppleEnvironment

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

# Timeout for health checks
CHECK_TIMEOUT = 5.0  # seconds
DEGRADED_LATENCY_THRESHOLD = 1000  # ms

# An empty body is answered with one of these statuses when the endpoint is up
_REACHABLE_STATUSES = {21000, 21002}

# Cache the last result for 10 seconds
_status_cache: dict[str, tuple[datetime, "ServiceStatusResponse"]] = {}
_CACHE_TTL_SECONDS = 10


class StatusLevel(StrEnum):
    """Status levels for health checks."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class ProviderStatus(BaseModel):
    """Status of a single provider."""

    status: StatusLevel
    latency_ms: int | None = None
    last_check: str = Field(..., description="ISO 8601 timestamp")
    message: str | None = None


class ServiceStatusResponse(BaseModel):
    """Response for /v1/status endpoint."""

    service: str = "iap-receipts"
    status: StatusLevel
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str
    environment: str
    providers: dict[str, ProviderStatus]


async def check_apple_endpoint(environment: AppleEnvironment) -> ProviderStatus:
    """Check that a verifyReceipt endpoint answers with an App Store status."""
    start = time.perf_counter()
    timestamp = datetime.now(UTC).isoformat()

    try:
        async with httpx.AsyncClient(timeout=CHECK_TIMEOUT) as client:
            response = await client.post(environment.endpoint, json={})
            latency_ms = int((time.perf_counter() - start) * 1000)

            if response.status_code != 200:
                return ProviderStatus(
                    status=StatusLevel.DEGRADED,
                    latency_ms=latency_ms,
                    last_check=timestamp,
                    message=f"Unexpected status: {response.status_code}",
                )

            apple_status = response.json().get("status")
            if apple_status not in _REACHABLE_STATUSES:
                return ProviderStatus(
                    status=StatusLevel.DEGRADED,
                    latency_ms=latency_ms,
                    last_check=timestamp,
                    message=f"Unexpected App Store status: {apple_status}",
                )

            status = (
                StatusLevel.DEGRADED
                if latency_ms > DEGRADED_LATENCY_THRESHOLD
                else StatusLevel.OPERATIONAL
            )
            return ProviderStatus(
                status=status,
                latency_ms=latency_ms,
                last_check=timestamp,
                message="High latency" if status == StatusLevel.DEGRADED else None,
            )
    except httpx.TimeoutException:
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=int(CHECK_TIMEOUT * 1000),
            last_check=timestamp,
            message="Timeout",
        )
    except Exception as e:
        logger.warning(
            "apple_health_check_failed",
            environment=environment.value,
            error=str(e),
        )
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=None,
            last_check=timestamp,
            message="Connection failed",
        )


def calculate_overall_status(providers: dict[str, ProviderStatus]) -> StatusLevel:
    """Calculate overall service status from provider statuses."""
    statuses = [p.status for p in providers.values()]

    if StatusLevel.OUTAGE in statuses:
        return StatusLevel.OUTAGE
    if StatusLevel.DEGRADED in statuses:
        return StatusLevel.DEGRADED
    return StatusLevel.OPERATIONAL


@router.get("/v1/status", response_model=ServiceStatusResponse)
async def get_status() -> ServiceStatusResponse:
    """
    Get receipt service status.

    Public endpoint (no auth) for status page aggregation.
    Checks reachability of both App Store environments, since either can
    be used after a redirect.

    The result is cached for 10 seconds.
    """
    cache_key = "status"
    now = datetime.now(UTC)

    if cache_key in _status_cache:
        cached_time, cached_response = _status_cache[cache_key]
        age_seconds = (now - cached_time).total_seconds()
        if age_seconds < _CACHE_TTL_SECONDS:
            logger.debug("status_cache_hit", age_seconds=age_seconds)
            return cached_response

    production_status, sandbox_status = await asyncio.gather(
        check_apple_endpoint(AppleEnvironment.PRODUCTION),
        check_apple_endpoint(AppleEnvironment.SANDBOX),
    )

    providers = {
        "apple_production": production_status,
        "apple_sandbox": sandbox_status,
    }

    response = ServiceStatusResponse(
        status=calculate_overall_status(providers),
        timestamp=now.isoformat(),
        version=settings.api_version,
        environment=settings.apple_environment,
        providers=providers,
    )

    _status_cache[cache_key] = (now, response)

    return response
