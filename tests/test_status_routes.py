"""
Tests for Status API Routes.

Tests App Store reachability checks and the cached status endpoint.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from iap_receipts.api import status_routes
from iap_receipts.api.status_routes import (
    ProviderStatus,
    ServiceStatusResponse,
    StatusLevel,
    calculate_overall_status,
    check_apple_endpoint,
    get_status,
)
from iap_receipts.models.receipt import PRODUCTION_ENDPOINT, AppleEnvironment


def _mock_client(post: AsyncMock) -> AsyncMock:
    mock_client = AsyncMock()
    mock_client.post = post
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    return mock_client


def _response(status_code: int = 200, body: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.json = MagicMock(return_value=body if body is not None else {"status": 21000})
    return response


def _provider(status: StatusLevel) -> ProviderStatus:
    return ProviderStatus(status=status, latency_ms=50, last_check=datetime.now(UTC).isoformat())


class TestStatusLevel:
    """Tests for StatusLevel enum."""

    def test_status_levels_exist(self):
        """StatusLevel has expected values."""
        assert StatusLevel.OPERATIONAL == "operational"
        assert StatusLevel.DEGRADED == "degraded"
        assert StatusLevel.OUTAGE == "outage"


class TestCalculateOverallStatus:
    """Tests for calculate_overall_status function."""

    def test_all_operational(self):
        """All providers operational returns operational."""
        providers = {
            "apple_production": _provider(StatusLevel.OPERATIONAL),
            "apple_sandbox": _provider(StatusLevel.OPERATIONAL),
        }
        assert calculate_overall_status(providers) == StatusLevel.OPERATIONAL

    def test_one_degraded(self):
        """One degraded provider returns degraded."""
        providers = {
            "apple_production": _provider(StatusLevel.OPERATIONAL),
            "apple_sandbox": _provider(StatusLevel.DEGRADED),
        }
        assert calculate_overall_status(providers) == StatusLevel.DEGRADED

    def test_outage_takes_priority_over_degraded(self):
        """Outage status takes priority over degraded."""
        providers = {
            "apple_production": _provider(StatusLevel.OUTAGE),
            "apple_sandbox": _provider(StatusLevel.DEGRADED),
        }
        assert calculate_overall_status(providers) == StatusLevel.OUTAGE


class TestCheckAppleEndpoint:
    """Tests for check_apple_endpoint function."""

    @pytest.mark.asyncio
    async def test_operational(self):
        """An App Store status answer means the endpoint is up."""
        post = AsyncMock(return_value=_response(body={"status": 21002}))

        with patch("httpx.AsyncClient", return_value=_mock_client(post)):
            result = await check_apple_endpoint(AppleEnvironment.PRODUCTION)

        assert result.status == StatusLevel.OPERATIONAL
        assert result.latency_ms is not None
        assert post.await_args.args[0] == PRODUCTION_ENDPOINT

    @pytest.mark.asyncio
    async def test_unexpected_http_status(self):
        """A non-200 answer is degraded."""
        post = AsyncMock(return_value=_response(status_code=503))

        with patch("httpx.AsyncClient", return_value=_mock_client(post)):
            result = await check_apple_endpoint(AppleEnvironment.SANDBOX)

        assert result.status == StatusLevel.DEGRADED
        assert "Unexpected status" in result.message

    @pytest.mark.asyncio
    async def test_unexpected_apple_status(self):
        """An unexpected App Store status is degraded."""
        post = AsyncMock(return_value=_response(body={"status": 21005}))

        with patch("httpx.AsyncClient", return_value=_mock_client(post)):
            result = await check_apple_endpoint(AppleEnvironment.PRODUCTION)

        assert result.status == StatusLevel.DEGRADED
        assert "21005" in result.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        """A timeout is an outage."""
        post = AsyncMock(side_effect=httpx.TimeoutException("Timeout"))

        with patch("httpx.AsyncClient", return_value=_mock_client(post)):
            result = await check_apple_endpoint(AppleEnvironment.PRODUCTION)

        assert result.status == StatusLevel.OUTAGE
        assert result.message == "Timeout"

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """A connection failure is an outage."""
        post = AsyncMock(side_effect=httpx.ConnectError("Connection refused"))

        with patch("httpx.AsyncClient", return_value=_mock_client(post)):
            result = await check_apple_endpoint(AppleEnvironment.SANDBOX)

        assert result.status == StatusLevel.OUTAGE
        assert result.message == "Connection failed"
        assert result.latency_ms is None


class TestGetStatus:
    """Tests for the /v1/status endpoint."""

    @pytest.mark.asyncio
    async def test_aggregates_both_environments(self):
        """Both App Store environments are reported."""
        status_routes._status_cache.clear()
        check = AsyncMock(return_value=_provider(StatusLevel.OPERATIONAL))

        with patch("iap_receipts.api.status_routes.check_apple_endpoint", check):
            result = await get_status()

        assert isinstance(result, ServiceStatusResponse)
        assert result.status == StatusLevel.OPERATIONAL
        assert set(result.providers) == {"apple_production", "apple_sandbox"}
        assert check.await_count == 2

    @pytest.mark.asyncio
    async def test_cached(self):
        """A second call within the TTL reuses the cached response."""
        status_routes._status_cache.clear()
        check = AsyncMock(return_value=_provider(StatusLevel.DEGRADED))

        with patch("iap_receipts.api.status_routes.check_apple_endpoint", check):
            first = await get_status()
            second = await get_status()

        assert first is second
        assert first.status == StatusLevel.DEGRADED
        assert check.await_count == 2
