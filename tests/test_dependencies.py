"""
Tests for FastAPI Dependencies.

Covers the optional API key check and receipt service wiring.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi import HTTPException

from iap_receipts.api.dependencies import get_http_client, get_receipt_service, require_api_key
from iap_receipts.config import Settings
from iap_receipts.models.receipt import AppleEnvironment


class TestRequireApiKey:
    """Tests for require_api_key."""

    @pytest.mark.asyncio
    async def test_open_when_not_configured(self):
        """Without API_KEY every caller is accepted."""
        settings = Settings(api_key=None)
        assert await require_api_key(x_api_key=None, settings=settings) is None

    @pytest.mark.asyncio
    async def test_valid_key(self):
        """The configured key is accepted."""
        settings = Settings(api_key="secret-key")
        assert await require_api_key(x_api_key="secret-key", settings=settings) is None

    @pytest.mark.asyncio
    async def test_missing_key(self):
        """A missing key is rejected when one is configured."""
        settings = Settings(api_key="secret-key")

        with pytest.raises(HTTPException) as exc_info:
            await require_api_key(x_api_key=None, settings=settings)

        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_wrong_key(self):
        """A wrong key is rejected."""
        settings = Settings(api_key="secret-key")

        with pytest.raises(HTTPException) as exc_info:
            await require_api_key(x_api_key="other-key", settings=settings)

        assert exc_info.value.status_code == 401


class TestGetHttpClient:
    """Tests for get_http_client."""

    def test_returns_shared_client(self):
        """The lifespan client on app.state is returned."""
        client = MagicMock(spec=httpx.AsyncClient)
        request = MagicMock()
        request.app.state = SimpleNamespace(http_client=client)

        assert get_http_client(request) is client

    def test_none_without_lifespan(self):
        """Without a lifespan client None is returned."""
        request = MagicMock()
        request.app.state = SimpleNamespace()

        assert get_http_client(request) is None


class TestGetReceiptService:
    """Tests for get_receipt_service."""

    def test_built_from_settings(self):
        """Settings flow into the service and its Apple client."""
        settings = Settings(
            apple_shared_secret="s3cret",
            apple_environment="sandbox",
            apple_exclude_old_transactions=True,
            apple_request_timeout=7.5,
        )
        client = MagicMock(spec=httpx.AsyncClient)

        service = get_receipt_service(settings=settings, http_client=client)

        assert service.environment is AppleEnvironment.SANDBOX
        assert service.apple_client.shared_secret == "s3cret"
        assert service.apple_client.exclude_old_transactions is True
        assert service.apple_client.timeout == 7.5
        assert service.apple_client._http_client is client

    def test_empty_secret_not_sent(self):
        """An empty shared secret is treated as absent."""
        service = get_receipt_service(settings=Settings(apple_shared_secret=""), http_client=None)

        assert service.apple_client.shared_secret is None
