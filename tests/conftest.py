"""
Pytest Configuration and Centralized Fixtures.

Provides reusable receipt data and mocks for testing:
- Raw purchase records as Apple returns them
- Full verifyReceipt responses
- Apple client and receipt service with mocked transport
"""

import os
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

# Set environment variables BEFORE importing app modules
os.environ.setdefault("APPLE_ENVIRONMENT", "production")
os.environ.setdefault("LOG_FORMAT", "console")
os.environ.setdefault("TRACING_ENABLED", "false")

from iap_receipts.models.receipt import PRODUCTION_ENDPOINT, SANDBOX_ENDPOINT
from iap_receipts.services.apple_client import AppleReceiptClient
from iap_receipts.services.receipt_service import ReceiptService

# ============================================================================
# Purchase Record Fixtures
# ============================================================================


def make_purchase(
    purchase_date_ms: int | str = 1_600_000_000_000,
    transaction_id: str = "1000000000000001",
    cancellation_date_ms: str | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    """Build a raw in_app / latest_receipt_info record."""
    record: dict[str, Any] = {
        "quantity": "1",
        "product_id": "com.example.app.premium",
        "transaction_id": transaction_id,
        "original_transaction_id": "1000000000000000",
        "purchase_date": "2020-09-13 12:26:40 Etc/GMT",
        "purchase_date_ms": str(purchase_date_ms),
        "purchase_date_pst": "2020-09-13 05:26:40 America/Los_Angeles",
        "original_purchase_date": "2020-09-13 12:26:40 Etc/GMT",
        "original_purchase_date_ms": "1600000000000",
        "original_purchase_date_pst": "2020-09-13 05:26:40 America/Los_Angeles",
        "is_trial_period": "false",
    }
    if cancellation_date_ms is not None:
        record["cancellation_date_ms"] = cancellation_date_ms
    record.update(overrides)
    return record


@pytest.fixture
def purchase_factory() -> Callable[..., dict[str, Any]]:
    """Factory for raw purchase records."""
    return make_purchase


@pytest.fixture
def subscription_purchase() -> dict[str, Any]:
    """A renewing subscription record with every optional field populated."""
    return make_purchase(
        purchase_date_ms=1_600_000_000_000,
        transaction_id="1000000000000042",
        product_id="com.example.app.monthly",
        web_order_line_item_id="1000000050000000",
        expires_date="2020-10-13 12:26:40 Etc/GMT",
        expires_date_ms="1602592000000",
        expires_date_pst="2020-10-13 05:26:40 America/Los_Angeles",
        promotional_offer_id="spring_offer",
    )


@pytest.fixture
def pending_renewal_info() -> list[dict[str, Any]]:
    """Receipt-level pending renewal info."""
    return [
        {
            "auto_renew_product_id": "com.example.app.monthly",
            "auto_renew_status": "1",
            "original_transaction_id": "1000000000000000",
            "product_id": "com.example.app.monthly",
        }
    ]


@pytest.fixture
def full_receipt_factory() -> Callable[..., dict[str, Any]]:
    """Factory for full verifyReceipt responses."""

    def _create(
        in_app: list[dict[str, Any]] | None = None,
        latest_receipt_info: list[dict[str, Any]] | None = None,
        pending_renewal_info: list[dict[str, Any]] | None = None,
        status: int = 0,
        environment: str = "Production",
    ) -> dict[str, Any]:
        response: dict[str, Any] = {
            "status": status,
            "environment": environment,
            "receipt": {
                "bundle_id": "com.example.app",
                "in_app": in_app if in_app is not None else [],
            },
        }
        if latest_receipt_info is not None:
            response["latest_receipt_info"] = latest_receipt_info
        if pending_renewal_info is not None:
            response["pending_renewal_info"] = pending_renewal_info
        return response

    return _create


@pytest.fixture
def valid_full_receipt(full_receipt_factory) -> dict[str, Any]:
    """A production receipt with one purchase."""
    return full_receipt_factory(in_app=[make_purchase()])


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def mock_apple_client() -> MagicMock:
    """Apple client whose fetch_receipt is an AsyncMock."""
    client = MagicMock(spec=AppleReceiptClient)
    client.fetch_receipt = AsyncMock()
    return client


@pytest.fixture
def endpoint_responder() -> Callable[..., AsyncMock]:
    """
    Build a fetch_receipt mock answering per endpoint.

    Usage:
        fetch = endpoint_responder(production={"status": 21007}, sandbox=receipt)
    """

    def _create(
        production: dict[str, Any] | None = None,
        sandbox: dict[str, Any] | None = None,
    ) -> AsyncMock:
        responses = {PRODUCTION_ENDPOINT: production, SANDBOX_ENDPOINT: sandbox}

        async def _fetch(receipt_data: str, endpoint: str) -> dict[str, Any]:
            response = responses[endpoint]
            if response is None:
                raise AssertionError(f"Unexpected call to {endpoint}")
            return response

        return AsyncMock(side_effect=_fetch)

    return _create


@pytest.fixture
def receipt_service(mock_apple_client: MagicMock) -> ReceiptService:
    """Receipt service starting in production with a mocked Apple client."""
    return ReceiptService(mock_apple_client)


@pytest.fixture
def mock_receipt_service() -> MagicMock:
    """Fully mocked receipt service for route tests."""
    service = MagicMock(spec=ReceiptService)
    service.get_last_purchase_from_full_receipt = MagicMock(return_value=None)
    return service
