"""
Apple verifyReceipt transport.

Posts base64 receipt data to one of Apple's verifyReceipt endpoints and
returns the decoded JSON body untouched.
https://developer.apple.com/documentation/appstorereceipts/verifyreceipt
"""

import time
from typing import Any

import httpx
from structlog import get_logger

from iap_receipts.exceptions import TransportError
from iap_receipts.models.receipt import SANDBOX_ENDPOINT
from iap_receipts.observability.metrics import metrics

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds


def _environment_label(endpoint: str) -> str:
    return "sandbox" if endpoint == SANDBOX_ENDPOINT else "production"


class AppleReceiptClient:
    """
    HTTP client for Apple's verifyReceipt endpoints.

    A shared httpx.AsyncClient may be injected (the API owns one for its
    lifetime); otherwise a short-lived client is opened per request.
    """

    def __init__(
        self,
        shared_secret: str | None = None,
        exclude_old_transactions: bool = False,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.shared_secret = shared_secret
        self.exclude_old_transactions = exclude_old_transactions
        self.timeout = timeout
        self._http_client = http_client

    def _build_payload(self, receipt_data: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"receipt-data": receipt_data}
        if self.shared_secret:
            payload["password"] = self.shared_secret
        if self.exclude_old_transactions:
            payload["exclude-old-transactions"] = True
        return payload

    async def _post(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(endpoint, json=payload, timeout=self.timeout)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.post(endpoint, json=payload)

    async def fetch_receipt(self, receipt_data: str, endpoint: str) -> dict[str, Any]:
        """
        Fetch the receipt from Apple.

        Args:
            receipt_data: Base64-encoded receipt
            endpoint: verifyReceipt URL to call

        Returns:
            The decoded verifyReceipt response body

        Raises:
            TransportError: On network, HTTP or JSON decoding failure
        """
        environment = _environment_label(endpoint)
        start = time.perf_counter()

        logger.info("fetching_apple_receipt", environment=environment)

        try:
            response = await self._post(endpoint, self._build_payload(receipt_data))
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as exc:
            duration = time.perf_counter() - start
            metrics.record_apple_request(environment, "http_error", duration)
            logger.error(
                "apple_receipt_http_error",
                environment=environment,
                status=exc.response.status_code,
            )
            raise TransportError(endpoint, f"HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            duration = time.perf_counter() - start
            metrics.record_apple_request(environment, "network_error", duration)
            logger.error(
                "apple_receipt_network_error",
                environment=environment,
                error=str(exc),
            )
            raise TransportError(endpoint, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            duration = time.perf_counter() - start
            metrics.record_apple_request(environment, "invalid_json", duration)
            logger.error("apple_receipt_invalid_json", environment=environment)
            raise TransportError(endpoint, "Invalid JSON response") from exc

        duration = time.perf_counter() - start

        if not isinstance(body, dict):
            metrics.record_apple_request(environment, "invalid_json", duration)
            logger.error("apple_receipt_unexpected_body", environment=environment)
            raise TransportError(endpoint, "Response body is not a JSON object")

        metrics.record_apple_request(environment, "ok", duration)
        logger.info(
            "apple_receipt_fetched",
            environment=environment,
            apple_status=body.get("status"),
            duration_seconds=duration,
        )

        return body
