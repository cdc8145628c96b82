"""
Receipt Service - resolves a base64 receipt into the user's current entitlement.

As per Apple's advice, receipts are first sent to the production environment,
and if the "sandbox receipt" status is received they are sent to sandbox.
This means that no configuration change is necessary for working in either
environment.
"""

from typing import Any

import httpx
from structlog import get_logger

from iap_receipts.exceptions import NotInitializedError
from iap_receipts.models.receipt import AppleEnvironment, Entitlement, ReceiptStatus
from iap_receipts.observability.metrics import metrics
from iap_receipts.observability.tracing import trace_operation
from iap_receipts.services.apple_client import DEFAULT_TIMEOUT, AppleReceiptClient
from iap_receipts.services.purchase_selector import select_latest_purchase
from iap_receipts.services.receipt_normalizer import create_entitlement
from iap_receipts.services.receipt_normalizer import is_cancelled as entitlement_is_cancelled
from iap_receipts.services.status_validator import classify_status

logger = get_logger(__name__)


class ReceiptService:
    """
    Resolves App Store receipts against Apple's verifyReceipt endpoints.

    The service holds configuration only. The environment switched to during
    a fallback lives in the resolution call, so one instance can serve
    concurrent requests.
    """

    def __init__(
        self,
        apple_client: AppleReceiptClient,
        environment: AppleEnvironment | str = AppleEnvironment.PRODUCTION,
    ) -> None:
        """
        Initialize receipt service.

        Args:
            apple_client: Transport used to reach verifyReceipt
            environment: Environment tried first

        Raises:
            InvalidEnvironmentError: If environment is not production or sandbox
        """
        self.apple_client = apple_client
        self.environment = AppleEnvironment.parse(environment)

    def lookup(self, receipt_data: str) -> "ReceiptLookup":
        """Start a request-scoped lookup that fetches the receipt at most once."""
        return ReceiptLookup(self, receipt_data)

    async def get_full_receipt(self, receipt_data: str) -> dict[str, Any]:
        """
        Get the full verifyReceipt response from the App Store.

        Raises:
            NotInitializedError: If receipt_data is empty
            TransportError: If Apple cannot be reached
            ReceiptValidationError: If Apple rejects the receipt
        """
        return await self.lookup(receipt_data).get_full_receipt()

    async def get_last_purchase(self, receipt_data: str) -> Entitlement | None:
        """Get the entitlement for the last purchase made by the user."""
        return await self.lookup(receipt_data).get_last_purchase()

    def get_last_purchase_from_full_receipt(
        self, full_receipt: dict[str, Any]
    ) -> Entitlement | None:
        """Get the last purchase from an already fetched full receipt, without network."""
        return create_entitlement(select_latest_purchase(full_receipt))

    def is_cancelled(self, entitlement: Entitlement) -> bool:
        """Check if the user's purchase was cancelled."""
        return entitlement_is_cancelled(entitlement)

    async def _fetch(self, receipt_data: str, environment: AppleEnvironment) -> dict[str, Any]:
        return await self.apple_client.fetch_receipt(receipt_data, environment.endpoint)

    async def resolve_receipt(self, receipt_data: str) -> dict[str, Any]:
        """
        Fetch the receipt, following Apple's environment redirect once.

        Returns:
            The response of whichever environment accepted the receipt
        """
        if not receipt_data or not receipt_data.strip():
            raise NotInitializedError()

        environment = self.environment

        with trace_operation("receipt_resolution", initial_environment=environment.value) as span:
            result = await self._fetch(receipt_data, environment)
            status = classify_status(result)

            if status is ReceiptStatus.SANDBOX_RECEIPT_SENT_TO_PRODUCTION:
                environment = AppleEnvironment.SANDBOX
            elif status is ReceiptStatus.PRODUCTION_RECEIPT_SENT_TO_SANDBOX:
                environment = AppleEnvironment.PRODUCTION

            if status.is_redirect():
                logger.info(
                    "apple_receipt_environment_redirect",
                    status=status.value,
                    from_environment=self.environment.value,
                    to_environment=environment.value,
                )
                metrics.record_fallback(self.environment.value, environment.value)
                result = await self._fetch(receipt_data, environment)
                # The second answer is final; redirects are not followed twice.
                classify_status(result)

            span.set_attribute("resolved_environment", environment.value)

        logger.info(
            "apple_receipt_resolved",
            environment=environment.value,
            fallback=status.is_redirect(),
        )
        return result


class ReceiptLookup:
    """
    One logical "get receipt" operation for a single receipt.

    The full receipt is cached here, so asking for both the full receipt and
    the last purchase issues the Apple calls only once.
    """

    def __init__(self, service: ReceiptService, receipt_data: str) -> None:
        self.service = service
        self.receipt_data = receipt_data
        self._receipt: dict[str, Any] | None = None

    async def get_full_receipt(self) -> dict[str, Any]:
        """Get the full verifyReceipt response, fetching it on first use."""
        if self._receipt is None:
            self._receipt = await self.service.resolve_receipt(self.receipt_data)
        return self._receipt

    async def get_last_purchase(self) -> Entitlement | None:
        """Get the entitlement for the user's last purchase."""
        full_receipt = await self.get_full_receipt()
        entitlement = self.service.get_last_purchase_from_full_receipt(full_receipt)

        if entitlement is None:
            metrics.record_entitlement("none")
            logger.info("no_purchase_in_receipt")
        else:
            outcome = "cancelled" if entitlement.is_cancelled() else "active"
            metrics.record_entitlement(outcome)
            logger.info(
                "entitlement_resolved",
                product_id=entitlement.product_id,
                transaction_id=entitlement.transaction_id,
                is_cancelled=entitlement.is_cancelled(),
            )

        return entitlement


def create_receipt_service(
    shared_secret: str | None = None,
    environment: AppleEnvironment | str = AppleEnvironment.PRODUCTION,
    exclude_old_transactions: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
    http_client: httpx.AsyncClient | None = None,
) -> ReceiptService:
    """
    Create an instance of ReceiptService wired to Apple's verifyReceipt.

    Args:
        shared_secret: App-specific shared secret
        environment: Environment tried first
        exclude_old_transactions: Only return the latest renewal for subscriptions
        timeout: Request timeout in seconds
        http_client: Optional shared httpx.AsyncClient
    """
    apple_client = AppleReceiptClient(
        shared_secret=shared_secret,
        exclude_old_transactions=exclude_old_transactions,
        timeout=timeout,
        http_client=http_client,
    )
    return ReceiptService(apple_client, environment)
