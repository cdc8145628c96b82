"""
API Routes - FastAPI endpoints for receipt verification.

NO DICTIONARIES - All requests/responses use Pydantic models.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from structlog import get_logger

from iap_receipts.api.dependencies import get_receipt_service, require_api_key
from iap_receipts.config import settings
from iap_receipts.exceptions import (
    InvalidEnvironmentError,
    MalformedFieldError,
    MissingRequiredFieldError,
    NotInitializedError,
    ReceiptError,
    ReceiptValidationError,
    TransportError,
)
from iap_receipts.models.api import (
    ErrorDetail,
    HealthResponse,
    LatestPurchaseRequest,
    ReceiptResolutionResponse,
    VerifyReceiptRequest,
)
from iap_receipts.observability.metrics import metrics
from iap_receipts.services.receipt_service import ReceiptService

logger = get_logger(__name__)

router = APIRouter()


def _receipt_error_to_http(
    exc: ReceiptError,
    operation: str,
    malformed_status: int = status.HTTP_502_BAD_GATEWAY,
) -> HTTPException:
    """
    Map a receipt resolution failure to an HTTP error.

    A malformed record is Apple's fault when we fetched it (502) and the
    caller's when they supplied the receipt themselves.
    """
    metrics.record_error(type(exc).__name__, operation)

    if isinstance(exc, (NotInitializedError, InvalidEnvironmentError)):
        status_code = status.HTTP_400_BAD_REQUEST
        detail = ErrorDetail(error="invalid_request", message=str(exc))
    elif isinstance(exc, ReceiptValidationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        detail = ErrorDetail(
            error="receipt_rejected",
            message=exc.message,
            apple_status=exc.status_code,
            is_retryable=exc.is_retryable,
        )
    elif isinstance(exc, TransportError):
        status_code = status.HTTP_502_BAD_GATEWAY
        detail = ErrorDetail(error="apple_unreachable", message=exc.message, is_retryable=True)
    elif isinstance(exc, (MissingRequiredFieldError, MalformedFieldError)):
        status_code = malformed_status
        detail = ErrorDetail(error="unexpected_receipt_format", message=str(exc))
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        detail = ErrorDetail(error="receipt_error", message=str(exc))

    return HTTPException(status_code=status_code, detail=detail.model_dump())


@router.post(
    "/v1/receipts/verify",
    response_model=ReceiptResolutionResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_key)],
)
async def verify_receipt(
    request: VerifyReceiptRequest,
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptResolutionResponse:
    """
    Verify an App Store receipt and return the user's current entitlement.

    Flow:
    1. Receipt is sent to the configured environment (production by default)
    2. On a 21007 / 21008 redirect it is resent to the other environment
    3. The latest uncancelled purchase is selected and normalized

    A receipt without purchases is not an error: has_entitlement is false.
    """
    lookup = service.lookup(request.receipt_data)

    try:
        entitlement = await lookup.get_last_purchase()
        full_receipt = await lookup.get_full_receipt() if request.include_full_receipt else None
    except ReceiptError as exc:
        logger.warning("receipt_verification_failed", error_type=type(exc).__name__, error=str(exc))
        raise _receipt_error_to_http(exc, "verify_receipt") from exc

    return ReceiptResolutionResponse.build(entitlement, full_receipt)


@router.post(
    "/v1/receipts/latest-purchase",
    response_model=ReceiptResolutionResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(require_api_key)],
)
async def latest_purchase_from_full_receipt(
    request: LatestPurchaseRequest,
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptResolutionResponse:
    """
    Extract the current entitlement from a verifyReceipt response the caller already holds.

    No call to Apple is made.
    """
    try:
        entitlement = service.get_last_purchase_from_full_receipt(request.full_receipt)
    except ReceiptError as exc:
        logger.warning("latest_purchase_failed", error_type=type(exc).__name__, error=str(exc))
        raise _receipt_error_to_http(
            exc, "latest_purchase", malformed_status=status.HTTP_422_UNPROCESSABLE_ENTITY
        ) from exc

    return ReceiptResolutionResponse.build(entitlement)


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness check."""
    return HealthResponse(status="healthy", version=settings.api_version)
