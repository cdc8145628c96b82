"""
verifyReceipt status classification.

https://developer.apple.com/documentation/appstorereceipts/status
"""

from typing import Any

from structlog import get_logger

from iap_receipts.exceptions import ReceiptValidationError
from iap_receipts.models.receipt import ReceiptStatus

logger = get_logger(__name__)

STATUS_VALID = 0
STATUS_SANDBOX_RECEIPT_SENT_TO_PRODUCTION = 21007
STATUS_PRODUCTION_RECEIPT_SENT_TO_SANDBOX = 21008
STATUS_INTERNAL_DATA_ACCESS_ERROR_MIN = 21100
STATUS_INTERNAL_DATA_ACCESS_ERROR_MAX = 21199

STATUS_MESSAGES: dict[int, str] = {
    21000: "The request to the App Store was not made using the HTTP POST request method",
    21001: "This status code is no longer sent by the App Store",
    21002: "The data in the receipt-data property was malformed or the service experienced a temporary issue",
    21003: "The receipt could not be authenticated",
    21004: "The shared secret you provided does not match the shared secret on file for your account",
    21005: "The receipt server was temporarily unable to provide the receipt",
    21006: "This receipt is valid but the subscription has expired",
    21009: "Internal data access error",
    21010: "The user account cannot be found or has been deleted",
}

_REDIRECTS: dict[int, ReceiptStatus] = {
    STATUS_VALID: ReceiptStatus.VALID,
    STATUS_SANDBOX_RECEIPT_SENT_TO_PRODUCTION: ReceiptStatus.SANDBOX_RECEIPT_SENT_TO_PRODUCTION,
    STATUS_PRODUCTION_RECEIPT_SENT_TO_SANDBOX: ReceiptStatus.PRODUCTION_RECEIPT_SENT_TO_SANDBOX,
}


def describe_status(status_code: int) -> str:
    """Human readable explanation of a verifyReceipt status code."""
    if status_code in STATUS_MESSAGES:
        return STATUS_MESSAGES[status_code]
    if STATUS_INTERNAL_DATA_ACCESS_ERROR_MIN <= status_code <= STATUS_INTERNAL_DATA_ACCESS_ERROR_MAX:
        return "Internal data access error"
    return "Unknown App Store status"


def classify_status(response: dict[str, Any]) -> ReceiptStatus:
    """
    Classify a verifyReceipt response.

    Args:
        response: Decoded verifyReceipt body

    Returns:
        VALID or one of the two environment redirects

    Raises:
        ReceiptValidationError: For any other status, or a missing status
    """
    status_code = response.get("status")

    # bool is an int subclass; true/false is not a status
    if not isinstance(status_code, int) or isinstance(status_code, bool):
        logger.error("apple_receipt_status_missing", status=repr(status_code))
        raise ReceiptValidationError(None, "Response has no status code")

    if status_code in _REDIRECTS:
        return _REDIRECTS[status_code]

    is_retryable = bool(response.get("is-retryable", False))
    message = describe_status(status_code)

    logger.warning(
        "apple_receipt_rejected",
        status=status_code,
        is_retryable=is_retryable,
        reason=message,
    )
    raise ReceiptValidationError(status_code, message, is_retryable=is_retryable)
