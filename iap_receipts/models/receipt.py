"""
Receipt domain models - Immutable dataclasses for receipt resolution.

NO DICTIONARIES - Entitlements are strongly typed. The raw verifyReceipt
response itself stays a dict because Apple owns its shape.

https://developer.apple.com/documentation/appstorereceipts/responsebody
"""

from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from iap_receipts.exceptions import InvalidEnvironmentError

PRODUCTION_ENDPOINT = "https://buy.itunes.apple.com/verifyReceipt"
SANDBOX_ENDPOINT = "https://sandbox.itunes.apple.com/verifyReceipt"

# Apple guarantees these on every in_app / latest_receipt_info entry.
REQUIRED_PURCHASE_FIELDS: tuple[str, ...] = (
    "quantity",
    "product_id",
    "transaction_id",
    "original_transaction_id",
    "purchase_date",
    "purchase_date_ms",
    "original_purchase_date",
    "original_purchase_date_ms",
    "original_purchase_date_pst",
    "is_trial_period",
)

# Inconsistently sent across receipt generations; empty values mean absent.
OPTIONAL_PURCHASE_FIELDS: tuple[str, ...] = (
    # documented as mandatory but sometimes not returned
    "web_order_line_item_id",
    # only when Apple refunded or cancelled the transaction
    "cancellation_date_ms",
    "purchase_date_pst",
    # absent for non-subscription and older purchases
    "expires_date",
    "expires_date_pst",
    "expires_date_ms",
    "promotional_offer_id",
    # receipt level, attached by the purchase selector
    "pending_renewal_info",
)


class AppleEnvironment(StrEnum):
    """Apple verifyReceipt backends."""

    PRODUCTION = "production"
    SANDBOX = "sandbox"

    @property
    def endpoint(self) -> str:
        """verifyReceipt URL for this environment."""
        if self is AppleEnvironment.SANDBOX:
            return SANDBOX_ENDPOINT
        return PRODUCTION_ENDPOINT

    @classmethod
    def parse(cls, value: "AppleEnvironment | str") -> "AppleEnvironment":
        """
        Coerce a configured value into an environment.

        Raises:
            InvalidEnvironmentError: If value is not production or sandbox
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidEnvironmentError(value)


class ReceiptStatus(StrEnum):
    """Classification of a verifyReceipt status code."""

    VALID = "valid"
    SANDBOX_RECEIPT_SENT_TO_PRODUCTION = "sandbox_receipt_sent_to_production"  # 21007
    PRODUCTION_RECEIPT_SENT_TO_SANDBOX = "production_receipt_sent_to_sandbox"  # 21008

    def is_redirect(self) -> bool:
        """Check if the receipt must be resubmitted to the other environment."""
        return self is not ReceiptStatus.VALID


def _ms_to_datetime(value: str | int | None) -> datetime | None:
    if value is None or value == "":
        return None
    return datetime.fromtimestamp(int(value) / 1000, tz=UTC)


@dataclass(frozen=True)
class Entitlement:
    """Current state of a product purchase, taken from its latest transaction.

    Values are kept exactly as Apple sends them (verifyReceipt returns
    strings). Optional fields are None when Apple omitted them or sent an
    empty value, never zero or "".
    """

    quantity: str
    product_id: str
    transaction_id: str
    original_transaction_id: str
    purchase_date: str
    purchase_date_ms: str
    original_purchase_date: str
    original_purchase_date_ms: str
    original_purchase_date_pst: str
    is_trial_period: str

    # Optional fields
    purchase_date_pst: str | None = None
    expires_date: str | None = None
    expires_date_ms: str | None = None
    expires_date_pst: str | None = None
    web_order_line_item_id: str | None = None
    cancellation_date_ms: str | None = None
    promotional_offer_id: str | None = None
    pending_renewal_info: tuple[dict[str, Any], ...] | None = None

    def is_cancelled(self) -> bool:
        """Check if Apple cancelled or refunded this transaction."""
        return bool(self.cancellation_date_ms)

    @property
    def is_trial(self) -> bool:
        """is_trial_period as a boolean ("true"/"false" on the wire)."""
        return str(self.is_trial_period).lower() == "true"

    @property
    def purchased_at(self) -> datetime:
        """Purchase time in UTC."""
        return datetime.fromtimestamp(int(self.purchase_date_ms) / 1000, tz=UTC)

    @property
    def expires_at(self) -> datetime | None:
        """Expiration time in UTC, for subscriptions."""
        return _ms_to_datetime(self.expires_date_ms)

    @property
    def cancelled_at(self) -> datetime | None:
        """Cancellation time in UTC, if cancelled."""
        return _ms_to_datetime(self.cancellation_date_ms)

    def to_dict(self) -> dict[str, Any]:
        """Plain representation for API responses."""
        data = asdict(self)
        if self.pending_renewal_info is not None:
            data["pending_renewal_info"] = list(self.pending_renewal_info)
        return data
