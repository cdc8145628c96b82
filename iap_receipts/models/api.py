"""
API Models - Pydantic request/response schemas.

NO DICTIONARIES - All requests/responses use Pydantic models. The raw Apple
receipt is the one exception: Apple owns its shape.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from iap_receipts.models.receipt import Entitlement


class VerifyReceiptRequest(BaseModel):
    """POST /v1/receipts/verify request body."""

    receipt_data: str = Field(..., min_length=1, description="Base64-encoded App Store receipt")
    include_full_receipt: bool = Field(
        default=False, description="Echo Apple's full verifyReceipt response"
    )

    @field_validator("receipt_data")
    @classmethod
    def validate_receipt_data(cls, v: str) -> str:
        """Strip whitespace and newlines clients add when wrapping base64."""
        stripped = "".join(v.split())
        if not stripped:
            raise ValueError("receipt_data cannot be blank")
        return stripped


class LatestPurchaseRequest(BaseModel):
    """POST /v1/receipts/latest-purchase request body."""

    full_receipt: dict[str, Any] = Field(..., description="A previously fetched verifyReceipt response")


class EntitlementResponse(BaseModel):
    """Normalized purchase record; optional fields are null when Apple omitted them."""

    model_config = ConfigDict(frozen=True)

    quantity: str
    product_id: str
    transaction_id: str
    original_transaction_id: str
    purchase_date: str
    purchase_date_ms: str
    purchase_date_pst: str | None = None
    original_purchase_date: str
    original_purchase_date_ms: str
    original_purchase_date_pst: str
    expires_date: str | None = None
    expires_date_ms: str | None = None
    expires_date_pst: str | None = None
    web_order_line_item_id: str | None = None
    is_trial_period: str
    cancellation_date_ms: str | None = None
    promotional_offer_id: str | None = None
    pending_renewal_info: list[dict[str, Any]] | None = None

    @field_validator(
        "quantity",
        "product_id",
        "transaction_id",
        "original_transaction_id",
        "purchase_date",
        "purchase_date_ms",
        "purchase_date_pst",
        "original_purchase_date",
        "original_purchase_date_ms",
        "original_purchase_date_pst",
        "expires_date",
        "expires_date_ms",
        "expires_date_pst",
        "web_order_line_item_id",
        "is_trial_period",
        "cancellation_date_ms",
        "promotional_offer_id",
        mode="before",
    )
    @classmethod
    def coerce_to_string(cls, v: Any) -> Any:
        """Receipts cached by callers sometimes carry numbers and booleans."""
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @classmethod
    def from_entitlement(cls, entitlement: Entitlement) -> "EntitlementResponse":
        """Build the response model from the domain entity."""
        return cls(**entitlement.to_dict())


class ReceiptResolutionResponse(BaseModel):
    """Response for receipt verification and latest purchase lookups."""

    has_entitlement: bool
    is_cancelled: bool
    entitlement: EntitlementResponse | None = None
    full_receipt: dict[str, Any] | None = None

    @classmethod
    def build(
        cls,
        entitlement: Entitlement | None,
        full_receipt: dict[str, Any] | None = None,
    ) -> "ReceiptResolutionResponse":
        """Build the response from a resolved entitlement (or none)."""
        if entitlement is None:
            return cls(
                has_entitlement=False,
                is_cancelled=False,
                entitlement=None,
                full_receipt=full_receipt,
            )
        return cls(
            has_entitlement=True,
            is_cancelled=entitlement.is_cancelled(),
            entitlement=EntitlementResponse.from_entitlement(entitlement),
            full_receipt=full_receipt,
        )


class ErrorDetail(BaseModel):
    """Error body for receipt verification failures."""

    error: str
    message: str
    apple_status: int | None = None
    is_retryable: bool = False


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    version: str
