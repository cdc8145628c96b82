"""
Receipt normalization - turns one raw purchase record into an Entitlement.
"""

from typing import Any

from iap_receipts.exceptions import MissingRequiredFieldError
from iap_receipts.models.receipt import (
    OPTIONAL_PURCHASE_FIELDS,
    REQUIRED_PURCHASE_FIELDS,
    Entitlement,
)


def create_entitlement(store_purchase: dict[str, Any] | None) -> Entitlement | None:
    """
    Create an Entitlement from a single purchase returned by the App Store.

    Args:
        store_purchase: Raw in_app / latest_receipt_info record, optionally
            carrying the receipt-level pending_renewal_info

    Returns:
        The entitlement, or None for an empty record

    Raises:
        MissingRequiredFieldError: If a field Apple guarantees is absent
    """
    if not store_purchase:
        return None

    values: dict[str, Any] = {}

    for field_name in REQUIRED_PURCHASE_FIELDS:
        if field_name not in store_purchase or store_purchase[field_name] is None:
            raise MissingRequiredFieldError(field_name)
        values[field_name] = store_purchase[field_name]

    for field_name in OPTIONAL_PURCHASE_FIELDS:
        values[field_name] = store_purchase.get(field_name) or None

    if values["pending_renewal_info"] is not None:
        values["pending_renewal_info"] = tuple(values["pending_renewal_info"])

    return Entitlement(**values)


def is_cancelled(entitlement: Entitlement) -> bool:
    """Check if the user's purchase was cancelled (refunded) by Apple."""
    return entitlement.is_cancelled()
