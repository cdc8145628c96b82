"""
Purchase selection - picks the transaction that represents the user's
current entitlement out of a full verifyReceipt response.
"""

from typing import Any

from iap_receipts.exceptions import MalformedFieldError, MissingRequiredFieldError


def _is_cancelled(record: dict[str, Any]) -> bool:
    """Cancelled only when cancellation_date_ms is non-empty; a present but empty value is not."""
    return bool(record.get("cancellation_date_ms"))


def _purchase_date_ms(record: dict[str, Any]) -> int:
    value = record.get("purchase_date_ms")
    if value is None or value == "":
        raise MissingRequiredFieldError("purchase_date_ms")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise MalformedFieldError("purchase_date_ms", value) from exc


def purchase_rank(record: dict[str, Any]) -> tuple[bool, int]:
    """
    Sort key ranking purchase records, most preferred first.

    Uncancelled records come before cancelled ones regardless of dates;
    within the same cancellation status the latest purchase comes first.
    """
    return (_is_cancelled(record), -_purchase_date_ms(record))


def collect_purchases(full_receipt: dict[str, Any]) -> list[dict[str, Any]]:
    """
    Merge the transaction history of a receipt into one candidate list.

    latest_receipt_info is only returned for receipts containing
    auto-renewable subscriptions and holds the most recent renewals; it comes
    first. receipt.in_app holds the transactions present in the submitted
    receipt data. Empty entries are skipped.

    iOS 6 style receipts send a section as a single object rather than a
    list; it is treated as one record.

    Raises:
        MalformedFieldError: If a section or one of its entries is not an object
    """
    receipt = full_receipt.get("receipt") or {}
    if not isinstance(receipt, dict):
        raise MalformedFieldError("receipt", receipt)

    return [
        *_section_records("latest_receipt_info", full_receipt.get("latest_receipt_info")),
        *_section_records("in_app", receipt.get("in_app")),
    ]


def _section_records(field_name: str, section: Any) -> list[dict[str, Any]]:
    if not section:
        return []
    if isinstance(section, dict):
        return [section]
    if not isinstance(section, list):
        raise MalformedFieldError(field_name, section)

    for record in section:
        if record and not isinstance(record, dict):
            raise MalformedFieldError(field_name, record)
    return [record for record in section if record]


def select_latest_purchase(full_receipt: dict[str, Any]) -> dict[str, Any] | None:
    """
    Return the latest uncancelled purchase if one exists, else the latest of any status.

    The receipt-level pending_renewal_info is attached to a copy of the
    winning record. Ties keep the earliest candidate in merge order.

    Returns:
        The selected raw record, or None when the user has no purchase
    """
    candidates = collect_purchases(full_receipt)
    if not candidates:
        return None

    latest = min(candidates, key=purchase_rank)

    return {**latest, "pending_renewal_info": full_receipt.get("pending_renewal_info") or []}
