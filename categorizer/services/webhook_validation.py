"""Validation of inbound Firefly III webhook payloads.

The payload is checked by an ordered chain of rules. Each rule inspects the
raw body and returns either None (rule satisfied) or a human readable reason.
The chain stops at the first failing rule; reasons are never aggregated.

Public entrypoints:
  validate_webhook(payload) -> ValidationResult   (tagged result, never raises)
  extract_work_item(payload) -> TransactionWorkItem (raises WebhookValidationError)

Pure functions only: no logging, no I/O, no registry access.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, cast

STORE_TRANSACTION_TRIGGER = "STORE_TRANSACTION"
TRANSACTIONS_RESPONSE = "TRANSACTIONS"
ELIGIBLE_TRANSACTION_TYPE = "withdrawal"


class WebhookValidationError(ValueError):
    """Payload is malformed or not eligible for categorization."""


@dataclass(frozen=True, slots=True)
class TransactionWorkItem:
    content_id: Any
    transactions: list[dict[str, Any]]
    destination_name: str
    description: str

    def job_data(self) -> dict[str, str]:
        return {
            "destinationName": self.destination_name,
            "description": self.description,
        }


@dataclass(frozen=True, slots=True)
class ValidationResult:
    item: Optional[TransactionWorkItem] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


Rule = Callable[[Any], Optional[str]]

# ----------------------------- helper utilities ----------------------------- #

def _content(payload: Any) -> dict:
    content = payload.get("content") if isinstance(payload, dict) else None
    return content if isinstance(content, dict) else {}


def _transactions(payload: Any) -> list:
    transactions = _content(payload).get("transactions")
    return transactions if isinstance(transactions, list) else []


def _first_transaction(payload: Any) -> dict:
    transactions = _transactions(payload)
    first = transactions[0] if transactions else None
    return first if isinstance(first, dict) else {}

# ----------------------------- rule implementations ----------------------------- #

def _rule_trigger(payload: Any) -> Optional[str]:
    trigger = payload.get("trigger") if isinstance(payload, dict) else None
    if trigger != STORE_TRANSACTION_TRIGGER:
        return f"trigger is not {STORE_TRANSACTION_TRIGGER}. Request will not be processed"
    return None


def _rule_response(payload: Any) -> Optional[str]:
    if payload.get("response") != TRANSACTIONS_RESPONSE:
        return f"response is not {TRANSACTIONS_RESPONSE}. Request will not be processed"
    return None


def _rule_content_id(payload: Any) -> Optional[str]:
    if not _content(payload).get("id"):
        return "Missing content.id"
    return None


def _rule_has_transactions(payload: Any) -> Optional[str]:
    if not _transactions(payload):
        return "No transactions are available in content.transactions"
    return None


def _rule_withdrawal(payload: Any) -> Optional[str]:
    if _first_transaction(payload).get("type") != ELIGIBLE_TRANSACTION_TYPE:
        return (
            f"content.transactions[0].type has to be '{ELIGIBLE_TRANSACTION_TYPE}'. "
            "Transaction will be ignored."
        )
    return None


def _rule_uncategorized(payload: Any) -> Optional[str]:
    # A missing key counts as unset; only an explicit id is "already categorized"
    if _first_transaction(payload).get("category_id") is not None:
        return "content.transactions[0].category_id is already set. Transaction will be ignored."
    return None


def _rule_description(payload: Any) -> Optional[str]:
    if not _first_transaction(payload).get("description"):
        return "Missing content.transactions[0].description"
    return None


def _rule_destination_name(payload: Any) -> Optional[str]:
    if not _first_transaction(payload).get("destination_name"):
        return "Missing content.transactions[0].destination_name"
    return None


RULES: tuple[Rule, ...] = (
    _rule_trigger,
    _rule_response,
    _rule_content_id,
    _rule_has_transactions,
    _rule_withdrawal,
    _rule_uncategorized,
    _rule_description,
    _rule_destination_name,
)

# ----------------------------- public API ----------------------------- #

def validate_webhook(payload: Any) -> ValidationResult:
    """Run the rule chain and return the first failure or the extracted item."""
    for rule in RULES:
        reason = rule(payload)
        if reason is not None:
            return ValidationResult(error=reason)

    first = _first_transaction(payload)
    item = TransactionWorkItem(
        content_id=_content(payload)["id"],
        transactions=_transactions(payload),
        destination_name=str(first["destination_name"]),
        description=str(first["description"]),
    )
    return ValidationResult(item=item)


def extract_work_item(payload: Any) -> TransactionWorkItem:
    result = validate_webhook(payload)
    if not result.ok:
        raise WebhookValidationError(result.error)
    return cast(TransactionWorkItem, result.item)


__all__ = [
    "TransactionWorkItem",
    "ValidationResult",
    "WebhookValidationError",
    "RULES",
    "validate_webhook",
    "extract_work_item",
]
