"""Contracts for the outbound services used while processing a job."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Protocol, Sequence


@dataclass(frozen=True, slots=True)
class Classification:
    """Outcome of one classification request.

    ``category`` is None when the model's answer did not match any of the
    candidate names. ``prompt`` and ``response`` are kept for auditing.
    """
    category: Optional[str]
    prompt: str
    response: str


class CategoryService(Protocol):
    async def get_categories(self) -> dict[str, str]:
        """Return the current category taxonomy as name -> id."""
        ...

    async def set_category(self, transaction_id: Any, transactions: Sequence[dict[str, Any]], category_id: str) -> None:
        """Assign ``category_id`` to every split of the stored transaction."""
        ...


class TransactionClassifier(Protocol):
    async def classify(self, categories: Sequence[str], destination_name: str, description: str) -> Classification:
        ...


__all__ = ["Classification", "CategoryService", "TransactionClassifier"]
