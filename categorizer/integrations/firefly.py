"""
Firefly III REST API client.
Fetches the category taxonomy and writes the chosen category back to a stored
transaction.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

import aiohttp

from categorizer.config import (
    FIREFLY_CATEGORIES_PAGE_LIMIT,
    FIREFLY_TAG,
    HTTP_TIMEOUT_SECONDS,
    get_config_variable,
)
from categorizer.utils import get_logger

logger = get_logger(__name__)


class FireflyError(RuntimeError):
    """Firefly III answered with a non-success status or could not be reached."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


def categories_from_page(payload: Dict[str, Any]) -> Dict[str, str]:
    """Map category name -> id for one page of ``GET /api/v1/categories``."""
    categories: Dict[str, str] = {}
    for entry in payload.get("data") or []:
        name = (entry.get("attributes") or {}).get("name")
        if name:
            categories[name] = str(entry["id"])
    return categories


def total_pages(payload: Dict[str, Any]) -> int:
    pagination = (payload.get("meta") or {}).get("pagination") or {}
    return int(pagination.get("total_pages") or 1)


def build_category_update(
    transactions: Sequence[Dict[str, Any]],
    category_id: str,
    tag: str = FIREFLY_TAG,
) -> Dict[str, Any]:
    """
    Build the ``PUT /api/v1/transactions/{id}`` body.

    Every split gets the category and the marker tag appended to its existing
    tags. Rules and webhooks are re-fired so Firefly treats it like a user edit.
    """
    splits: List[Dict[str, Any]] = []
    for transaction in transactions:
        tags = list(transaction.get("tags") or [])
        if tag and tag not in tags:
            tags.append(tag)
        splits.append({
            "transaction_journal_id": transaction.get("transaction_journal_id"),
            "category_id": category_id,
            "tags": tags,
        })
    return {
        "apply_rules": True,
        "fire_webhooks": True,
        "transactions": splits,
    }


class FireflyService:
    """Firefly III client implementing the CategoryService contract."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        personal_token: Optional[str] = None,
        *,
        tag: str = FIREFLY_TAG,
        timeout_seconds: float = HTTP_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or get_config_variable("FIREFLY_URL")).rstrip("/")
        self._token = personal_token or get_config_variable("FIREFLY_PERSONAL_TOKEN")
        self.tag = tag
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/json",
        }

    async def _request(self, session: aiohttp.ClientSession, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with session.request(method, url, headers=self._headers(), **kwargs) as response:
                if response.status >= 400:
                    body = await response.text()
                    logger.error("Firefly request failed", method=method, url=url, status_code=response.status)
                    raise FireflyError(f"Firefly III returned status {response.status}", response.status, body)
                return await response.json(content_type=None)
        except asyncio.TimeoutError:
            logger.error("Firefly request timed out", method=method, url=url)
            raise FireflyError("Firefly III request timed out")
        except aiohttp.ClientError as e:
            logger.error("Firefly client error", method=method, url=url, error=str(e))
            raise FireflyError(f"Firefly III client error: {e}")

    async def get_categories(self) -> Dict[str, str]:
        categories: Dict[str, str] = {}
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            page, pages = 1, 1
            while page <= pages:
                payload = await self._request(
                    session, "GET", "/api/v1/categories",
                    params={"page": page, "limit": FIREFLY_CATEGORIES_PAGE_LIMIT},
                )
                categories.update(categories_from_page(payload))
                pages = total_pages(payload)
                page += 1
        logger.info("Categories fetched", count=len(categories))
        return categories

    async def set_category(self, transaction_id: Any, transactions: Sequence[Dict[str, Any]], category_id: str) -> None:
        body = build_category_update(transactions, category_id, self.tag)
        async with aiohttp.ClientSession(timeout=self._timeout) as session:
            await self._request(session, "PUT", f"/api/v1/transactions/{transaction_id}", json=body)
        logger.info("Category set", transaction_id=transaction_id, category_id=category_id)


__all__ = ["FireflyService", "FireflyError", "categories_from_page", "total_pages", "build_category_update"]
