"""Pytest fixtures and fakes for the outbound services.

The fakes implement the same async contracts as the Firefly III and OpenAI
clients so the whole pipeline runs in-process without network access.
"""
import asyncio
import copy
import time

import pytest
from fastapi.testclient import TestClient

from categorizer.integrations.base import Classification
from categorizer.main import create_app

DEFAULT_CATEGORIES = {"Groceries": "1", "Coffee": "2", "Rent": "3"}


class FakeFirefly:
    def __init__(self, categories=None, error=None):
        self.categories = dict(DEFAULT_CATEGORIES if categories is None else categories)
        self.error = error
        self.fetches = 0
        self.commits = []

    async def get_categories(self):
        self.fetches += 1
        if self.error is not None:
            raise self.error
        return dict(self.categories)

    async def set_category(self, transaction_id, transactions, category_id):
        self.commits.append((transaction_id, list(transactions), category_id))


class FakeClassifier:
    """Answers with ``answer`` for every transaction, or by destination via ``answers``."""

    def __init__(self, answer="Coffee", answers=None, error=None, delay=0.0):
        self.answer = answer
        self.answers = answers or {}
        self.error = error
        self.delay = delay
        self.calls = []

    async def classify(self, categories, destination_name, description):
        self.calls.append((list(categories), destination_name, description))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        answer = self.answers.get(destination_name, self.answer) or ""
        category = answer if answer in categories else None
        return Classification(
            category=category,
            prompt=f"Which category fits {destination_name} / {description}?",
            response=answer,
        )


@pytest.fixture()
def webhook_payload():
    """Factory for a valid 'transaction stored' webhook body with per-test overrides."""
    base = {
        "uuid": "a5e1c9f4-1111-2222-3333-444455556666",
        "user_id": 1,
        "trigger": "STORE_TRANSACTION",
        "response": "TRANSACTIONS",
        "url": "http://localhost:3000/webhook",
        "version": "v0",
        "content": {
            "id": "1",
            "transactions": [
                {
                    "transaction_journal_id": "11",
                    "type": "withdrawal",
                    "category_id": None,
                    "description": "coffee",
                    "destination_name": "Cafe",
                    "tags": [],
                }
            ],
        },
    }

    def _create(**transaction_overrides):
        payload = copy.deepcopy(base)
        payload["content"]["transactions"][0].update(transaction_overrides)
        return payload

    return _create


@pytest.fixture()
def firefly():
    return FakeFirefly()


@pytest.fixture()
def classifier():
    return FakeClassifier()


@pytest.fixture()
def client(firefly, classifier):
    app = create_app(firefly=firefly, classifier=classifier, queue_timeout_seconds=5)
    # Context manager keeps one event loop alive for the lifespan and the queue worker
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def wait_for():
    def _wait(predicate, timeout=3.0, interval=0.02):
        deadline = time.time() + timeout
        while time.time() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait
