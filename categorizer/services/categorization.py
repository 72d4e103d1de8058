"""Per-job categorization workflow.

One run, executed as the task queue's unit of work for a single job:

  1. mark the job in progress
  2. fetch the category taxonomy from Firefly III
  3. ask the classifier for a category, given the taxonomy names
  4. store category, prompt and response on the job
  5. if a category was chosen, write it back to Firefly III
  6. mark the job finished

Errors from steps 2-5 propagate to the queue. Nothing is retried or rolled
back, and the job keeps the last status it reached.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable

from categorizer.integrations.base import CategoryService, TransactionClassifier
from categorizer.jobs.registry import JobRegistry
from categorizer.services.webhook_validation import TransactionWorkItem
from categorizer.utils import get_logger

logger = get_logger(__name__)


class CategorizationOrchestrator:
    def __init__(self, registry: JobRegistry, firefly: CategoryService, classifier: TransactionClassifier):
        self.registry = registry
        self.firefly = firefly
        self.classifier = classifier

    def task_for(self, job_id: str, item: TransactionWorkItem) -> Callable[[], Awaitable[Any]]:
        """Zero-argument closure suitable for SequentialTaskQueue.push."""
        async def _task() -> Any:
            return await self.run(job_id, item)
        return _task

    async def run(self, job_id: str, item: TransactionWorkItem) -> dict[str, Any]:
        job = self.registry.set_job_in_progress(job_id)
        logger.info("Categorization started", job_id=job_id, content_id=item.content_id)

        categories = await self.firefly.get_categories()
        logger.debug("Categories fetched", job_id=job_id, categories=list(categories))

        result = await self.classifier.classify(list(categories), item.destination_name, item.description)

        data = dict(job.data)
        data["category"] = result.category
        data["prompt"] = result.prompt
        data["response"] = result.response
        self.registry.update_job_data(job_id, data)

        if result.category:
            await self.firefly.set_category(item.content_id, item.transactions, categories[result.category])
            logger.info("Category committed", job_id=job_id, category=result.category, content_id=item.content_id)
        else:
            logger.info("No category matched; skipping commit", job_id=job_id)

        self.registry.set_job_finished(job_id)
        return data


__all__ = ["CategorizationOrchestrator"]
