"""
Firefly III webhook ingress.
"""
import json

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from categorizer.api.deps import get_orchestrator, get_queue, get_registry
from categorizer.jobs.queue import QueueStoppedError, SequentialTaskQueue
from categorizer.jobs.registry import JobRegistry
from categorizer.services.categorization import CategorizationOrchestrator
from categorizer.services.webhook_validation import WebhookValidationError, extract_work_item
from categorizer.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.post(
    "/webhook",
    response_class=PlainTextResponse,
    summary="Receive a Firefly III 'transaction stored' webhook"
)
async def receive_webhook(
    request: Request,
    registry: JobRegistry = Depends(get_registry),
    queue: SequentialTaskQueue = Depends(get_queue),
    orchestrator: CategorizationOrchestrator = Depends(get_orchestrator),
) -> PlainTextResponse:
    """Validate the payload, create a job and queue its categorization.

    Responds as soon as the job is queued; processing happens on the queue
    worker and is reported through the real-time channel only.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    logger.info("Webhook triggered", request_id=request_id)

    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.warning("Webhook body is not valid JSON", request_id=request_id)
        return PlainTextResponse("Request body must be valid JSON", status_code=400)

    try:
        item = extract_work_item(payload)
    except WebhookValidationError as e:
        logger.warning("Webhook rejected", reason=str(e), request_id=request_id)
        return PlainTextResponse(str(e), status_code=400)

    if queue.stopped:
        logger.warning("Webhook refused, queue stopped", content_id=item.content_id, request_id=request_id)
        return PlainTextResponse("Queue is not accepting jobs", status_code=503)

    job = registry.create_job(item.job_data())
    try:
        queue.push(orchestrator.task_for(job.id, item), name=f"job-{job.id}")
    except QueueStoppedError:
        logger.error("Queue stopped before job could be queued", job_id=job.id, request_id=request_id)
        registry.set_job_finished(job.id)
        return PlainTextResponse("Queue is not accepting jobs", status_code=503)
    logger.info(
        "Webhook queued",
        job_id=job.id,
        content_id=item.content_id,
        queue_depth=queue.depth(),
        request_id=request_id
    )
    return PlainTextResponse("Queued")
