"""
Job listing and the real-time job channel.
"""
import asyncio
from typing import List

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from categorizer.api.deps import get_broadcaster, get_registry
from categorizer.jobs.registry import JobRegistry
from categorizer.models.schemas import JobOut
from categorizer.services.broadcaster import JobEventBroadcaster, Observer
from categorizer.utils import get_logger

router = APIRouter()
logger = get_logger(__name__)


@router.get("/jobs", response_model=List[JobOut], summary="List all known jobs")
async def list_jobs(registry: JobRegistry = Depends(get_registry)) -> List[JobOut]:
    """Same content as the ``jobs`` snapshot sent to new observers."""
    return [JobOut.from_job(job) for job in registry.get_jobs()]


async def _forward(websocket: WebSocket, observer: Observer) -> None:
    while True:
        message = await observer.next_message()
        await websocket.send_json(message)


async def _drain_incoming(websocket: WebSocket) -> None:
    # Observers are read-only; incoming frames are read only to notice disconnects
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


@router.websocket("/ws")
async def job_events(websocket: WebSocket, broadcaster: JobEventBroadcaster = Depends(get_broadcaster)) -> None:
    await websocket.accept()
    observer = broadcaster.connect()
    sender = asyncio.create_task(_forward(websocket, observer))
    receiver = asyncio.create_task(_drain_incoming(websocket))
    try:
        done, pending = await asyncio.wait({sender, receiver}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            error = task.exception()
            if error is not None and not isinstance(error, WebSocketDisconnect):
                logger.error("Observer channel failed", observer_id=observer.id, error=str(error))
    finally:
        for task in (sender, receiver):
            task.cancel()
        broadcaster.disconnect(observer)
