"""
Dependencies exposing the application's long-lived components to endpoints.
Components are created in the application lifespan and stored on app.state.
"""
from fastapi import HTTPException, Request
from starlette.requests import HTTPConnection

from categorizer.jobs.queue import SequentialTaskQueue
from categorizer.jobs.registry import JobRegistry
from categorizer.services.broadcaster import JobEventBroadcaster
from categorizer.services.categorization import CategorizationOrchestrator


def _state_component(connection: HTTPConnection, name: str):
    component = getattr(connection.app.state, name, None)
    if component is None:
        raise HTTPException(status_code=503, detail=f"{name.replace('_', ' ').capitalize()} not available")
    return component


def get_registry(connection: HTTPConnection) -> JobRegistry:
    return _state_component(connection, "job_registry")


def get_queue(request: Request) -> SequentialTaskQueue:
    return _state_component(request, "task_queue")


def get_orchestrator(request: Request) -> CategorizationOrchestrator:
    return _state_component(request, "orchestrator")


def get_broadcaster(connection: HTTPConnection) -> JobEventBroadcaster:
    return _state_component(connection, "broadcaster")
