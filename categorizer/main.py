"""
FastAPI application main module.
Wires the job registry, task queue, categorization workflow and observer
fan-out together and exposes the webhook, job channel and health endpoints.
"""
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from categorizer import __version__
from categorizer.api import api_router
from categorizer.config import CORS_ORIGINS, ENABLE_UI, LOG_FILE, LOG_LEVEL, PORT, QUEUE_SETTINGS
from categorizer.integrations import FireflyService, OpenAiService
from categorizer.integrations.base import CategoryService, TransactionClassifier
from categorizer.jobs.queue import QueueEvent, SequentialTaskQueue
from categorizer.jobs.registry import JobRegistry
from categorizer.models import QueueEventType
from categorizer.models.schemas import HealthOut
from categorizer.services.broadcaster import JobEventBroadcaster
from categorizer.services.categorization import CategorizationOrchestrator
from categorizer.utils import setup_logging, get_logger

# Setup logging before creating the app
setup_logging(
    log_level=LOG_LEVEL,
    log_file=LOG_FILE,
    enable_console=True
)

logger = get_logger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"


def log_queue_event(event: QueueEvent) -> None:
    """Queue lifecycle events are diagnostic only; they never touch job state."""
    task = event.task
    if event.type is QueueEventType.START:
        logger.info("Job started", task=task.name)
    elif event.type is QueueEventType.SUCCESS:
        logger.info("Job success", task=task.name)
    elif event.type is QueueEventType.ERROR:
        logger.error(
            "Job error",
            task=task.name,
            error=str(event.error),
            error_type=type(event.error).__name__,
        )
    elif event.type is QueueEventType.TIMEOUT:
        logger.warning("Job timeout", task=task.name, error=str(event.error))


def create_app(
    firefly: Optional[CategoryService] = None,
    classifier: Optional[TransactionClassifier] = None,
    *,
    queue_timeout_seconds: Optional[float] = None,
    enable_ui: bool = ENABLE_UI,
) -> FastAPI:
    """Build the application.

    ``firefly`` and ``classifier`` default to the real HTTP clients, which are
    created at startup and read their credentials from the environment.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Application startup initiated")
        try:
            registry = JobRegistry()
            queue = SequentialTaskQueue(
                timeout_seconds=queue_timeout_seconds
                if queue_timeout_seconds is not None
                else float(QUEUE_SETTINGS["timeout_seconds"]),
            )
            queue.add_listener(log_queue_event)
            orchestrator = CategorizationOrchestrator(
                registry,
                firefly if firefly is not None else FireflyService(),
                classifier if classifier is not None else OpenAiService(),
            )
            broadcaster = JobEventBroadcaster(registry)
            broadcaster.start()

            app.state.job_registry = registry
            app.state.task_queue = queue
            app.state.orchestrator = orchestrator
            app.state.broadcaster = broadcaster
            logger.info("Application startup completed successfully", ui_enabled=enable_ui)
        except Exception as e:
            logger.error("Application startup failed", error=str(e), exc_info=True)
            raise

        try:
            yield
        finally:
            logger.info("Application shutdown initiated")
            await queue.stop()
            broadcaster.stop()
            logger.info("Application shutdown completed")

    app = FastAPI(
        title="Firefly III AI Categorizer",
        description="Categorizes new Firefly III withdrawals with OpenAI and streams job progress.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_context_and_logging(request: Request, call_next):
        """
        Add request ID and timing, and log every request/response pair.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        logger.info(
            "Request started",
            method=request.method,
            url=str(request.url),
            remote_addr=request.client.host if request.client else "unknown",
            request_id=request_id
        )

        response = await call_next(request)

        process_time_ms = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(process_time_ms)

        logger.info(
            "Request completed",
            method=request.method,
            url=str(request.url),
            status_code=response.status_code,
            process_time_ms=process_time_ms,
            request_id=request_id
        )
        return response

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            request_id=request_id,
            url=str(request.url),
            method=request.method
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.detail, "request_id": request_id}
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            request_id=request_id,
            url=str(request.url),
            method=request.method,
            exc_info=True
        )
        return JSONResponse(
            status_code=500,
            content={"success": False, "message": "Internal server error", "request_id": request_id}
        )

    @app.get("/health", response_model=HealthOut, tags=["health"], summary="Basic health check")
    async def health_check():
        return HealthOut(
            status="healthy",
            service="firefly-ai-categorizer",
            version=__version__,
            timestamp=time.time(),
        )

    @app.get("/health/detailed", response_model=HealthOut, tags=["health"], summary="Queue and job summary")
    async def detailed_health_check(request: Request):
        status = "healthy"
        checks = {}
        queue = getattr(request.app.state, "task_queue", None)
        registry = getattr(request.app.state, "job_registry", None)
        broadcaster = getattr(request.app.state, "broadcaster", None)
        if queue is None or registry is None:
            status = "starting"
        else:
            checks["queue"] = queue.snapshot()
            checks["jobs"] = registry.snapshot()
            checks["observers"] = len(broadcaster) if broadcaster is not None else 0
            if checks["queue"]["stopped"]:
                status = "degraded"
        return HealthOut(
            status=status,
            service="firefly-ai-categorizer",
            version=__version__,
            timestamp=time.time(),
            checks=checks,
        )

    app.include_router(api_router)

    if enable_ui:
        # Mounted last so the API routes above take precedence
        app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="ui")
    else:
        @app.get("/", tags=["root"])
        async def root():
            return {
                "message": "Firefly III AI Categorizer",
                "version": __version__,
                "documentation": "/docs",
                "health_check": "/health",
                "webhook": "/webhook",
                "events": "/ws",
            }

    return app


app = create_app()


def main() -> None:
    """Run the service with uvicorn on PORT."""
    import uvicorn

    logger.info("Application running", port=PORT)
    uvicorn.run(
        "categorizer.main:app",
        host="0.0.0.0",
        port=PORT,
        log_level="info",
        access_log=True
    )


if __name__ == "__main__":
    main()
