"""FastAPI application: screenshot endpoint, progress stream, static outputs."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles

from shotter.engine.broadcaster import ProgressBroadcaster
from shotter.engine.orchestrator import ScreenshotOrchestrator
from shotter.engine.retention import RetentionSweeper
from shotter.errors import ShotterError
from shotter.schemas.config import ServiceConfig
from shotter.schemas.job import JobRequest

logger = logging.getLogger(__name__)

KEEPALIVE_SECONDS = 15.0


def get_orchestrator(request: Request) -> ScreenshotOrchestrator:
    return request.app.state.orchestrator


async def progress_stream(
    request: Request,
    broadcaster: ProgressBroadcaster,
    session_id: str,
    *,
    keepalive: float = KEEPALIVE_SECONDS,
) -> AsyncIterator[str]:
    """Yield Server-Sent Events for one session until the client goes away.

    The subscription is dropped when the generator is closed (the client
    disconnected mid-write) or when an idle check finds the client gone.
    """
    with broadcaster.subscribe(session_id) as sub:
        yield ": connected\n\n"
        while True:
            try:
                event = await asyncio.wait_for(sub.get(), timeout=keepalive)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    logger.debug("Progress client for session %s disconnected", session_id)
                    break
                yield ": keepalive\n\n"
                continue
            yield f"data: {event.to_wire()}\n\n"


def build_router(config: ServiceConfig) -> APIRouter:
    router = APIRouter(prefix=config.base_path)

    @router.post("/screenshot")
    async def screenshot(
        job: JobRequest,
        orchestrator: ScreenshotOrchestrator = Depends(get_orchestrator),
    ) -> JSONResponse:
        logger.info(
            "Screenshot request: session %s, %d URL(s), %d size(s), %s",
            job.session_id, len(job.urls), len(job.widths), job.browser_type,
        )
        result = await orchestrator.run_session(job)
        return JSONResponse(result.model_dump(by_alias=True))

    @router.get("/screenshot-progress")
    async def screenshot_progress(
        request: Request,
        session_id: str = Query(..., alias="sessionId", min_length=1),
        orchestrator: ScreenshotOrchestrator = Depends(get_orchestrator),
    ) -> StreamingResponse:
        return StreamingResponse(
            progress_stream(request, orchestrator.broadcaster, session_id),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",  # Disable nginx buffering
            },
        )

    @router.get("/health")
    async def health(orchestrator: ScreenshotOrchestrator = Depends(get_orchestrator)) -> dict:
        return {"status": "ok", "activeSessions": len(orchestrator.sessions)}

    return router


def create_app(
    config: ServiceConfig | None = None,
    *,
    orchestrator: ScreenshotOrchestrator | None = None,
    run_sweeper: bool = True,
) -> FastAPI:
    """Build the application.  The retention sweeper runs for the app's lifetime."""
    config = config or ServiceConfig()
    orchestrator = orchestrator or ScreenshotOrchestrator(config)

    config.output_path.mkdir(parents=True, exist_ok=True)
    config.archive_path.mkdir(parents=True, exist_ok=True)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        sweeper_task: asyncio.Task[None] | None = None
        if run_sweeper:
            sweeper = RetentionSweeper(
                [config.output_path, config.archive_path],
                max_age=config.retention_seconds,
                interval=config.sweep_interval,
            )
            sweeper_task = asyncio.create_task(sweeper.run(), name="retention-sweeper")
        logger.info("Screenshot service ready under %s", config.base_path or "/")
        try:
            yield
        finally:
            logger.info("Shutting down, terminating active sessions")
            await orchestrator.shutdown()
            if sweeper_task is not None:
                sweeper_task.cancel()
                await asyncio.gather(sweeper_task, return_exceptions=True)

    app = FastAPI(title="shotter", lifespan=lifespan)
    app.state.config = config
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.exception_handler(ShotterError)
    async def shotter_error_handler(request: Request, exc: ShotterError) -> JSONResponse:
        return JSONResponse({"error": str(exc)}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()]
        return JSONResponse({"error": "; ".join(messages)}, status_code=422)

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error in %s %s", request.method, request.url.path)
        return JSONResponse({"error": str(exc)}, status_code=500)

    app.include_router(build_router(config))
    app.mount(
        f"{config.base_path}/output",
        StaticFiles(directory=config.output_path),
        name="output",
    )
    if config.separate_archive_root:
        app.mount(
            f"{config.base_path}/zipped_output",
            StaticFiles(directory=config.archive_path),
            name="zipped_output",
        )
    return app
