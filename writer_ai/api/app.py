"""
FastAPI application factory for the Writer AI service.

Creates the app with the ``/process`` and ``/health`` routes, request-ID
middleware and the JSON error handlers.  The request pipeline is built
once per app and shared by every request.
"""

import asyncio
import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Type

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError

from writer_ai.api.schemas import (
    ErrorResponse,
    HealthResponse,
    ProcessRequest,
    ProcessResponse,
)
from writer_ai.config import Settings, get_settings
from writer_ai.exceptions import ProviderError, StorageError, WriterAIException
from writer_ai.pipeline import PipelineResult, RequestPipeline, build_pipeline

logger = logging.getLogger(__name__)

# Provider failures are upstream-class; everything else is internal.
_STATUS_MAP: Dict[Type[WriterAIException], int] = {
    ProviderError: 502,
    StorageError: 500,
}


def _status_for(exc: WriterAIException) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            return _STATUS_MAP[cls]
    return 500


def _error_response(
    error: str, message: str, request_id: str, status_code: int
) -> Response:
    return Response(
        content=json.dumps(
            {"error": error, "message": message, "request_id": request_id}
        ),
        status_code=status_code,
        media_type="application/json",
    )


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[RequestPipeline] = None,
) -> FastAPI:
    """Build and return the configured FastAPI application.

    Args:
        settings: Service settings; loaded with :func:`get_settings` when
            omitted.
        pipeline: Pre-built pipeline.  When omitted one is built from
            *settings* and closed when the app shuts down.

    Raises:
        StorageError: If the response cache cannot be opened.
    """
    settings = settings or get_settings()
    owns_pipeline = pipeline is None
    if pipeline is None:
        pipeline = build_pipeline(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        if owns_pipeline:
            await app.state.pipeline.aclose()
            logger.info("Pipeline closed")

    app = FastAPI(
        title="Writer AI",
        description="Text improvement through interchangeable LLM providers",
        version=settings.api.version,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline
    app.state.version = settings.api.version
    app.state.start_time = time.time()

    # -- Request-ID middleware --
    @app.middleware("http")
    async def add_request_id(request: Request, call_next: Any) -> Response:
        """Attach a unique request ID to every request."""
        request_id = request.headers.get("X-Request-Id", uuid.uuid4().hex[:12])
        request.state.request_id = request_id
        response: Response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # -- Exception handlers --
    @app.exception_handler(WriterAIException)
    async def writer_ai_exception_handler(
        request: Request, exc: WriterAIException
    ) -> Response:
        """Map service exceptions to JSON errors."""
        request_id = getattr(request.state, "request_id", "unknown")
        status_code = _status_for(exc)
        # e.g. "UpstreamStatusError" -> "upstreamstatus"
        error_type = exc.__class__.__name__.replace("Error", "").lower()
        logger.error(
            "Request failed",
            extra={
                "request_id": request_id,
                "error_type": error_type,
                "status_code": status_code,
                "error": str(exc),
            },
        )
        return _error_response(error_type, str(exc), request_id, status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> Response:
        request_id = getattr(request.state, "request_id", "unknown")
        return _error_response(
            "validation", json.dumps(exc.errors(), default=str), request_id, 422
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception) -> Response:
        """Catch-all handler for unhandled exceptions."""
        request_id = getattr(request.state, "request_id", "unknown")
        logger.error(
            "Unhandled exception",
            extra={"request_id": request_id, "error": str(exc)},
            exc_info=True,
        )
        return _error_response(
            "internal_server_error",
            "An unexpected error occurred",
            request_id,
            500,
        )

    # -- Routes --
    @app.post(
        "/process",
        response_model=ProcessResponse,
        responses={
            422: {"model": ErrorResponse},
            500: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
        },
        summary="Improve a piece of text",
    )
    async def process(body: ProcessRequest, request: Request) -> ProcessResponse:
        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(
            "Process request",
            extra={"request_id": request_id, "text_length": len(body.text)},
        )
        result: PipelineResult = await request.app.state.pipeline.process(body.text)
        logger.info(
            "Process request completed",
            extra={
                "request_id": request_id,
                "cache_hit": result.cache_hit,
                "latency_ms": result.latency_ms,
            },
        )
        return ProcessResponse(response=result.response)

    @app.get("/health", response_model=HealthResponse, summary="Service health check")
    async def health(request: Request) -> HealthResponse:
        """Return service health and cache status."""
        pipeline: RequestPipeline = request.app.state.pipeline
        app_settings: Settings = request.app.state.settings
        status = "healthy"
        try:
            entries = await asyncio.to_thread(lambda: pipeline.cache.size)
        except StorageError as exc:
            logger.warning("Cache size unavailable", extra={"error": str(exc)})
            entries = -1
            status = "degraded"
        return HealthResponse(
            status=status,
            version=request.app.state.version,
            provider_family=app_settings.llm.family.value,
            model=app_settings.llm.model_name,
            cache_enabled=pipeline.cache.enabled,
            cache_entries=entries,
            uptime_seconds=round(time.time() - request.app.state.start_time, 1),
        )

    return app
