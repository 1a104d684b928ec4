"""Main FastAPI application with middleware and error handlers"""

import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from resource_engine import __version__
from resource_engine.api.endpoints import router
from resource_engine.api.middleware import RequestLoggingMiddleware, error_response
from resource_engine.config import settings
from resource_engine.exceptions import (
    ExperimentError,
    ResourceEngineException,
    ResourceNotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from resource_engine.integration import ResourceEngineServices

logger = logging.getLogger(__name__)

STATUS_BY_EXCEPTION = (
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ResourceNotFoundError, status.HTTP_404_NOT_FOUND),
    (UpstreamUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ExperimentError, status.HTTP_400_BAD_REQUEST),
)


def status_for(exc: ResourceEngineException) -> int:
    """HTTP status for an engine exception"""
    for exc_type, code in STATUS_BY_EXCEPTION:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def engine_exception_handler(request: Request, exc: ResourceEngineException) -> JSONResponse:
    """
    Handle errors raised by the engine.

    Args:
        request: Request that caused the error
        exc: Engine exception

    Returns:
        JSON response with the error type, message and details
    """
    code = status_for(exc)
    if code >= 500:
        logger.error(
            "Engine error",
            extra={"error": type(exc).__name__, "error_message": exc.message},
            exc_info=exc
        )
    return error_response(request, code, type(exc).__name__, exc.message, exc.details)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Handle request body and query validation errors.

    Args:
        request: Request that caused the error
        exc: Validation error

    Returns:
        JSON response with validation error details
    """
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        }
        for error in exc.errors()
    ]
    return error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "ValidationError",
        "Request validation failed",
        {"validation_errors": errors}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle all unhandled exceptions"""
    logger.error(
        "Unhandled exception",
        extra={
            "request_id": getattr(request.state, "request_id", "unknown"),
            "error": str(exc)
        },
        exc_info=exc
    )
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "InternalServerError",
        "An unexpected error occurred"
    )


def create_app(services: Optional[ResourceEngineServices] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        services: Engine services to serve (seeded services if None)

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Support Resource Engine API",
        description="Recommendation, ranking and directory search for mental-health support resources",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json"
    )
    app.state.services = services if services is not None else ResourceEngineServices()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_exception_handler(ResourceEngineException, engine_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(router)

    @app.get("/metrics", tags=["Monitoring"])
    async def metrics():
        """Prometheus metrics in text format"""
        return PlainTextResponse(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.get("/", tags=["Root"])
    async def root():
        """Service information"""
        return {
            "service": "Support Resource Engine API",
            "version": __version__,
            "status": "operational",
            "documentation": "/docs"
        }

    logger.info(f"API application created with {len(app.state.services.catalog)} resources")
    return app

