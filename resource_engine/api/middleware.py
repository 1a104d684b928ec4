"""Request middleware and the shared error envelope"""

import logging
import time
import uuid
from typing import Any, Callable, Dict

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from resource_engine.api.metrics import ERROR_COUNT, REQUEST_COUNT, REQUEST_DURATION
from resource_engine.api.models import ErrorResponse
from resource_engine.logging_config import bind_request, clear_request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _route_template(request: Request) -> str:
    """Route path with placeholders, so metrics are not labelled per resource id"""
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Tags each request with an id, logs its outcome and records Prometheus
    request metrics.

    The caller's X-Request-ID is reused when present. The id is echoed in the
    response headers together with the elapsed time, and is bound to the
    structlog context so engine log events carry it too.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id
        bind_request(request_id, method=request.method, path=request.url.path)

        fields: Dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
        }
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "Request failed",
                extra={**fields, "error": str(e), "response_time_ms": _elapsed_ms(start_time)},
                exc_info=True
            )
            raise
        finally:
            clear_request()

        elapsed = time.time() - start_time
        endpoint = _route_template(request)
        REQUEST_COUNT.labels(method=request.method, endpoint=endpoint, status=str(response.status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, endpoint=endpoint).observe(elapsed)

        logger.info(
            f"{request.method} {endpoint} -> {response.status_code}",
            extra={**fields, "status_code": response.status_code, "response_time_ms": _elapsed_ms(start_time)}
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time"] = f"{elapsed:.3f}s"
        return response


def _elapsed_ms(start_time: float) -> float:
    return round((time.time() - start_time) * 1000, 2)


def error_response(
    request: Request,
    status_code: int,
    error: str,
    message: str,
    details: dict = None
) -> JSONResponse:
    """
    Build the JSON error envelope shared by every exception handler.

    Args:
        request: Request being answered
        status_code: HTTP status code
        error: Error type name (e.g. ``ValidationError``)
        message: Human-readable message
        details: Extra context, such as per-field validation errors

    Returns:
        JSONResponse carrying an ``ErrorResponse`` body and the request id
    """
    request_id = getattr(request.state, "request_id", "unknown")
    ERROR_COUNT.labels(error_type=error).inc()

    logger.warning(
        f"{error} on {request.method} {request.url.path}: {message}",
        extra={"request_id": request_id, "status_code": status_code}
    )

    body = ErrorResponse(error=error, message=message, details=details or {})
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json"),
        headers={REQUEST_ID_HEADER: request_id}
    )
