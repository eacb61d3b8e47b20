"""HTTP error mapping, request metrics and access logging.

Status code mapping:
- ``RequestValidationError`` (undecodable body) -> 400 Bad Request
- ``ValidationError`` -> 400 Bad Request
- ``NotFoundError`` -> 404 Not Found
- ``ConflictError`` -> 409 Conflict
- ``PersistenceError`` and any other ``Exception`` -> 500 Internal Server Error

Error bodies are ``{"detail": ...}``. 500 bodies carry a fixed message so
driver errors and connection strings never reach a client.
"""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calendar_service.domain.errors import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from calendar_service.observability import Observability

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "internal server error"

REQUEST_ID_HEADER = "X-Request-ID"


async def _handle_request_validation(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    logger.info("Malformed request to %s %s", request.method, request.url.path)
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


async def _handle_validation(request: Request, exc: ValidationError) -> JSONResponse:
    logger.info("Validation error: %s", exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


async def _handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": "event not found"})


async def _handle_conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc)})


async def _handle_persistence(request: Request, exc: PersistenceError) -> JSONResponse:
    # Already logged with context by the service facade.
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc
    )
    return JSONResponse(status_code=500, content={"detail": INTERNAL_ERROR_MESSAGE})


def register_error_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI application."""
    app.add_exception_handler(RequestValidationError, _handle_request_validation)  # type: ignore[arg-type]
    app.add_exception_handler(ValidationError, _handle_validation)  # type: ignore[arg-type]
    app.add_exception_handler(NotFoundError, _handle_not_found)  # type: ignore[arg-type]
    app.add_exception_handler(ConflictError, _handle_conflict)  # type: ignore[arg-type]
    app.add_exception_handler(PersistenceError, _handle_persistence)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected)


def register_metrics_middleware(app: FastAPI, observability: Observability) -> None:
    """Record count, latency and error status of every request.

    Requests are labelled with the matched route template
    (``/events/{event_id}``), or ``unmatched`` when no route matched.
    """

    @app.middleware("http")
    async def record_request_metrics(request: Request, call_next):
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            path = getattr(route, "path", "unmatched")
            observability.record_request(
                request.method, path, status, time.perf_counter() - started
            )


def register_request_logging_middleware(app: FastAPI, request_logger: logging.Logger) -> None:
    """Tag every request with an id and write one access log line for it.

    An incoming ``X-Request-ID`` header is reused, otherwise a fresh id is
    generated. The id is echoed on the response and exposed to handlers as
    ``request.state.request_id``.
    """

    @app.middleware("http")
    async def log_request(request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
        finally:
            request_logger.info(
                "%s %s -> %d in %.1f ms (request_id=%s)",
                request.method,
                request.url.path,
                status,
                (time.perf_counter() - started) * 1000,
                request_id,
            )
        response.headers[REQUEST_ID_HEADER] = request_id
        return response
