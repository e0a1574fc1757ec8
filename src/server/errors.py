"""Map the tracker error taxonomy onto JSON error envelopes."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.tracker.exceptions import NotFoundError, StorageError, TrackerError, ValidationError

logger = logging.getLogger(__name__)


def error_response(
    status_code: int, message: str, errors: Optional[List[Dict[str, Any]]] = None
) -> JSONResponse:
    body: Dict[str, Any] = {"success": False, "message": message}
    if errors is not None:
        body["errors"] = errors
    return JSONResponse(status_code=status_code, content=body)


def _request_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    errors = []
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc) or "<body>", "message": error.get("msg", "")})
    return errors


def register_error_handlers(app: FastAPI) -> None:
    """ValidationError -> 400, NotFoundError -> 404, everything else -> 500."""

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.info("Validation failed on %s %s: %s", request.method, request.url.path, exc.fields)
        return error_response(400, exc.message, exc.errors)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return error_response(400, "Invalid request", _request_errors(exc))

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return error_response(404, str(exc))

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(
            "Storage error on %s %s (path=%s): %s",
            request.method,
            request.url.path,
            exc.path,
            exc,
        )
        return error_response(500, "Storage error")

    @app.exception_handler(TrackerError)
    async def handle_tracker_error(request: Request, exc: TrackerError) -> JSONResponse:
        logger.error("Unhandled tracker error on %s %s: %s", request.method, request.url.path, exc)
        return error_response(500, str(exc) or "Internal Server Error")

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return error_response(500, "Internal Server Error")
