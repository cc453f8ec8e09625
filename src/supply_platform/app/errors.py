"""Translate service-layer errors into HTTP responses.

Status mapping:
    ValidationError         -> 400 {error, field, value}
    RequestValidationError  -> 400 {error, details}
    NotFoundError           -> 404 {error, entity, id}
    StorageError            -> 500 {error}  (query and driver message are logged only)
    ServiceError            -> 500 {error}
"""

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from supply_platform.app.messages import INVALID_REQUEST, STORAGE_ERROR
from supply_platform.domain.errors import (
    NotFoundError,
    ServiceError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def _safe_value(value):
    """Keep offending values JSON-friendly without leaking arbitrary objects."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (list, dict)):
        return jsonable_encoder(value)
    return repr(value)


def setup_exception_handlers(app: FastAPI) -> None:
    """Register the error taxonomy handlers on ``app``."""

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": exc.message, "field": exc.field, "value": _safe_value(exc.value)},
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": INVALID_REQUEST, "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=404,
            content={"error": exc.message, "entity": exc.entity, "id": exc.entity_id},
        )

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error(
            "Storage error in %s: %s | query=%s | cause=%s",
            exc.operation,
            exc.message,
            exc.query,
            exc.cause,
        )
        return JSONResponse(status_code=500, content={"error": STORAGE_ERROR})

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        logger.error("%s.%s failed: %s", exc.service, exc.operation, exc.cause or exc.message)
        return JSONResponse(status_code=500, content={"error": exc.message})
