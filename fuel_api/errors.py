"""JSON error responses for kernel exceptions."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from flask import jsonify
from werkzeug.exceptions import HTTPException

from fuel_kernel.exceptions import (
    ConcurrencyError,
    FuelKernelError,
    ImmutabilityError,
    InventoryError,
    NotFoundError,
    PricingError,
    ReversalError,
    ValidationError,
)
from fuel_kernel.logging_config import get_logger

logger = get_logger("api.errors")

_STATUS_BY_CATEGORY: tuple[tuple[type[FuelKernelError], int], ...] = (
    (NotFoundError, 404),
    (ValidationError, 400),
    (PricingError, 409),
    (InventoryError, 409),
    (ReversalError, 409),
    (ConcurrencyError, 409),
    (ImmutabilityError, 409),
)


def status_for(exc: FuelKernelError) -> int:
    for category, status in _STATUS_BY_CATEGORY:
        if isinstance(exc, category):
            return status
    return 500


def _jsonable(value):
    if isinstance(value, (UUID, Decimal)):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return {k: _jsonable(v) for k, v in asdict(value).items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    return str(value)


def error_payload(exc: FuelKernelError) -> dict:
    payload = {"code": exc.code, "message": str(exc)}
    for key, value in vars(exc).items():
        if not key.startswith("_"):
            payload[key] = _jsonable(value)
    return payload


def register_error_handlers(app):
    def _kernel_error(exc: FuelKernelError):
        status = status_for(exc)
        if status >= 500:
            logger.error("api_unhandled_kernel_error", extra={"error_code": exc.code})
        return jsonify(error_payload(exc)), status

    def _http_error(exc: HTTPException):
        return jsonify({"code": exc.name.upper().replace(" ", "_"), "message": exc.description}), exc.code

    app.register_error_handler(FuelKernelError, _kernel_error)
    app.register_error_handler(HTTPException, _http_error)
