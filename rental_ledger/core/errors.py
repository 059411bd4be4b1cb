from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from .exceptions import (
    AvailabilityError,
    ConcurrentUpdateError,
    InsufficientStockError,
    LedgerError,
    NotFoundError,
    OrderStateError,
    PersistenceError,
    QuantityExceededError,
)

logger = logging.getLogger(__name__)

_LEDGER_STATUS: tuple[tuple[type[LedgerError], int], ...] = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (QuantityExceededError, status.HTTP_409_CONFLICT),
    (OrderStateError, status.HTTP_409_CONFLICT),
    (AvailabilityError, status.HTTP_409_CONFLICT),
    (ConcurrentUpdateError, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


def status_for(exc: LedgerError) -> int:
    for exc_type, status_code in _LEDGER_STATUS:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


async def ledger_exception_handler(request: Request, exc: LedgerError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(
            "ledger.persistence_failure",
            extra={"extra_data": {"path": request.url.path, "error": exc.message}},
        )
    return ErrorEnvelope(status_code=status_code, code=exc.code, message=exc.message, details=exc.details)


async def value_error_handler(request: Request, exc: ValueError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="invalid_request",
        message=str(exc),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return ErrorEnvelope(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        code="validation_error",
        message="Validation failed",
        details={"errors": jsonable_encoder(exc.errors())},
    )
