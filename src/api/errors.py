"""Translate domain exceptions into HTTP responses."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.services.errors import (
    AuthenticationError,
    EmptyCartError,
    ForbiddenError,
    InsufficientStockError,
    InvalidRequestError,
    InvalidStateError,
    InvalidStatusError,
    NotFoundError,
    StorefrontError,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

# Most specific classes first; the first isinstance match wins.
_STATUS_CODES: list[tuple[type[StorefrontError], int]] = [
    (InvalidRequestError, status.HTTP_400_BAD_REQUEST),
    (EmptyCartError, status.HTTP_400_BAD_REQUEST),
    (InvalidStatusError, status.HTTP_400_BAD_REQUEST),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (ForbiddenError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (InvalidStateError, status.HTTP_409_CONFLICT),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: StorefrontError) -> int:
    for exc_type, code in _STATUS_CODES:
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def _handle_storefront_error(
    request: Request, exc: StorefrontError
) -> JSONResponse:
    code = status_code_for(exc)
    body: dict[str, object] = {"error": exc.code, "detail": exc.message}

    if isinstance(exc, InsufficientStockError):
        body["product_id"] = exc.product_id
        body["requested"] = exc.requested
        body["available"] = exc.available

    if code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.code)

    headers = {"WWW-Authenticate": "Bearer"} if code == 401 else None
    return JSONResponse(status_code=code, content=body, headers=headers)


async def _handle_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": InvalidRequestError.code,
            "detail": f"{field}: {first.get('msg', 'invalid request')}",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain and request validation handlers to the application."""

    app.add_exception_handler(StorefrontError, _handle_storefront_error)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
