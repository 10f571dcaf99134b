"""
Custom exception handlers for FastAPI.

Domain errors from the receipt pipeline are mapped to specific status
codes so the user always learns why a receipt could not be produced;
anything unexpected becomes a 500 and is reported to Sentry.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_500_INTERNAL_SERVER_ERROR,
    HTTP_502_BAD_GATEWAY,
)

from snapcart.core.exceptions import (
    ExtractionFailed,
    InvalidUpload,
    ReceiptNotFound,
    SnapCartError,
    UnparsableReceipt,
)
from snapcart.core.observability import sentry_capture

logger = logging.getLogger(__name__)

# Starlette renamed its 422 constant between releases
HTTP_422_UNPROCESSABLE = 422

STATUS_BY_ERROR: dict[type[SnapCartError], int] = {
    InvalidUpload: HTTP_400_BAD_REQUEST,
    UnparsableReceipt: HTTP_422_UNPROCESSABLE,
    ExtractionFailed: HTTP_502_BAD_GATEWAY,
    ReceiptNotFound: HTTP_404_NOT_FOUND,
}


def snapcart_exception_handler(request: Request, exc: SnapCartError):
    status_code = HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        sentry_capture(exc)
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.title, "details": exc.message},
    )


def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=HTTP_422_UNPROCESSABLE,
        content={
            "error": "Validation error",
            "details": exc.errors(),
        },
    )


def generic_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s", request.url.path)
    sentry_capture(exc)
    return JSONResponse(
        status_code=HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "details": str(exc),
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SnapCartError, snapcart_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
