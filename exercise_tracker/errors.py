"""Centralized error handling.

Every failure that should produce a non-2xx status ends up here and is
answered with a plain-text body:

- field validation errors -> 400, message of the first failing field
- unmatched routes (and unmatched verbs on known paths) -> 404
- HTTP exceptions -> their own status and detail
- anything else -> its ``status_code`` (default 500) and message
  (default ``Internal Server Error``)
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from exercise_tracker.config import INTERNAL_SERVER_ERROR, PAGE_NOT_FOUND
from exercise_tracker.validation import FieldValidationError

logger = logging.getLogger(__name__)


async def field_validation_handler(request: Request, exc: FieldValidationError) -> PlainTextResponse:
    logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return PlainTextResponse(exc.message, status_code=status.HTTP_400_BAD_REQUEST)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> PlainTextResponse:
    if exc.status_code in (status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        return PlainTextResponse(PAGE_NOT_FOUND, status_code=status.HTTP_404_NOT_FOUND)

    message = exc.detail if isinstance(exc.detail, str) and exc.detail else INTERNAL_SERVER_ERROR
    return PlainTextResponse(message, status_code=exc.status_code, headers=exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> PlainTextResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    status_code = getattr(exc, "status_code", None) or status.HTTP_500_INTERNAL_SERVER_ERROR
    return PlainTextResponse(str(exc) or INTERNAL_SERVER_ERROR, status_code=status_code)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers on ``app``."""
    app.add_exception_handler(FieldValidationError, field_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
