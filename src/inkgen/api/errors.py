"""Error responder - the single place errors become HTTP responses.

Every route lets :class:`~inkgen.core.errors.GenerationError` propagate.  The
handlers registered here translate it (and any other exception) into the
uniform envelope::

    {"success": false, "error": "<kind>", "message": "<text>"}

Status codes come from the error itself: ``NSFW_BLOCKED`` 400,
``PAYMENT_REQUIRED`` 402, ``GENERATION_FAILED`` 500, ``VALIDATION_ERROR``
its own 4xx, ``DAILY_LIMIT_REACHED`` 429 and ``UNKNOWN`` 500.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from inkgen.core.errors import ErrorKind, GenerationError

logger = logging.getLogger(__name__)


def error_response(exc: Exception) -> JSONResponse:
    """Build the JSON response for ``exc``.

    Args:
        exc: Any exception raised while handling a request.

    Returns:
        A :class:`JSONResponse` with the uniform error envelope.
    """
    if isinstance(exc, GenerationError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": ErrorKind.UNKNOWN.value,
            "message": str(exc) or "An unexpected error occurred.",
        },
    )


async def _generation_error_handler(request: Request, exc: GenerationError) -> JSONResponse:
    log = logger.warning if exc.status_code < 500 else logger.error
    log("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind.value, exc.message)
    return error_response(exc)


async def _request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request."
    logger.warning("%s %s rejected: %s", request.method, request.url.path, message)
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": ErrorKind.VALIDATION_ERROR.value, "message": message},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return error_response(exc)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error responder on ``app``."""
    app.add_exception_handler(GenerationError, _generation_error_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)
