# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Exception Handlers

Maps every failure to an OpenAI-style error body:

    {"error": {"message": ..., "type": ..., "code": ...}}

RelayError subclasses carry their own status/type/code. Request body
validation failures become 400 validation_error; unknown routes 404
not_found; anything else 500 internal_error.
"""

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from toolrelay_core import InputValidationError, RelayError

from ..core.settings import Settings
from ..services.emitter import error_body, error_status

logger = logging.getLogger(__name__)


def format_validation_errors(errors: list[dict[str, Any]]) -> str:
    """Flatten pydantic errors into one readable message."""
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request"


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


def register_exception_handlers(app: FastAPI, settings: Settings) -> None:
    """Install the gateway's exception handlers on `app`."""
    production = settings.is_production

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        status = error_status(exc)
        log = logger.error if status >= 500 else logger.warning
        log(
            f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message} "
            f"request_id={_request_id(request)}"
        )
        return JSONResponse(status_code=status, content=error_body(exc, production))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        error = InputValidationError(format_validation_errors(exc.errors()))
        logger.warning(
            f"Invalid request on {request.method} {request.url.path}: {error.message} "
            f"request_id={_request_id(request)}"
        )
        return JSONResponse(status_code=400, content=error_body(error, production))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            message, code = "Not Found", "not_found"
        else:
            message, code = str(exc.detail), "http_error"

        error_type = "invalid_request_error" if exc.status_code < 500 else "api_error"
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"message": message, "type": error_type, "code": code}},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc} request_id={_request_id(request)}")
        return JSONResponse(status_code=500, content=error_body(exc, production))


__all__ = ["register_exception_handlers", "format_validation_errors"]
