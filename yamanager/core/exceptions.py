"""
Domain error taxonomy and global exception handlers.

Services raise :class:`DomainError` with a stable :class:`ErrorCode`; the
handlers below turn them into ``{"error", "code", "message"}`` bodies with
the message localized from the ``lang`` query parameter. Anything else is
logged with its stack trace and reported as ``INTERNAL`` so no internals
leak to clients.
"""

from __future__ import annotations

import logging
from enum import Enum

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from yamanager.core.messages import get_message

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNAUTHORIZED_ACTOR = "UNAUTHORIZED_ACTOR"
    OVERLAPPING_ENTRY = "OVERLAPPING_ENTRY"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    LEAD_TIME_VIOLATED = "LEAD_TIME_VIOLATED"
    DATE_OUT_OF_RANGE = "DATE_OUT_OF_RANGE"
    ILLEGAL_STATUS_TRANSITION = "ILLEGAL_STATUS_TRANSITION"
    NEGATIVE_BUDGET = "NEGATIVE_BUDGET"
    LEAD_TIME_OUT_OF_RANGE = "LEAD_TIME_OUT_OF_RANGE"
    IDENTITY_PROFILE_INCOMPLETE = "IDENTITY_PROFILE_INCOMPLETE"
    INVALID_REQUEST = "INVALID_REQUEST"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    TIMEOUT = "TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL = "INTERNAL"
    RATE_LIMITED = "RATE_LIMITED"

    @property
    def http_status(self) -> int:
        return _HTTP_STATUS.get(self, 400)


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.UNAUTHORIZED_ACTOR: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.CONCURRENT_MODIFICATION: 409,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.INTERNAL: 500,
    ErrorCode.TIMEOUT: 504,
}


class DomainError(Exception):
    """A rejection with a stable machine code.

    ``detail`` is for logs only; clients get the localized message.
    """

    def __init__(self, code: ErrorCode, detail: str | None = None):
        self.code = code
        self.detail = detail or code.value
        super().__init__(f"{code.value}: {self.detail}")

    @property
    def http_status(self) -> int:
        return self.code.http_status


def error_response(code: ErrorCode, lang: str | None) -> JSONResponse:
    status = code.http_status
    return JSONResponse(
        status_code=status,
        content={
            "error": str(status),
            "code": code.value,
            "message": get_message(code.value, lang),
        },
    )


def _lang(request: Request) -> str | None:
    return request.query_params.get("lang")


async def _domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return error_response(exc.code, _lang(request))


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    code = {
        401: ErrorCode.UNAUTHENTICATED,
        403: ErrorCode.UNAUTHORIZED_ACTOR,
        404: ErrorCode.NOT_FOUND,
        405: ErrorCode.INVALID_REQUEST,
    }.get(exc.status_code, ErrorCode.INVALID_REQUEST if exc.status_code < 500 else ErrorCode.INTERNAL)
    return error_response(code, _lang(request))


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info("Invalid request to %s: %s", request.url.path, exc.errors())
    return error_response(ErrorCode.INVALID_REQUEST, _lang(request))


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit exceeded on %s: %s", request.url.path, exc.detail)
    return error_response(ErrorCode.RATE_LIMITED, _lang(request))


async def _sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return error_response(ErrorCode.INTERNAL, _lang(request))


async def _generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return error_response(ErrorCode.INTERNAL, _lang(request))


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(DomainError, _domain_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
