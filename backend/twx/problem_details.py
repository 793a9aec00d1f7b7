"""RFC 7807 Problem Details helpers and exception handler registration."""
from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from .domain_errors import DomainError

logger = logging.getLogger(__name__)

PROBLEM_TYPE_BASE = "https://api.twx.local/problems"


def _problem_response(
    *,
    status_code: int,
    code: str,
    detail: str,
    details: Any = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    try:
        title = HTTPStatus(status_code).phrase
    except ValueError:
        title = "Domain Error"

    payload: dict[str, object] = {
        "type": f"{PROBLEM_TYPE_BASE}/{code.lower()}",
        "title": title,
        "status": status_code,
        "detail": detail,
        "code": code,
    }
    if details is not None:
        payload["details"] = jsonable_encoder(details)

    return JSONResponse(
        status_code=status_code,
        content=payload,
        media_type="application/problem+json",
        headers=headers,
    )


def build_problem_details_response(exc: DomainError) -> JSONResponse:
    """Render DomainError as RFC 7807 payload with stable domain code."""
    return _problem_response(
        status_code=exc.http_status,
        code=exc.code,
        detail=exc.message,
        details=exc.details,
    )


async def _handle_domain_error(_: Request, exc: DomainError) -> JSONResponse:
    return build_problem_details_response(exc)


async def _handle_http_exception(_: Request, exc: HTTPException) -> JSONResponse:
    try:
        code = HTTPStatus(exc.status_code).name
    except ValueError:
        code = "HTTP_ERROR"
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _problem_response(
        status_code=exc.status_code,
        code=code,
        detail=detail,
        headers=getattr(exc, "headers", None),
    )


async def _handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
    return _problem_response(
        status_code=400,
        code="VALIDATION_ERROR",
        detail="Request validation failed",
        details=exc.errors(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _problem_response(
        status_code=500,
        code="INTERNAL_ERROR",
        detail="Internal server error",
    )


def register_problem_handlers(app: FastAPI) -> None:
    """Route every error the API can raise through problem+json rendering."""
    app.add_exception_handler(DomainError, _handle_domain_error)
    app.add_exception_handler(HTTPException, _handle_http_exception)
    app.add_exception_handler(RequestValidationError, _handle_validation_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
