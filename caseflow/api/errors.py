"""Error → HTTP status mapping and the JSON envelope shared by every route."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from caseflow.core.config import settings
from caseflow.core.errors import (
    AlreadyExists,
    ConcurrentModification,
    DomainError,
    Forbidden,
    InvalidTransition,
    InvalidWorkflow,
    NotFound,
    Unauthenticated,
    ValidationError,
)
from caseflow.core.event_contract_registry import EventContractError
from caseflow.core.middleware import get_current_request_id, get_current_tenant_id

logger = logging.getLogger("caseflow.api")

# most specific class first
ERROR_STATUS: tuple[tuple[type[DomainError], int], ...] = (
    (Unauthenticated, 401),
    (Forbidden, 403),
    (NotFound, 404),
    (AlreadyExists, 409),
    (ConcurrentModification, 409),
    (InvalidTransition, 400),
    (InvalidWorkflow, 400),
    (ValidationError, 400),
)


def status_for(exc: DomainError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return 400


def ok(data: Any = None, *, message: str | None = None, pagination: dict | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    if pagination is not None:
        body["pagination"] = pagination
    return body


def paginate(page: int, limit: int, total: int) -> dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit}


def _failure(status_code: int, message: str, code: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": message, "code": code},
        headers=headers,
    )


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return _failure(status_code, exc.message, exc.code, headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return _failure(400, message, "VALIDATION_ERROR")


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _failure(exc.status_code, message, f"HTTP_{exc.status_code}", getattr(exc, "headers", None))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"unhandled error {request.method} {request.url.path} "
        f"tenant={get_current_tenant_id() or '-'} request_id={get_current_request_id() or '-'}",
        exc_info=exc,
    )
    message = str(exc) if settings.is_development and str(exc) else "Internal server error"
    return _failure(500, message, "INTERNAL_ERROR")


async def event_contract_handler(request: Request, exc: EventContractError) -> JSONResponse:
    return await unhandled_exception_handler(request, exc)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(EventContractError, event_contract_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
