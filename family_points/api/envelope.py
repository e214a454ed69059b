"""
JSON response envelope shared by every endpoint:
``{"success": true, "data": ..., "timestamp": ...}`` or
``{"success": false, "error": {"code": ..., "message": ...}, "timestamp": ...}``.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from starlette.exceptions import HTTPException as StarletteHTTPException

from family_points.domain.errors import FamilyPointsError

logger = logging.getLogger(__name__)

RETRY_LATER_MESSAGE = "The service is temporarily unavailable. Please try again later."

HTTP_ERROR_CODES = {
    401: "UNAUTHENTICATED",
    403: "UNAUTHORIZED",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
}


def _timestamp() -> str:
    return datetime.utcnow().isoformat() + "Z"


def success(data: Any = None) -> dict:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return {"success": True, "data": jsonable_encoder(data), "timestamp": _timestamp()}


def page(items: list, total: int, page_number: int, limit: int) -> dict:
    return success({"items": items, "total": total, "page": page_number, "limit": limit})


def failure(status_code: int, code: str, message: str, headers: Optional[dict] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}, "timestamp": _timestamp()},
        headers=headers,
    )


async def handle_domain_error(request: Request, exc: FamilyPointsError) -> JSONResponse:
    if exc.retryable:
        logger.error("%s %s failed with %s", request.method, request.url.path, exc.code)
        return failure(exc.http_status, exc.code, RETRY_LATER_MESSAGE, headers={"Retry-After": "1"})
    logger.info("%s %s rejected: %s %s", request.method, request.url.path, exc.code, exc.message)
    return failure(exc.http_status, exc.code, exc.message)


async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    return failure(exc.status_code, code, str(exc.detail), headers=getattr(exc, "headers", None))


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg', 'invalid value')}" if location else first.get("msg", "Invalid request")
    return failure(400, "VALIDATION_ERROR", message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FamilyPointsError, handle_domain_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
