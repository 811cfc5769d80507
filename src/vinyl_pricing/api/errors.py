"""
FastAPI exception handlers.

Every error body has the same shape:
    {"error": {"code", "message", "details"}, "request_id"}
"""
import logging
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette import status

from ..errors import PricingError

logger = logging.getLogger(__name__)


def _request_id(request: Request) -> Optional[str]:
    rid = getattr(request.state, "request_id", None)
    if isinstance(rid, str) and rid.strip():
        return rid.strip()

    hdr = request.headers.get("x-request-id")
    if hdr and hdr.strip():
        return hdr.strip()

    return None


def _json_error(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Optional[dict[str, Any]] = None,
) -> JSONResponse:
    rid = _request_id(request)
    headers = {"X-Request-ID": rid} if rid else None
    return JSONResponse(
        status_code=int(status_code),
        content=jsonable_encoder({
            "error": {
                "code": code,
                "message": message,
                "details": details,
            },
            "request_id": rid,
        }),
        headers=headers,
    )


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PricingError)
    async def _handle_pricing_error(request: Request, exc: PricingError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return _json_error(
            request,
            status_code=exc.status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return _json_error(
            request,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Request validation failed",
            details={"errors": exc.errors()},
        )

    @app.exception_handler(HTTPException)
    async def _handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:
        details: Optional[dict[str, Any]] = None
        message = "Request failed"

        if isinstance(exc.detail, str):
            message = exc.detail
        elif isinstance(exc.detail, dict):
            message = str(exc.detail.get("message") or message)
            details = exc.detail

        return _json_error(
            request,
            status_code=exc.status_code,
            code="http_exception",
            message=message,
            details=details,
        )
