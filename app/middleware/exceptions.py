from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from app.core.exceptions import ProgressTrackingError
from app.schemas.response import ErrorResponse
import logging
import math
import uuid

logger = logging.getLogger(__name__)

def _get_error_code(status_code: int) -> str:
    code_map = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        409: "CONFLICT",
        422: "VALIDATION_ERROR",
        500: "INTERNAL_SERVER_ERROR",
        501: "NOT_IMPLEMENTED",
    }
    return code_map.get(status_code, f"HTTP_{status_code}")

def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())

def _json_safe_errors(errors) -> list:
    # JSONResponse refuses inf/nan, which is exactly what some rejected inputs are
    safe = []
    for error in errors:
        error = dict(error)
        value = error.get("input")
        if isinstance(value, float) and not math.isfinite(value):
            error["input"] = str(value)
        safe.append(error)
    return jsonable_encoder(safe)

async def validation_exception_handler(request: Request, exc: RequestValidationError):
    request_id = _request_id(request)
    error_response = ErrorResponse.build(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        details={"validation_errors": _json_safe_errors(exc.errors())},
        path=str(request.url),
        request_id=request_id,
    )
    logger.warning(f"[{request_id}] Validation error: {exc.errors()}")
    return JSONResponse(status_code=422, content=error_response.model_dump())

async def progress_exception_handler(request: Request, exc: ProgressTrackingError):
    request_id = _request_id(request)
    error_response = ErrorResponse.build(
        code=exc.code,
        message=exc.message,
        details=jsonable_encoder(exc.context) or None,
        path=str(request.url),
        request_id=request_id,
    )
    log_level = logging.ERROR if exc.status_code >= 500 or exc.code == "INVARIANT_VIOLATION" else logging.WARNING
    logger.log(log_level, f"[{request_id}] {type(exc).__name__}: {exc.message} {exc.context}")
    return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())

async def global_exception_handler(request: Request, exc: Exception):
    request_id = _request_id(request)

    if isinstance(exc, HTTPException):
        error_response = ErrorResponse.build(
            code=_get_error_code(exc.status_code),
            message=exc.detail if isinstance(exc.detail, str) else str(exc.detail),
            path=str(request.url),
            request_id=request_id,
        )
        logger.warning(f"[{request_id}] HTTP {exc.status_code}: {exc.detail}")
        return JSONResponse(status_code=exc.status_code, content=error_response.model_dump())

    error_response = ErrorResponse.build(
        code="INTERNAL_SERVER_ERROR",
        message="An unexpected error occurred",
        details={"error_type": type(exc).__name__},
        path=str(request.url),
        request_id=request_id,
    )
    logger.error(f"[{request_id}] Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=error_response.model_dump())
