"""Error envelope rendering, global exception middleware and request ids."""

import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from streamvault.errors import StreamVaultError
from streamvault.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, code: str, message: str, details: dict | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(code=code, message=message, details=details).model_dump(),
    )


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


async def handle_streamvault_error(request: Request, exc: StreamVaultError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "[%s] %s %s failed with %s: %s",
            _request_id(request), request.method, request.url.path, exc.code, exc.message,
            exc_info=exc.__cause__ is not None,
        )
        return error_response(exc.status_code, exc.code, exc.client_message)
    logger.info(
        "[%s] %s %s -> %d %s", _request_id(request), request.method, request.url.path,
        exc.status_code, exc.code,
    )
    return error_response(exc.status_code, exc.code, exc.client_message, exc.details)


async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return error_response(400, "VALIDATION_ERROR", "Invalid request", {"errors": errors})


async def handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = {404: "NOT_FOUND", 405: "METHOD_NOT_ALLOWED"}.get(exc.status_code, "HTTP_ERROR")
    return error_response(exc.status_code, code, str(exc.detail))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StreamVaultError, handle_streamvault_error)
    app.add_exception_handler(RequestValidationError, handle_validation_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_exception)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        try:
            response = await call_next(request)
            return response
        except Exception:
            logger.exception(
                "[%s] Unhandled error on %s %s", _request_id(request), request.method, request.url.path
            )
            return error_response(500, "INTERNAL_ERROR", "Internal server error")


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
