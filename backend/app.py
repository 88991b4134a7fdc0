"""FastAPI application factory."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.routes import api_router
from core import settings
from services import RateLimitMiddleware, get_rate_limiter

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
HEALTH_PATH = "/health"


def _error_response(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    response = _error_response(exc.status_code, str(exc.detail))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


async def _validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    details = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]
    message = details[0]["msg"] if details else "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, message, details=details)


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error while serving request",
        extra={"method": request.method, "path": request.url.path},
    )
    if settings.is_production:
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal server error",
        detail=str(exc),
    )


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level.upper())

    application = FastAPI(title=settings.app_name)
    application.include_router(api_router, prefix=API_PREFIX)
    application.add_middleware(
        RateLimitMiddleware,
        limiter_factory=get_rate_limiter,
        exempt_paths={HEALTH_PATH},
        exempt_prefixes=(f"{API_PREFIX}/webhooks",),
    )
    application.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(Exception, _unhandled_exception_handler)

    @application.get(HEALTH_PATH)
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return application


app = create_app()
