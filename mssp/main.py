"""Application entrypoint for the MSSP client management backend."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mssp.api.v1 import router as api_v1_router
from mssp.core.config import Settings, get_settings
from mssp.core.db import engine
from mssp.core.errors import CustomFieldValidationError, ServiceError
from mssp.core.logging import configure_logging
from mssp.models import Base

logger = logging.getLogger(__name__)

ERROR_CODE_MAP: dict[int, str] = {
    401: "UNAUTHENTICATED",
    403: "FORBIDDEN",
    404: "RESOURCE_NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
}


@asynccontextmanager
async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
    yield


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings)

    application = FastAPI(
        title="MSSP Client Management", version=settings.version, lifespan=_lifespan
    )

    _configure_cors(application, settings)
    _configure_exception_handlers(application)

    application.include_router(api_v1_router, prefix="/api/v1")
    return application


def _configure_cors(application: FastAPI, settings: Settings) -> None:
    if not settings.cors_origins:
        return

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _configure_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(ServiceError, _service_error_handler)
    application.add_exception_handler(HTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(Exception, _unhandled_exception_handler)


async def _service_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, ServiceError)
    if isinstance(exc, CustomFieldValidationError):
        logger.info(
            "Custom field validation failed",
            extra={"path": request.url.path, "errors": exc.details()},
        )
    return _error_response(exc.code, exc.message, exc.status_code, details=exc.details())


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    if isinstance(exc.detail, dict):
        message = str(exc.detail.get("message", "")) or str(exc.detail)
        code = exc.detail.get(
            "code", ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
        )
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        code = ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _error_response(code, message, exc.status_code)


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    logger.info("Validation error", extra={"errors": exc.errors()})
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": str(error.get("msg", "")),
        }
        for error in exc.errors()
    ]
    return _error_response("VALIDATION_ERROR", "Validation error", 422, details=details)


async def _unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled application error")
    return _error_response("INTERNAL_SERVER_ERROR", "Internal server error", status_code=500)


def _error_response(
    code: str,
    message: str,
    status_code: int,
    *,
    details: list[dict[str, Any]] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


app = create_app()
