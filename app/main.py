"""
FastAPI application entrypoint for the dataset access provisioner.
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.errors import ProvisioningError
from app.core.logging import configure_logging

logger = logging.getLogger("app.requests")

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "SAMEORIGIN",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
}


async def _handle_provisioning_error(
    request: Request, exc: ProvisioningError
) -> JSONResponse:
    log = logger.warning if exc.user_facing else logger.error
    log(
        "%s %s failed: %s",
        request.method,
        request.url.path,
        exc.message,
        extra={"error_context": exc.context},
    )
    return JSONResponse(status_code=int(exc.http_status), content=exc.to_response())


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    settings = get_settings()
    message = str(exc) if settings.environment == "development" else "Something went wrong"
    return JSONResponse(
        status_code=500,
        content={"error": "Internal Server Error", "message": message},
    )


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="GBQ Integration API",
        version="1.0.0",
        description="Grant tenant BigQuery dataset access through Pulumi stacks.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_callback_base]
        if settings.frontend_base_url
        else ["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", "Authorization"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "%s %s -> %s in %dms",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response

    @app.middleware("http")
    async def add_security_headers(request: Request, call_next):
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        return response

    app.add_exception_handler(ProvisioningError, _handle_provisioning_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
