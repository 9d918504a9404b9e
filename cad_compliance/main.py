"""
FastAPI application entrypoint for the CAD compliance gateway.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from http import HTTPStatus

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from cad_compliance.api.routes import router as api_router
from cad_compliance.core.config import get_settings
from cad_compliance.core.errors import GatewayError
from cad_compliance.core.logging import configure_logging

logger = logging.getLogger(__name__)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=int(status_code),
        content={"success": False, "error": message},
    )


async def _handle_gateway_error(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    return _error_response(exc.status_code, exc.message)


async def _handle_request_validation(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    details = "; ".join(
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    )
    return _error_response(HTTPStatus.BAD_REQUEST, details or "Invalid request.")


@asynccontextmanager
async def _lifespan(app: FastAPI):
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.export.http_timeout_seconds) as client:
        app.state.http_client = client
        yield
    app.state.http_client = None


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="CAD Compliance Gateway",
        version="0.1.0",
        description="OAuth sign-in and STEP export orchestration for the Onshape panel.",
        lifespan=_lifespan,
    )
    app.add_exception_handler(GatewayError, _handle_gateway_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
