"""Entrypoint for the ClickHouse bridge FastAPI application."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chbridge.api.router import api_router
from chbridge.api.v1.schemas import ApiResponse
from chbridge.core.config import Settings, get_settings
from chbridge.core.errors import BridgeError
from chbridge.core.logging import configure_logging

logger = logging.getLogger(__name__)


def _envelope(status_code: int, error: str) -> JSONResponse:
    body = ApiResponse.fail(error).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return _envelope(exc.status_code, str(exc))


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    detail = "; ".join(problems)
    return _envelope(400, f"Invalid request body: {detail}" if detail else "Invalid request body")


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("%s %s crashed", request.method, request.url.path, exc_info=exc)
    return _envelope(500, str(exc))


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title=settings.app_name, version=settings.version)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization"],
        # Credentials cannot be combined with a wildcard origin
        allow_credentials="*" not in settings.cors_origins,
    )
    app.add_exception_handler(BridgeError, bridge_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    @app.get("/", tags=["health"], summary="Service landing endpoint")
    async def read_root() -> dict[str, str]:
        """Provide a simple landing payload for the root path."""

        return {"message": "ClickHouse bridge is running", "docs_url": "/docs"}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
