"""
FastAPI application entry point for the SharePic backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.concurrency import run_in_threadpool

from sharepic.config import Settings, get_settings
from sharepic.dependencies import Backends, build_backends, build_services
from sharepic.errors import SharePicError, StorageError
from sharepic.routes import router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Provision backends before serving traffic.

    A document store that cannot be provisioned aborts startup. The media
    container is retried on first upload, so a failure here only warns.
    """
    backends: Backends = app.state.backends
    if backends.documents is not None:
        await run_in_threadpool(backends.documents.provision)
        logger.info("Document store ready")
    if backends.media is not None:
        try:
            await run_in_threadpool(backends.media.ensure_container)
            logger.info("Media store ready")
        except StorageError as exc:
            logger.warning("Media container not ready yet: %s", exc)
    yield


async def handle_sharepic_error(request: Request, exc: SharePicError):
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc
        )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
):
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    return JSONResponse(status_code=400, content={"error": message})


def create_app(
    settings: Optional[Settings] = None, backends: Optional[Backends] = None
) -> FastAPI:
    settings = settings or get_settings()
    backends = backends or build_backends(settings)

    app = FastAPI(title="SharePic API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.backends = backends
    app.state.services = build_services(backends, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )
    app.add_exception_handler(SharePicError, handle_sharepic_error)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)

    @app.get("/", response_class=PlainTextResponse)
    def health() -> str:
        return "SharePic API is running"

    app.include_router(router, prefix=settings.api_prefix)
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Starting SharePic API on %s:%s", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


app = create_app()


if __name__ == "__main__":
    main()
