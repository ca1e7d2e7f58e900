from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tubely.api.v1 import get_api_router
from tubely.core.config import get_settings
from tubely.core.db import create_engine, create_schema, create_session_factory
from tubely.core.errors import TubelyError
from tubely.core.logging import configure_logging, get_logger
from tubely.core.storage import get_object_store

logger = get_logger(component="api")


async def handle_tubely_error(request: Request, exc: TubelyError) -> JSONResponse:
    """Render a pipeline error as a terse status + code, logging the real cause."""
    event = dict(
        code=exc.code,
        status_code=exc.status_code,
        path=request.url.path,
        error=str(exc),
        cause=repr(exc.__cause__) if exc.__cause__ else None,
    )
    if exc.status_code >= 500:
        logger.error("request_failed", **event)
    else:
        logger.info("request_rejected", **event)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.code})


async def disable_caching(request: Request, call_next):
    response = await call_next(request)
    response.headers["Cache-Control"] = "no-store"
    return response


def create_app() -> FastAPI:
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    configure_logging(level=log_level, environment=settings.environment)
    object_store = get_object_store(settings)
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.settings = settings
        app.state.object_store = object_store
        app.state.engine = engine
        app.state.session_factory = session_factory
        if settings.auto_create_schema:
            await create_schema(engine)
        logger.info(
            "app_started",
            environment=settings.environment,
            storage_backend=settings.storage_backend,
            bucket=settings.s3_bucket,
        )
        try:
            yield
        finally:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.version,
        lifespan=lifespan,
        openapi_url="/openapi.json",
        docs_url="/docs",
    )

    app.add_exception_handler(TubelyError, handle_tubely_error)
    app.middleware("http")(disable_caching)
    app.include_router(get_api_router())
    return app


__all__ = ["create_app", "handle_tubely_error"]
