"""FastAPI application factory."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from structura.api.deps import AppState, api_key_middleware, preflight_middleware
from structura.api.routes import router
from structura.core.config import StructuraConfig, load_config
from structura.core.exceptions import (
    BrokerError,
    BrokerInputError,
    ConfigError,
    HoldingsFetchError,
    NormalizationError,
    SeedError,
    StorageError,
    StructuraError,
    TokenExchangeError,
    UpstreamError,
)
from structura.prices.store import create_store

logger = logging.getLogger(__name__)

_STATUS_MAP: dict[type[StructuraError], int] = {
    BrokerInputError: 400,
    SeedError: 400,
    TokenExchangeError: 400,
    HoldingsFetchError: 502,
    NormalizationError: 502,
    UpstreamError: 502,
    ConfigError: 500,
    StorageError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown lifecycle."""
    config = app.state._pending_config or load_config()
    store = await create_store(config.storage)

    app.state.app_state = AppState(config=config, store=store)

    yield

    await store.close()


def _status_for(exc: StructuraError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_MAP:
            return _STATUS_MAP[cls]
    return 500


def _format_validation(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "; ".join(parts) or "Invalid request body"


def create_app(config: StructuraConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    import structura

    app = FastAPI(
        title="Structura API",
        description="Cached market data and normalized broker holdings",
        version=structura.__version__,
        lifespan=lifespan,
    )

    # Stash config so lifespan can retrieve it
    app.state._pending_config = config

    # No-op unless api.api_key is set in the loaded config
    app.middleware("http")(api_key_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Added last so it runs first: every OPTIONS gets an empty 200
    app.middleware("http")(preflight_middleware)

    app.include_router(router, prefix="/api")

    # Exception handlers
    @app.exception_handler(StructuraError)
    async def structura_exception_handler(request: Request, exc: StructuraError):
        status = _status_for(exc)
        content: dict = {"error": type(exc).__name__, "detail": str(exc)}
        if isinstance(exc, BrokerError):
            if "details" in exc.context:
                content["details"] = exc.context["details"]
            if exc.context.get("status_code") is not None:
                content["upstreamStatus"] = exc.context["status_code"]
        if status >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc)
        return JSONResponse(status_code=status, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content={"error": "ValidationError", "detail": _format_validation(exc)},
        )

    @app.exception_handler(Exception)
    async def unexpected_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={"error": "InternalError", "detail": str(exc)},
        )

    return app
