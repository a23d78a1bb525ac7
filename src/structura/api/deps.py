"""Dependency injection for FastAPI routes."""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass

from fastapi import Request, Response
from fastapi.responses import JSONResponse

from structura.brokers import UpstoxClient, ZerodhaClient
from structura.core.config import StructuraConfig
from structura.prices import HistoricalSeeder, PriceCacheReader, YahooChartClient
from structura.prices.store import SqlitePriceStore

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type, x-api-key",
}


@dataclass
class AppState:
    """Shared application state, attached to app.state during lifespan."""

    config: StructuraConfig
    store: SqlitePriceStore


def get_app_state(request: Request) -> AppState:
    """Dependency: retrieve AppState from the request."""
    return request.app.state.app_state


def get_config(request: Request) -> StructuraConfig:
    """Dependency: retrieve config."""
    return request.app.state.app_state.config


def get_store(request: Request) -> SqlitePriceStore:
    """Dependency: retrieve the price store."""
    return request.app.state.app_state.store


def get_reader(request: Request) -> PriceCacheReader:
    """Dependency: a cache reader with the configured row cap."""
    state: AppState = request.app.state.app_state
    return PriceCacheReader(state.store, row_limit=state.config.reader.row_limit)


async def get_seeder(request: Request) -> AsyncIterator[HistoricalSeeder]:
    """Dependency: a seeder whose upstream client lives for one request."""
    state: AppState = request.app.state.app_state
    async with YahooChartClient(state.config.upstream) as client:
        yield HistoricalSeeder(state.store, client, state.config.seeder)


async def get_upstox(request: Request) -> AsyncIterator[UpstoxClient]:
    """Dependency: Upstox client built from configured credentials."""
    brokers = request.app.state.app_state.config.brokers
    async with UpstoxClient(
        brokers.upstox, timeout=brokers.timeout, default_suffix=brokers.default_suffix
    ) as client:
        yield client


async def get_zerodha(request: Request) -> AsyncIterator[ZerodhaClient]:
    """Dependency: Zerodha client built from configured credentials."""
    brokers = request.app.state.app_state.config.brokers
    async with ZerodhaClient(
        brokers.zerodha, timeout=brokers.timeout, default_suffix=brokers.default_suffix
    ) as client:
        yield client


EXEMPT_PATHS = {"/api/health"}


async def preflight_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: answer any OPTIONS request with an empty success."""
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=CORS_HEADERS)
    return await call_next(request)


async def api_key_middleware(request: Request, call_next):  # type: ignore[no-untyped-def]
    """Middleware: validate X-API-Key header when authentication is enabled."""
    if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
        return await call_next(request)

    config = request.app.state.app_state.config
    if config.api.api_key:
        api_key = request.headers.get("X-API-Key")
        if api_key != config.api.api_key:
            return JSONResponse(
                status_code=401,
                content={"error": "Unauthorized", "detail": "Invalid or missing API key"},
            )
    return await call_next(request)
