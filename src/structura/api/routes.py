"""FastAPI route definitions for the Structura API."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

import structura
from structura.api.deps import (
    get_config,
    get_reader,
    get_seeder,
    get_store,
    get_upstox,
    get_zerodha,
)
from structura.api.schemas import (
    AuthUrlResponse,
    CoverageResponse,
    HealthResponse,
    HoldingsResponse,
    PricesRequest,
    SeedRequest,
    UpstoxHoldingsRequest,
    UpstoxTokenRequest,
    UpstoxTokenResponse,
    ZerodhaRequest,
)
from structura.brokers import UpstoxClient, ZerodhaClient
from structura.core.exceptions import BrokerInputError
from structura.core.models import HoldingsSnapshot
from structura.prices import HistoricalSeeder, PriceCacheReader
from structura.prices.models import CacheReadResult, OnDemandResult, SeedResult
from structura.prices.store import SqlitePriceStore

logger = logging.getLogger(__name__)

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    store: SqlitePriceStore = Depends(get_store),
    config=Depends(get_config),
):
    """System health and cache size."""
    coverage = await store.coverage()
    return HealthResponse(
        status="ok",
        version=structura.__version__,
        storage_backend=str(config.storage.backend.value),
        total_rows=sum(c.rows for c in coverage),
        symbols=len(coverage),
    )


# -- Price cache --


@router.post("/seed-historical", response_model=SeedResult)
async def seed_historical(
    request: SeedRequest,
    seeder: HistoricalSeeder = Depends(get_seeder),
):
    """Seed one batch of the universe; resubmit ``nextBatch`` to continue."""
    return await seeder.seed_batch(
        batch_start=request.batch_start,
        batch_size=request.batch_size,
        clear_first=request.clear_first,
        incremental=request.incremental,
    )


@router.post("/prices", response_model=CacheReadResult)
async def read_prices(
    request: PricesRequest,
    reader: PriceCacheReader = Depends(get_reader),
    config=Depends(get_config),
):
    """Serve cached price history; uncached symbols are listed in ``errors``."""
    price_range = request.range or config.reader.default_range.value
    return await reader.read(request.symbols, price_range)


@router.post("/fetch-on-demand", response_model=OnDemandResult)
async def fetch_on_demand(
    request: PricesRequest,
    seeder: HistoricalSeeder = Depends(get_seeder),
    config=Depends(get_config),
):
    """Fetch symbols missing from the cache from upstream, cache and return them."""
    price_range = request.range or config.reader.default_range.value
    return await seeder.fetch_symbols(request.symbols, price_range)


@router.get("/cache/coverage", response_model=CoverageResponse)
async def cache_coverage(store: SqlitePriceStore = Depends(get_store)):
    """Row count and date span per cached symbol."""
    coverage = await store.coverage()
    return CoverageResponse(
        symbols=coverage,
        total_rows=sum(c.rows for c in coverage),
    )


# -- Upstox --


@router.get("/upstox/auth-url", response_model=AuthUrlResponse)
async def upstox_auth_url(upstox: UpstoxClient = Depends(get_upstox)):
    """Upstox login dialog URL."""
    return AuthUrlResponse(auth_url=upstox.authorization_url())


@router.post("/upstox/token", response_model=UpstoxTokenResponse)
async def upstox_token(
    request: UpstoxTokenRequest,
    upstox: UpstoxClient = Depends(get_upstox),
):
    """Exchange an Upstox authorization code for an access token."""
    session = await upstox.exchange_token(request.code)
    return UpstoxTokenResponse(
        access_token=session.access_token,
        user_id=session.user_id,
        email=session.email,
        expires_in=session.expires_in,
    )


@router.post("/upstox/holdings", response_model=HoldingsResponse)
async def upstox_holdings(
    request: UpstoxHoldingsRequest,
    upstox: UpstoxClient = Depends(get_upstox),
):
    """Fetch normalized Upstox holdings with a caller-held access token."""
    session = upstox.session_for_token(request.access_token)
    holdings = await upstox.holdings(session)
    return HoldingsResponse(holdings=holdings, count=len(holdings))


# -- Zerodha --


@router.post("/zerodha")
async def zerodha(
    request: ZerodhaRequest,
    kite: ZerodhaClient = Depends(get_zerodha),
):
    """Kite login URL (``get_auth_url``) or token exchange plus holdings."""
    if request.action == "get_auth_url":
        return AuthUrlResponse(auth_url=kite.authorization_url()).model_dump(by_alias=True)

    if request.action == "exchange_token":
        snapshot: HoldingsSnapshot = await kite.connect(request.request_token)
        return HoldingsResponse(
            holdings=snapshot.holdings,
            count=snapshot.count,
            user=snapshot.user,
        ).model_dump(by_alias=True)

    raise BrokerInputError(
        f"Unknown action: {request.action}",
        context={"broker": "zerodha", "field": "action"},
    )
