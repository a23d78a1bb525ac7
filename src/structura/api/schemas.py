"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from structura.core.models import Holding
from structura.prices.models import CoverageRow


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Price cache --


class SeedRequest(_CamelModel):
    """Request body for POST /api/seed-historical."""

    batch_start: int = Field(default=0, ge=0)
    batch_size: int | None = Field(default=None, ge=1, le=500)
    clear_first: bool = False
    incremental: bool = False


class PricesRequest(BaseModel):
    """Request body for POST /api/prices and POST /api/fetch-on-demand."""

    symbols: list[str] = Field(..., min_length=1, max_length=500)
    range: str | None = None

    @field_validator("symbols")
    @classmethod
    def symbols_not_blank(cls, v: list[str]) -> list[str]:
        cleaned = [s.strip() for s in v]
        if any(not s for s in cleaned):
            raise ValueError("symbols must not contain blank entries")
        return cleaned


class CoverageResponse(_CamelModel):
    """Response for GET /api/cache/coverage."""

    symbols: list[CoverageRow]
    total_rows: int


# -- Brokers --


class UpstoxTokenRequest(BaseModel):
    """Request body for POST /api/upstox/token."""

    code: str | None = None


class UpstoxTokenResponse(BaseModel):
    """Successful Upstox token exchange."""

    success: bool = True
    access_token: str
    user_id: str | None = None
    email: str | None = None
    expires_in: int | None = None


class UpstoxHoldingsRequest(_CamelModel):
    """Request body for POST /api/upstox/holdings."""

    access_token: str | None = None


class ZerodhaRequest(BaseModel):
    """Request body for POST /api/zerodha."""

    action: str | None = None
    request_token: str | None = None


class AuthUrlResponse(_CamelModel):
    """Broker login URL."""

    success: bool = True
    auth_url: str


class HoldingsResponse(BaseModel):
    """Normalized holdings for one broker."""

    success: bool = True
    holdings: list[Holding]
    count: int
    user: str | None = None


# -- Health --


class HealthResponse(_CamelModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    storage_backend: str
    total_rows: int
    symbols: int
