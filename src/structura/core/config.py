"""Configuration loading, validation, and access."""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, field_validator

from structura.core.exceptions import ConfigError
from structura.core.models import PriceRange, StorageBackend

_YAHOO_RANGES = {"5d", "1mo", "3mo", "6mo", "1y", "2y", "5y", "10y", "max"}


class StorageConfig(BaseModel):
    """Storage backend configuration."""

    model_config = ConfigDict(frozen=True)

    backend: StorageBackend = StorageBackend.SQLITE
    sqlite_path: str = "./data/structura.db"


class UpstreamConfig(BaseModel):
    """Time-series provider (Yahoo Finance chart API) access."""

    model_config = ConfigDict(frozen=True)

    base_url: str = "https://query1.finance.yahoo.com"
    timeout: float = 15.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
    )

    @field_validator("base_url")
    @classmethod
    def base_url_has_scheme(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v.rstrip("/")


class SeederConfig(BaseModel):
    """Historical seeder settings and the symbol universe it walks."""

    model_config = ConfigDict(frozen=True)

    universe: tuple[str, ...] = ()
    request_delay: float = 0.2
    history_range: str = "5y"
    interval: str = "1d"
    default_batch_size: int = 10

    @field_validator("universe")
    @classmethod
    def universe_unique(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        cleaned = tuple(s.strip() for s in v if s and s.strip())
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("universe must not contain duplicate symbols")
        return cleaned

    @field_validator("request_delay")
    @classmethod
    def delay_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("request_delay must be >= 0")
        return v

    @field_validator("history_range")
    @classmethod
    def range_known_to_yahoo(cls, v: str) -> str:
        if v not in _YAHOO_RANGES:
            raise ValueError(
                f"history_range must be one of {sorted(_YAHOO_RANGES)}, got {v!r}"
            )
        return v

    @field_validator("default_batch_size")
    @classmethod
    def batch_size_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("default_batch_size must be >= 1")
        return v


class ReaderConfig(BaseModel):
    """Price cache read-path settings."""

    model_config = ConfigDict(frozen=True)

    # Passed as LIMIT on every cache query.
    row_limit: int = 100_000
    default_range: PriceRange = PriceRange.ONE_YEAR

    @field_validator("row_limit")
    @classmethod
    def row_limit_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("row_limit must be >= 1")
        return v


class UpstoxConfig(BaseModel):
    """Upstox OAuth application credentials."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    api_secret: str | None = None
    redirect_uri: str | None = None


class ZerodhaConfig(BaseModel):
    """Zerodha Kite Connect application credentials."""

    model_config = ConfigDict(frozen=True)

    api_key: str | None = None
    api_secret: str | None = None


class BrokersConfig(BaseModel):
    """Aggregated broker configuration."""

    model_config = ConfigDict(frozen=True)

    upstox: UpstoxConfig = UpstoxConfig()
    zerodha: ZerodhaConfig = ZerodhaConfig()
    default_suffix: str = ".NS"
    timeout: float = 20.0

    @field_validator("default_suffix")
    @classmethod
    def suffix_starts_with_dot(cls, v: str) -> str:
        if not v.startswith("."):
            raise ValueError("default_suffix must start with '.'")
        return v


class APIConfig(BaseModel):
    """FastAPI server configuration."""

    model_config = ConfigDict(frozen=True)

    host: str = "0.0.0.0"
    port: int = 8000
    api_key: str | None = None


class StructuraConfig(BaseModel):
    """Root configuration for the entire structura system."""

    model_config = ConfigDict(frozen=True)

    storage: StorageConfig = StorageConfig()
    upstream: UpstreamConfig = UpstreamConfig()
    seeder: SeederConfig = SeederConfig()
    reader: ReaderConfig = ReaderConfig()
    brokers: BrokersConfig = BrokersConfig()
    api: APIConfig = APIConfig()


def load_config(
    config_path: str | None = None,
    env_prefix: str = "STRUCTURA_",
) -> StructuraConfig:
    """Load configuration from environment + YAML file + defaults.

    Resolution order (highest priority first):
    1. Environment variables (STRUCTURA_SEEDER__REQUEST_DELAY, etc.)
    2. YAML file at config_path
    3. Built-in defaults

    Nested keys use double-underscore in env vars:
        STRUCTURA_BROKERS__ZERODHA__API_KEY=abc  ->  brokers.zerodha.api_key = "abc"

    The symbol universe is list-valued and therefore only read from YAML.
    """
    try:
        yaml_path = _resolve_config_path(config_path)
        base: dict = {}
        if yaml_path is not None:
            base = _load_yaml(yaml_path)

        merged = _merge_env_vars(base, env_prefix)
        return StructuraConfig.model_validate(merged)
    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(str(e), context={"source": "load_config"}) from e


def _resolve_config_path(explicit: str | None) -> Path | None:
    """Determine config file path."""
    if explicit is not None:
        p = Path(explicit)
        if not p.exists():
            raise ConfigError(
                f"Config file not found: {explicit}",
                context={"field": "config_path", "value": explicit},
            )
        return p

    env_path = os.environ.get("STRUCTURA_CONFIG")
    if env_path:
        p = Path(env_path)
        if not p.exists():
            raise ConfigError(
                f"Config file from STRUCTURA_CONFIG not found: {env_path}",
                context={"field": "STRUCTURA_CONFIG", "value": env_path},
            )
        return p

    default = Path("structura.yml")
    if default.exists():
        return default

    return None


def _load_yaml(path: Path) -> dict:
    """Load and parse YAML file."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(
                f"YAML config must be a mapping, got {type(data).__name__}",
                context={"field": "config_file", "value": str(path)},
            )
        return data
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Failed to parse YAML config: {e}",
            context={"field": "config_file", "value": str(path)},
        ) from e


def _merge_env_vars(base: dict, prefix: str) -> dict:
    """Overlay environment variables onto base config dict.

    Double-underscore separates nesting levels.
    Values are auto-cast: "true"/"false" -> bool, numeric strings -> int/float.
    Secret-looking keys stay strings so numeric API keys are not mangled.
    """
    result = dict(base)

    for key, value in os.environ.items():
        if not key.startswith(prefix):
            continue

        remainder = key[len(prefix) :]
        parts = [p.lower() for p in remainder.split("__")]

        if parts == ["config"]:
            continue

        leaf = parts[-1]
        cast_value = value if leaf in _STRING_KEYS else _auto_cast(value)

        target = result
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        target[leaf] = cast_value

    return result


_STRING_KEYS = {"api_key", "api_secret", "redirect_uri", "user_agent", "sqlite_path"}


def _auto_cast(value: str) -> str | int | float | bool:
    """Auto-cast string values from environment variables."""
    if value.lower() == "true":
        return True
    if value.lower() == "false":
        return False
    try:
        return int(value)
    except ValueError:
        pass
    try:
        return float(value)
    except ValueError:
        pass
    return value
