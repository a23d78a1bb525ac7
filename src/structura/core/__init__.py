"""structura.core: foundation types, config, and exceptions."""

from structura.core.config import (
    APIConfig,
    BrokersConfig,
    ReaderConfig,
    SeederConfig,
    StorageConfig,
    StructuraConfig,
    UpstoxConfig,
    UpstreamConfig,
    ZerodhaConfig,
    load_config,
)
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
from structura.core.models import (
    AccessToken,
    BrokerName,
    BrokerSession,
    Holding,
    HoldingsSnapshot,
    PriceRange,
    StorageBackend,
    Symbol,
)

__all__ = [
    # Type aliases
    "Symbol",
    "AccessToken",
    # Enums
    "PriceRange",
    "BrokerName",
    "StorageBackend",
    # Broker models
    "BrokerSession",
    "Holding",
    "HoldingsSnapshot",
    # Config
    "StructuraConfig",
    "StorageConfig",
    "UpstreamConfig",
    "SeederConfig",
    "ReaderConfig",
    "BrokersConfig",
    "UpstoxConfig",
    "ZerodhaConfig",
    "APIConfig",
    "load_config",
    # Exceptions
    "StructuraError",
    "ConfigError",
    "StorageError",
    "UpstreamError",
    "SeedError",
    "BrokerError",
    "BrokerInputError",
    "TokenExchangeError",
    "HoldingsFetchError",
    "NormalizationError",
]
