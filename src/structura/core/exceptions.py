"""Custom exception hierarchy for structura."""

from typing import Any


class StructuraError(Exception):
    """Base exception for all structura errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(StructuraError):
    """Invalid or missing configuration.

    Raised by load_config() during startup, and by broker clients whose
    credentials were never configured. Should be treated as fatal.

    Context keys:
        field: str -- the config field that failed validation
        value: Any -- the invalid value (redacted for secrets)
    """


class StorageError(StructuraError):
    """Database operation failed.

    Policy: propagates everywhere except per-symbol writes in the seeder,
    where it is recorded against the symbol like an upstream failure.

    Context keys:
        operation: str -- "upsert", "query", "delete", etc.
        table: str -- the table involved
    """


class UpstreamError(StructuraError):
    """The time-series provider failed or returned no usable data.

    Policy: inside the seeder, record against the symbol and continue
    with the rest of the batch.

    Context keys:
        symbol: str -- the symbol being fetched
        status_code: int | None -- HTTP status code if applicable
        description: str | None -- provider-reported error text
    """


class SeedError(StructuraError):
    """A seed batch request is out of range or self-contradictory.

    Context keys:
        batch_start: int
        total_symbols: int
    """


class BrokerError(StructuraError):
    """Base class for broker authorization and holdings failures.

    Context keys:
        broker: str -- "upstox" or "zerodha"
    """


class BrokerInputError(BrokerError):
    """A required credential or action was missing. No network call was made."""


class TokenExchangeError(BrokerError):
    """The broker refused to exchange the credential for an access token.

    Policy: fatal to the request. The caller's login failed.

    Context keys:
        status_code: int | None -- upstream HTTP status
        details: Any -- the provider's raw response body
    """


class HoldingsFetchError(BrokerError):
    """Login succeeded but the holdings endpoint did not.

    Policy: fatal to the request, reported distinctly from
    TokenExchangeError.

    Context keys:
        status_code: int | None -- upstream HTTP status
        details: Any -- the provider's raw response body
    """


class NormalizationError(BrokerError):
    """A broker holding record lacked a field the canonical shape needs.

    Context keys:
        field: str -- the missing key
    """
