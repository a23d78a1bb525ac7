"""Broker client contract.

Both supported brokers follow the same shape::

    credential → exchange_token → BrokerSession → fetch_holdings → normalize

``BrokerClient.connect`` runs that pipeline once; subclasses supply the
protocol-specific steps. Nothing here stores a token: the session is
returned to the caller and dropped with the request.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, ClassVar

import httpx

from structura.core.exceptions import BrokerError, BrokerInputError, HoldingsFetchError
from structura.core.models import BrokerName, BrokerSession, Holding, HoldingsSnapshot

logger = logging.getLogger(__name__)


class BrokerClient(ABC):
    """Abstract broker authorization and holdings client.

    Use via ``async with`` so the owned HTTP client is closed.
    """

    name: ClassVar[BrokerName]
    credential_field: ClassVar[str]

    def __init__(
        self,
        timeout: float = 20.0,
        default_suffix: str = ".NS",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._default_suffix = default_suffix
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    async def __aenter__(self) -> BrokerClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @abstractmethod
    def authorization_url(self) -> str:
        """Login URL the user is sent to. Makes no network call."""

    @abstractmethod
    async def exchange_token(self, credential: str) -> BrokerSession:
        """Redeem a short-lived credential for an access token.

        Raises
        ------
        BrokerInputError
            If the credential is empty (no request is sent).
        TokenExchangeError
            If the broker refuses the exchange.
        """

    @abstractmethod
    async def fetch_holdings(self, session: BrokerSession) -> list[dict[str, Any]]:
        """Fetch broker-native holding records.

        Raises
        ------
        HoldingsFetchError
            If the holdings endpoint fails.
        """

    @abstractmethod
    def normalize(self, raw: dict[str, Any]) -> Holding:
        """Map one native record into the canonical Holding."""

    async def holdings(self, session: BrokerSession) -> list[Holding]:
        """Fetch and normalize holdings for an existing session."""
        raw = await self.fetch_holdings(session)
        logger.info("Fetched %d holdings from %s", len(raw), self.name.value)
        return [self.normalize(item) for item in raw]

    async def connect(self, credential: str | None) -> HoldingsSnapshot:
        """Exchange ``credential`` and return the normalized holdings."""
        session = await self.exchange_token(self.require_credential(credential))
        logger.info("%s access token received, fetching holdings", self.name.value)
        return HoldingsSnapshot(
            broker=self.name,
            holdings=await self.holdings(session),
            user=session.user_name,
        )

    def require_credential(self, credential: str | None) -> str:
        if not credential or not str(credential).strip():
            raise BrokerInputError(
                f"{self.credential_field} is required",
                context={"broker": self.name.value, "field": self.credential_field},
            )
        return str(credential).strip()

    def session_for_token(self, access_token: str | None) -> BrokerSession:
        """Wrap an access token the caller already holds."""
        if not access_token or not str(access_token).strip():
            raise BrokerInputError(
                "accessToken is required",
                context={"broker": self.name.value, "field": "accessToken"},
            )
        return BrokerSession(broker=self.name, access_token=str(access_token).strip())

    async def _request(
        self,
        method: str,
        url: str,
        error_cls: type[BrokerError],
        **kwargs: Any,
    ) -> httpx.Response:
        """Send one request, reporting transport failures as ``error_cls``."""
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.RequestError as e:
            raise error_cls(
                f"Request to {self.name.value} failed: {type(e).__name__}",
                context={"broker": self.name.value, "url": url},
            ) from e

    @staticmethod
    def _json_or_text(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError:
            return resp.text

    def _holdings_failure(self, resp: httpx.Response, details: Any) -> HoldingsFetchError:
        return HoldingsFetchError(
            f"Holdings fetch failed: {resp.status_code}",
            context={
                "broker": self.name.value,
                "status_code": resp.status_code,
                "details": details,
            },
        )
