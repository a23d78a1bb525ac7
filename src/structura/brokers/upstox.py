"""Upstox OAuth authorization-code flow and long-term holdings."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import urlencode

from structura.brokers.base import BrokerClient
from structura.brokers.normalize import normalize_upstox_holding
from structura.core.config import UpstoxConfig
from structura.core.exceptions import (
    ConfigError,
    HoldingsFetchError,
    TokenExchangeError,
)
from structura.core.models import BrokerName, BrokerSession, Holding

logger = logging.getLogger(__name__)

_API_BASE = "https://api.upstox.com/v2"
_DIALOG_URL = f"{_API_BASE}/login/authorization/dialog"
_TOKEN_URL = f"{_API_BASE}/login/authorization/token"
_HOLDINGS_URL = f"{_API_BASE}/portfolio/long-term-holdings"


class UpstoxClient(BrokerClient):
    """Upstox v2 client: authorization code → bearer token → holdings."""

    name = BrokerName.UPSTOX
    credential_field = "code"

    def __init__(self, config: UpstoxConfig, **kwargs: Any) -> None:
        missing = [
            f for f in ("api_key", "api_secret", "redirect_uri") if not getattr(config, f)
        ]
        if missing:
            raise ConfigError(
                f"Upstox is not configured: missing {', '.join(missing)}",
                context={"field": f"brokers.upstox.{missing[0]}"},
            )
        self._config = config
        super().__init__(**kwargs)

    def authorization_url(self) -> str:
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self._config.api_key,
                "redirect_uri": self._config.redirect_uri,
            }
        )
        return f"{_DIALOG_URL}?{query}"

    async def exchange_token(self, credential: str) -> BrokerSession:
        code = self.require_credential(credential)
        logger.info("Exchanging Upstox authorization code")

        resp = await self._request(
            "POST",
            _TOKEN_URL,
            TokenExchangeError,
            data={
                "code": code,
                "client_id": self._config.api_key,
                "client_secret": self._config.api_secret,
                "redirect_uri": self._config.redirect_uri,
                "grant_type": "authorization_code",
            },
            headers={"Accept": "application/json"},
        )

        try:
            payload = resp.json()
        except ValueError as e:
            raise TokenExchangeError(
                "Invalid response from Upstox",
                context={
                    "broker": self.name.value,
                    "status_code": resp.status_code,
                    "details": resp.text,
                },
            ) from e

        access_token = payload.get("access_token") if isinstance(payload, dict) else None
        if not access_token:
            logger.error("Upstox token exchange failed with status %d", resp.status_code)
            raise TokenExchangeError(
                "Token exchange failed",
                context={
                    "broker": self.name.value,
                    "status_code": resp.status_code,
                    "details": payload,
                },
            )

        return BrokerSession(
            broker=self.name,
            access_token=access_token,
            user_id=payload.get("user_id"),
            user_name=payload.get("user_name"),
            email=payload.get("email"),
            expires_in=payload.get("expires_in"),
        )

    async def fetch_holdings(self, session: BrokerSession) -> list[dict[str, Any]]:
        resp = await self._request(
            "GET",
            _HOLDINGS_URL,
            HoldingsFetchError,
            headers={
                "Authorization": f"Bearer {session.access_token}",
                "Accept": "application/json",
            },
        )
        payload = self._json_or_text(resp)
        if (
            not resp.is_success
            or not isinstance(payload, dict)
            or payload.get("status") != "success"
        ):
            logger.error("Upstox holdings fetch failed with status %d", resp.status_code)
            raise self._holdings_failure(resp, payload)
        return payload.get("data") or []

    def normalize(self, raw: dict[str, Any]) -> Holding:
        return normalize_upstox_holding(raw, self._default_suffix)

