"""Zerodha Kite Connect checksum-signed token exchange and holdings."""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from structura.brokers.base import BrokerClient
from structura.brokers.normalize import normalize_kite_holding
from structura.core.config import ZerodhaConfig
from structura.core.exceptions import (
    ConfigError,
    HoldingsFetchError,
    TokenExchangeError,
)
from structura.core.models import BrokerName, BrokerSession, Holding

logger = logging.getLogger(__name__)

KITE_LOGIN_URL = "https://kite.zerodha.com/connect/login"
KITE_TOKEN_URL = "https://api.kite.trade/session/token"
KITE_HOLDINGS_URL = "https://api.kite.trade/portfolio/holdings"
_KITE_VERSION = "3"
_DEFAULT_USER = "Zerodha User"


def kite_checksum(api_key: str, request_token: str, api_secret: str) -> str:
    """SHA-256 hex digest of ``api_key + request_token + api_secret``."""
    payload = f"{api_key}{request_token}{api_secret}".encode()
    return hashlib.sha256(payload).hexdigest()


class ZerodhaClient(BrokerClient):
    """Kite Connect v3 client: request token → checksum → session → holdings."""

    name = BrokerName.ZERODHA
    credential_field = "request_token"

    def __init__(self, config: ZerodhaConfig, **kwargs: Any) -> None:
        missing = [f for f in ("api_key", "api_secret") if not getattr(config, f)]
        if missing:
            raise ConfigError(
                f"Zerodha is not configured: missing {', '.join(missing)}",
                context={"field": f"brokers.zerodha.{missing[0]}"},
            )
        self._config = config
        super().__init__(**kwargs)

    def authorization_url(self) -> str:
        return f"{KITE_LOGIN_URL}?api_key={self._config.api_key}&v={_KITE_VERSION}"

    async def exchange_token(self, credential: str) -> BrokerSession:
        request_token = self.require_credential(credential)
        logger.info("Exchanging Zerodha request token")

        checksum = kite_checksum(
            self._config.api_key, request_token, self._config.api_secret
        )
        resp = await self._request(
            "POST",
            KITE_TOKEN_URL,
            TokenExchangeError,
            data={
                "api_key": self._config.api_key,
                "request_token": request_token,
                "checksum": checksum,
            },
            headers={"X-Kite-Version": _KITE_VERSION},
        )

        if not resp.is_success:
            logger.error("Zerodha token exchange failed with status %d", resp.status_code)
            raise TokenExchangeError(
                f"Token exchange failed: {resp.status_code}",
                context={
                    "broker": self.name.value,
                    "status_code": resp.status_code,
                    "details": self._json_or_text(resp),
                },
            )

        payload = self._json_or_text(resp)
        data = payload.get("data") if isinstance(payload, dict) else None
        access_token = (data or {}).get("access_token")
        if not access_token:
            raise TokenExchangeError(
                "No access token received",
                context={
                    "broker": self.name.value,
                    "status_code": resp.status_code,
                    "details": payload,
                },
            )

        return BrokerSession(
            broker=self.name,
            access_token=access_token,
            user_id=data.get("user_id"),
            user_name=data.get("user_name") or _DEFAULT_USER,
            email=data.get("email"),
        )

    async def fetch_holdings(self, session: BrokerSession) -> list[dict[str, Any]]:
        resp = await self._request(
            "GET",
            KITE_HOLDINGS_URL,
            HoldingsFetchError,
            headers={
                "Authorization": f"token {self._config.api_key}:{session.access_token}",
                "X-Kite-Version": _KITE_VERSION,
            },
        )
        payload = self._json_or_text(resp)
        if not resp.is_success or not isinstance(payload, dict):
            logger.error("Zerodha holdings fetch failed with status %d", resp.status_code)
            raise self._holdings_failure(resp, payload)
        return payload.get("data") or []

    def normalize(self, raw: dict[str, Any]) -> Holding:
        return normalize_kite_holding(raw, self._default_suffix)
