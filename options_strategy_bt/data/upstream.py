"""
Upstream daily bar source backed by the Alpaca market data REST API.
"""

import logging
import os
from datetime import date, datetime
from typing import Any, Dict, List, Optional

import requests

from ..errors import UpstreamError
from .models import PriceBar

logger = logging.getLogger(__name__)

DEFAULT_DATA_URL = "https://data.alpaca.markets/v2"


def _parse_bar(raw: Dict[str, Any]) -> PriceBar:
    """Convert an Alpaca bar payload ({t, o, h, l, c, v}) to a PriceBar"""
    ts = str(raw["t"])
    bar_date = datetime.fromisoformat(ts.replace("Z", "+00:00")).date() if "T" in ts else date.fromisoformat(ts)
    return PriceBar(
        date=bar_date,
        open=float(raw["o"]),
        high=float(raw["h"]),
        low=float(raw["l"]),
        close=float(raw["c"]),
        volume=float(raw.get("v") or 0.0),
    )


class AlpacaBarSource:
    """
    Fetch split-adjusted daily bars, following ``next_page_token`` pagination.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        data_url: str = DEFAULT_DATA_URL,
        feed: str = "iex",
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key
        self.api_secret = api_secret
        self.data_url = data_url.rstrip("/")
        self.feed = feed
        self.timeout = timeout
        self._session = session or requests.Session()

    @classmethod
    def from_env(
        cls,
        key_env: str = "ALPACA_API_KEY",
        secret_env: str = "ALPACA_API_SECRET",
        **kwargs,
    ) -> "AlpacaBarSource":
        return cls(api_key=os.environ.get(key_env), api_secret=os.environ.get(secret_env), **kwargs)

    def fetch_bars(self, symbol: str, start: date, end: date) -> List[PriceBar]:
        """
        Fetch daily bars for symbol in [start, end].

        Raises:
            UpstreamError: missing credentials, transport failure, non-2xx response, or a
                payload whose bars cannot be parsed
        """
        if not self.api_key or not self.api_secret:
            raise UpstreamError("Alpaca API credentials not configured")

        symbol = symbol.upper()
        headers = {
            "APCA-API-KEY-ID": self.api_key,
            "APCA-API-SECRET-KEY": self.api_secret,
        }
        bars: List[PriceBar] = []
        page_token: Optional[str] = None

        while True:
            params = {
                "symbols": symbol,
                "timeframe": "1Day",
                "start": f"{start.isoformat()}T00:00:00Z",
                "end": f"{end.isoformat()}T23:59:59Z",
                "adjustment": "split",
                "feed": self.feed,
                "limit": 10000,
            }
            if page_token:
                params["page_token"] = page_token

            try:
                resp = self._session.get(f"{self.data_url}/stocks/bars", params=params, headers=headers, timeout=self.timeout)
            except requests.RequestException as e:
                raise UpstreamError(f"Alpaca request failed: {e}") from e

            if not resp.ok:
                raise UpstreamError(f"Alpaca API error: {resp.status_code} {resp.text[:200]}")

            try:
                payload = resp.json() or {}
                raw_bars = (payload.get("bars") or {}).get(symbol, []) or []
                bars.extend(_parse_bar(raw) for raw in raw_bars)
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                raise UpstreamError(f"Malformed Alpaca bars payload for {symbol}: {e!r}") from e

            page_token = payload.get("next_page_token")
            if not page_token:
                break

        logger.info(f"Fetched {len(bars)} bars for {symbol} from {start} to {end}")
        return bars
