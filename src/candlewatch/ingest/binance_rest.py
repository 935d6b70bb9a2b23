from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Literal, Optional

import aiohttp
import structlog

from candlewatch.errors import FeedUnavailable
from candlewatch.ingest import parser
from candlewatch.utils.types import Candle, Ticker

Market = Literal["spot", "futures"]

BASE_URLS: dict[str, str] = {
    "spot": "https://api.binance.com/api/v3",
    "futures": "https://fapi.binance.com/fapi/v1",
}

# provider cap per klines request
MAX_KLINES_LIMIT = 1000


@dataclass(slots=True)
class BinanceRESTConfig:
    market: Market = "futures"
    base_url: Optional[str] = None   # overrides market's default
    timeout_s: float = 10.0

    def url(self, path: str) -> str:
        base = self.base_url or BASE_URLS[self.market]
        return f"{base.rstrip('/')}/{path.lstrip('/')}"


class BinanceREST:
    """
    Read-only Binance market-data client (no keys, no signing).

    Two calls:
      - klines(symbol, interval, start_ms/end_ms or limit) -> list[Candle]
      - ticker_24hr(symbol)                                 -> Ticker

    Any transport error, timeout, non-2xx or unparseable body is raised as
    FeedUnavailable; callers decide on fallback.

    Usage:
        client = BinanceREST(BinanceRESTConfig(market="spot"))
        await client.start()
        candles = await client.klines("BTCUSDT", "1h", limit=10)
        await client.stop()
    """

    def __init__(self, cfg: Optional[BinanceRESTConfig] = None, session: Optional[aiohttp.ClientSession] = None):
        self.cfg = cfg or BinanceRESTConfig()
        self._session = session
        self._owns_session = session is None
        self._log = structlog.get_logger("binance_rest")

    # ---------------------------- lifecycle ---------------------------- #

    async def start(self) -> None:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=self.cfg.timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True

    async def stop(self) -> None:
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    # ---------------------------- public API ---------------------------- #

    async def klines(
        self,
        symbol: str,
        interval: str,
        *,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[Candle]:
        params: dict[str, Any] = {"symbol": symbol, "interval": interval}
        if start_ms is not None and end_ms is not None:
            params["startTime"] = int(start_ms)
            params["endTime"] = int(end_ms)
            params["limit"] = min(limit or MAX_KLINES_LIMIT, MAX_KLINES_LIMIT)
        elif limit is not None:
            params["limit"] = max(1, min(int(limit), MAX_KLINES_LIMIT))
        data = await self._get("klines", params)
        return parser.parse_klines(data)

    async def ticker_24hr(self, symbol: str) -> Ticker:
        data = await self._get("ticker/24hr", {"symbol": symbol})
        return parser.parse_ticker(data)

    # --------------------------- core internals ------------------------- #

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        if self._session is None:
            await self.start()
        assert self._session is not None
        url = self.cfg.url(path)
        try:
            async with self._session.get(url, params=params) as resp:
                if resp.status < 200 or resp.status >= 300:
                    detail = await _maybe_text(resp)
                    self._log.warning("binance_http_error", path=path, status=resp.status, body=detail[:200])
                    raise FeedUnavailable(f"HTTP {resp.status} from {path}")
                return await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            self._log.warning("binance_network_error", path=path, err=str(e) or type(e).__name__)
            raise FeedUnavailable(f"{path}: {e!r}") from e


async def _maybe_text(resp: aiohttp.ClientResponse) -> str:
    try:
        return await resp.text()
    except Exception:
        return "<no body>"
