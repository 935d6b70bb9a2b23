"""
Market-data sources.

LiveFeed talks to the provider; SyntheticFallback fabricates plausible data;
FailoverSource picks between them with a small circuit breaker so a dead
provider is not hammered every second while the poller keeps getting data.
"""
from __future__ import annotations

from typing import Callable, Optional, Protocol

import structlog

from candlewatch.data.fallback import base_price_for, fallback_ticker, generate_fallback
from candlewatch.errors import FeedUnavailable
from candlewatch.ingest.binance_rest import MAX_KLINES_LIMIT, BinanceREST
from candlewatch.utils.backoff import next_backoff
from candlewatch.utils.time import utc_now_s
from candlewatch.utils.timeframes import interval_seconds
from candlewatch.utils.types import Candle, Ticker

log = structlog.get_logger("source")


class DataSource(Protocol):
    async def klines(
        self,
        symbol: str,
        interval: str,
        *,
        start_ms: Optional[int] = None,
        end_ms: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[Candle]: ...

    async def ticker(self, symbol: str) -> Ticker: ...


class LiveFeed:
    """Provider-backed source. Raises FeedUnavailable on any failure."""

    def __init__(self, client: BinanceREST):
        self.client = client

    async def start(self) -> None:
        await self.client.start()

    async def stop(self) -> None:
        await self.client.stop()

    async def klines(self, symbol, interval, *, start_ms=None, end_ms=None, limit=None) -> list[Candle]:
        return await self.client.klines(symbol, interval, start_ms=start_ms, end_ms=end_ms, limit=limit)

    async def ticker(self, symbol: str) -> Ticker:
        return await self.client.ticker_24hr(symbol)


class SyntheticFallback:
    """
    Fabricated data around BASE_PRICES. Never fails.

    For a (start, end) window the candle count covers the window (capped at the
    provider's per-request limit) and never runs past `clock()`; otherwise
    `limit` candles (default 10) ending now.
    """

    def __init__(self, seed: Optional[int] = None, clock: Callable[[], float] = utc_now_s):
        self.seed = seed
        self.clock = clock

    async def klines(self, symbol, interval, *, start_ms=None, end_ms=None, limit=None) -> list[Candle]:
        step = interval_seconds(interval)
        now = self.clock()
        if start_ms is not None and end_ms is not None:
            start = start_ms / 1000.0
            end = min(end_ms / 1000.0, now)
            if end < start:
                return []
            count = min(int((end - start) // step) + 1, MAX_KLINES_LIMIT)
        else:
            end = now
            count = limit or 10
        return generate_fallback(base_price_for(symbol), count, interval_s=step, end_epoch=end, seed=self.seed)

    async def ticker(self, symbol: str) -> Ticker:
        return fallback_ticker(symbol, seed=self.seed)


class FailoverSource:
    """
    Circuit breaker over (live, fallback).

      closed: every call goes to live; a FeedUnavailable is answered from
              fallback and counted.
      open:   after `failure_threshold` consecutive failures, live is skipped
              until the reopen delay passes. The delay doubles on every trip
              (capped) and resets on the first live success.
    """

    def __init__(
        self,
        live: DataSource,
        fallback: DataSource,
        *,
        failure_threshold: int = 3,
        reopen_initial_s: float = 5.0,
        reopen_cap_s: float = 300.0,
        clock: Callable[[], float] = utc_now_s,
    ):
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        self.live = live
        self.fallback = fallback
        self.failure_threshold = failure_threshold
        self.reopen_initial_s = reopen_initial_s
        self.reopen_cap_s = reopen_cap_s
        self.clock = clock

        self._failures = 0
        self._open_until: Optional[float] = None
        self._reopen_delay = reopen_initial_s
        self.last_source: str = "none"   # "live" | "synthetic"

    @property
    def is_open(self) -> bool:
        return self._open_until is not None and self.clock() < self._open_until

    @property
    def consecutive_failures(self) -> int:
        return self._failures

    async def klines(self, symbol, interval, *, start_ms=None, end_ms=None, limit=None) -> list[Candle]:
        kw = dict(start_ms=start_ms, end_ms=end_ms, limit=limit)
        return await self._call(
            "klines",
            lambda: self.live.klines(symbol, interval, **kw),
            lambda: self.fallback.klines(symbol, interval, **kw),
            symbol=symbol,
        )

    async def ticker(self, symbol: str) -> Ticker:
        return await self._call(
            "ticker",
            lambda: self.live.ticker(symbol),
            lambda: self.fallback.ticker(symbol),
            symbol=symbol,
        )

    async def _call(self, op: str, live_fn, fallback_fn, *, symbol: str):
        if self.is_open:
            self.last_source = "synthetic"
            return await fallback_fn()
        try:
            result = await live_fn()
        except FeedUnavailable as e:
            self._record_failure(op, symbol, e)
            self.last_source = "synthetic"
            return await fallback_fn()
        if self._failures or self._open_until is not None:
            log.info("feed_recovered", op=op, symbol=symbol, after_failures=self._failures)
        self._failures = 0
        self._open_until = None
        self._reopen_delay = self.reopen_initial_s
        self.last_source = "live"
        return result

    def _record_failure(self, op: str, symbol: str, err: Exception) -> None:
        self._failures += 1
        log.warning("feed_unavailable_fallback", op=op, symbol=symbol, err=str(err), failures=self._failures)
        if self._failures >= self.failure_threshold:
            self._open_until = self.clock() + self._reopen_delay
            log.warning("feed_circuit_open", reopen_in_s=round(self._reopen_delay, 3), failures=self._failures)
            self._reopen_delay = next_backoff(self._reopen_delay, self.reopen_cap_s)
