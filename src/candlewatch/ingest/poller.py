from __future__ import annotations

import asyncio
from dataclasses import dataclass, field, replace
from datetime import tzinfo
from typing import Callable, Optional, Sequence

import structlog

from candlewatch.data.daily import DayBucket, aggregate, recent_candles
from candlewatch.ingest.binance_rest import MAX_KLINES_LIMIT
from candlewatch.ingest.source import DataSource
from candlewatch.utils.backoff import jitter
from candlewatch.utils.sessions import DEFAULT_SESSIONS, Session
from candlewatch.utils.time import local_dt, month_range_ms, utc_now_s
from candlewatch.utils.timeframes import timeframe_for
from candlewatch.utils.types import Candle, Ticker

log = structlog.get_logger("poller")


@dataclass(slots=True, frozen=True)
class FeedFilter:
    """
    What the views are currently showing. Responses are keyed on it.

    month == 0 means "follow the current month" (rolled over on every history
    poll). start_ms/end_ms, when both set, replace the timeframe's candle limit
    with an explicit window for the recent-candles view.
    """
    symbol: str
    interval: str = "1h"     # recent-candles view
    year: int = 0
    month: int = 0           # history view (1..12, 0 = current)
    start_ms: Optional[int] = None
    end_ms: Optional[int] = None

    @property
    def history_key(self) -> tuple[str, int, int]:
        return (self.symbol, self.year, self.month)

    @property
    def candles_key(self) -> tuple:
        return (self.symbol, self.interval, self.start_ms, self.end_ms)


@dataclass(slots=True)
class PollerConfig:
    """
    ticker_poll_s:   live price cadence (feeds the alert evaluator)
    candles_poll_s:  recent-candles cadence (limit from the timeframe table)
    history_poll_s:  full-month history cadence (feeds the day aggregation)
    history_interval: candle width used for the month history
    """
    ticker_poll_s: float = 1.0
    candles_poll_s: float = 30.0
    history_poll_s: float = 300.0
    history_interval: str = "1h"
    sessions: Sequence[Session] = field(default_factory=lambda: DEFAULT_SESSIONS)
    tz: tzinfo | str | None = None


class FeedPoller:
    """
    Three independent polling loops against one DataSource:

      ticker  → ("price", symbol, last_price, ts) onto q_prices (live quotes only)
      candles → latest N candles kept in `recent`
                and ("candles", (symbol, interval), candles) onto q_candles
      history → month of candles → aggregate() → DayBuckets kept in `days`
                and ("days", history_key, buckets) onto q_days

    Every published result replaces the previous one (last write wins). A
    response whose filter no longer matches the current one (the user switched
    symbol or month while it was in flight) is discarded instead.
    """
    def __init__(
        self,
        source: DataSource,
        flt: FeedFilter,
        cfg: Optional[PollerConfig] = None,
        q_prices: Optional[asyncio.Queue] = None,
        q_days: Optional[asyncio.Queue] = None,
        q_candles: Optional[asyncio.Queue] = None,
        clock: Callable[[], float] = utc_now_s,
    ):
        self.source = source
        self.cfg = cfg or PollerConfig()
        self.q_prices = q_prices
        self.q_days = q_days
        self.q_candles = q_candles
        self.clock = clock

        self._follow_month = flt.month == 0
        self._filter = self._current_month(flt) if self._follow_month else flt

        self.ticker: Optional[Ticker] = None
        self.recent: list[Candle] = []
        self.days: list[DayBucket] = []
        self.stale_discards = 0

        self._stop = asyncio.Event()
        self._wake = {name: asyncio.Event() for name in ("ticker", "candles", "history")}
        self._tasks: list[asyncio.Task] = []

    @property
    def filter(self) -> FeedFilter:
        return self._filter

    @property
    def follows_current_month(self) -> bool:
        return self._follow_month

    def _current_month(self, flt: FeedFilter) -> FeedFilter:
        now = local_dt(self.clock(), self.cfg.tz)
        return replace(flt, year=now.year, month=now.month)

    def set_filter(self, **changes) -> FeedFilter:
        """
        Change symbol / interval / window / year / month and wake the affected
        loops. month=0 switches back to following the current month.
        In-flight requests are not cancelled; their results are dropped if stale.
        """
        if "month" in changes or "year" in changes:
            self._follow_month = changes.get("month", self._filter.month) == 0
        new = replace(self._filter, **changes)
        if self._follow_month:
            new = self._current_month(new)
        if new == self._filter:
            return new
        old = self._filter
        self._filter = new
        log.info("feed_filter_changed", old=old.history_key, new=new.history_key, interval=new.interval)
        if new.symbol != old.symbol:
            self.ticker = None
            self._wake["ticker"].set()
        if new.candles_key != old.candles_key:
            self.recent = []
            self._wake["candles"].set()
        if new.history_key != old.history_key:
            self._wake["history"].set()
        return new

    # -------------------------------------------------------------------------
    # lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        self._stop.clear()
        self._tasks = [
            asyncio.create_task(self._every("ticker", self.cfg.ticker_poll_s, self.poll_ticker), name="poll-ticker"),
            asyncio.create_task(self._every("candles", self.cfg.candles_poll_s, self.poll_candles), name="poll-candles"),
            asyncio.create_task(self._every("history", self.cfg.history_poll_s, self.poll_history), name="poll-history"),
        ]
        try:
            await asyncio.gather(*self._tasks)
        finally:
            self._stop.set()
            for task in self._tasks:
                if not task.done():
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass

    async def stop(self) -> None:
        self._stop.set()
        for ev in self._wake.values():
            ev.set()

    async def _every(self, name: str, interval_s: float, fn) -> None:
        wake = self._wake[name]
        while not self._stop.is_set():
            try:
                await fn()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                log.warning("poll_failed", loop=name, err=str(e))
            try:
                await asyncio.wait_for(wake.wait(), timeout=jitter(interval_s, ratio=0.05))
            except asyncio.TimeoutError:
                pass
            wake.clear()

    # -------------------------------------------------------------------------
    # single polls (also usable one-shot)
    # -------------------------------------------------------------------------

    async def poll_ticker(self) -> Optional[Ticker]:
        flt = self._filter
        t = await self.source.ticker(flt.symbol)
        if self._filter.symbol != flt.symbol:
            self._discard("ticker", flt)
            return None
        self.ticker = t
        if t.synthetic:
            # fabricated prices are shown but never evaluated against alert rules
            log.debug("synthetic_price_not_published", symbol=flt.symbol)
            return t
        self._publish(self.q_prices, ("price", flt.symbol, t.last_price, self.clock()), "prices")
        return t

    async def poll_candles(self) -> list[Candle]:
        flt = self._filter
        tf = timeframe_for(flt.interval)
        if flt.start_ms is not None and flt.end_ms is not None:
            candles = await self.source.klines(
                flt.symbol, tf.interval, start_ms=flt.start_ms, end_ms=flt.end_ms, limit=MAX_KLINES_LIMIT,
            )
            limit = None
        else:
            candles = await self.source.klines(flt.symbol, tf.interval, limit=tf.limit)
            limit = tf.limit
        if self._filter.candles_key != flt.candles_key:
            self._discard("candles", flt)
            return []
        self.recent = recent_candles(candles, limit)
        self._publish(self.q_candles, ("candles", (flt.symbol, flt.interval), self.recent), "candles")
        return self.recent

    async def poll_history(self) -> list[DayBucket]:
        if self._follow_month:
            rolled = self._current_month(self._filter)
            if rolled != self._filter:
                log.info("history_month_rolled", old=self._filter.history_key, new=rolled.history_key)
                self._filter = rolled
        flt = self._filter
        start_ms, end_ms = month_range_ms(flt.year, flt.month, self.cfg.tz)
        candles = await self.source.klines(
            flt.symbol, self.cfg.history_interval, start_ms=start_ms, end_ms=end_ms, limit=MAX_KLINES_LIMIT,
        )
        if self._filter.history_key != flt.history_key:
            self._discard("history", flt)
            return []
        buckets = aggregate(candles, self.cfg.sessions, self.cfg.tz)
        self.days = buckets
        log.info("history_aggregated", key=flt.history_key, candles=len(candles), days=len(buckets))
        self._publish(self.q_days, ("days", flt.history_key, buckets), "days")
        return buckets

    def _publish(self, q: Optional[asyncio.Queue], item: tuple, what: str) -> None:
        if q is None:
            return
        try:
            q.put_nowait(item)
        except asyncio.QueueFull:
            log.info(f"{what}_queue_full_drop", key=item[1])

    def _discard(self, loop: str, flt: FeedFilter) -> None:
        self.stale_discards += 1
        log.info("stale_response_discarded", loop=loop, requested=flt.history_key, current=self._filter.history_key)
