from __future__ import annotations

from typing import Any, Sequence

from candlewatch.errors import MalformedFeedData
from candlewatch.utils.types import Candle, Ticker


def _num(v: Any, what: str) -> float:
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise MalformedFeedData(f"non-numeric {what}: {v!r}") from e


def parse_kline(row: Sequence[Any]) -> Candle:
    """
    Binance kline row -> Candle.

    Row layout (spot and USD-M futures alike):
      [0] open time (ms)   [1] open   [2] high   [3] low   [4] close   [5] volume
      [6] close time  [7] quote volume  ... (ignored)
    Prices arrive as strings ("43250.10").
    """
    if not isinstance(row, (list, tuple)) or len(row) < 6:
        raise MalformedFeedData(f"kline row too short: {str(row)[:120]}")
    ts = row[0]
    if not isinstance(ts, (int, float)):
        ts = _num(ts, "open time")
    # ms -> s (tolerate seconds too)
    epoch = int(ts // 1000) if ts > 1e11 else int(ts)
    # high/low are deliberately not cross-checked; high < low passes through
    return Candle(
        epoch=epoch,
        open=_num(row[1], "open"),
        high=_num(row[2], "high"),
        low=_num(row[3], "low"),
        close=_num(row[4], "close"),
        volume=_num(row[5], "volume"),
    )


def parse_klines(rows: Any) -> list[Candle]:
    if not isinstance(rows, list):
        # Binance error bodies look like {"code": -1121, "msg": "Invalid symbol."}
        raise MalformedFeedData(f"expected kline array, got: {str(rows)[:200]}")
    return [parse_kline(r) for r in rows]


def parse_ticker(m: dict) -> Ticker:
    """
    /ticker/24hr payload -> Ticker. Required fields:
      symbol, lastPrice, priceChange, priceChangePercent, highPrice, lowPrice,
      openPrice, volume
    """
    if not isinstance(m, dict):
        raise MalformedFeedData(f"expected ticker object, got: {str(m)[:200]}")
    sym = m.get("symbol")
    if not sym:
        raise MalformedFeedData(f"ticker without symbol: {str(m)[:200]}")
    return Ticker(
        symbol=str(sym),
        last_price=_num(m.get("lastPrice"), "lastPrice"),
        price_change=_num(m.get("priceChange"), "priceChange"),
        price_change_percent=_num(m.get("priceChangePercent"), "priceChangePercent"),
        high_price=_num(m.get("highPrice"), "highPrice"),
        low_price=_num(m.get("lowPrice"), "lowPrice"),
        open_price=_num(m.get("openPrice"), "openPrice"),
        volume=_num(m.get("volume"), "volume"),
    )
