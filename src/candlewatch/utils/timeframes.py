from __future__ import annotations

from dataclasses import dataclass

_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86_400, "w": 604_800, "M": 2_592_000}


def interval_seconds(interval: str) -> int:
    """
    Binance interval string -> seconds ("15m" -> 900, "1M" -> 30 days).
    Case matters: "m" is minutes, "M" is months.
    """
    if len(interval) < 2 or interval[-1] not in _UNIT_SECONDS:
        raise ValueError(f"unsupported interval: {interval!r}")
    try:
        n = int(interval[:-1])
    except ValueError as e:
        raise ValueError(f"unsupported interval: {interval!r}") from e
    if n <= 0:
        raise ValueError(f"unsupported interval: {interval!r}")
    return n * _UNIT_SECONDS[interval[-1]]


@dataclass(frozen=True, slots=True)
class Timeframe:
    interval: str
    limit: int   # candles shown in the recent view


# interval -> how many recent candles the live table keeps
TIMEFRAMES: dict[str, Timeframe] = {
    "1m": Timeframe("1m", 10),
    "15m": Timeframe("15m", 10),
    "1h": Timeframe("1h", 10),
    "4h": Timeframe("4h", 10),
    "1d": Timeframe("1d", 15),
    "1M": Timeframe("1M", 10),
}


def timeframe_for(interval: str) -> Timeframe:
    tf = TIMEFRAMES.get(interval)
    if tf is None:
        interval_seconds(interval)  # validates
        tf = Timeframe(interval, 10)
    return tf
