from __future__ import annotations

from dataclasses import dataclass
from typing import TypedDict, Literal

# ---- feed-level primitives ----

@dataclass(slots=True, frozen=True)
class Candle:
    """
    One OHLCV sample. `epoch` is the candle open time in UNIX seconds.
    """
    epoch: int
    open: float
    high: float
    low: float
    close: float
    volume: float

@dataclass(slots=True, frozen=True)
class Ticker:
    """24h rolling ticker snapshot for one symbol."""
    symbol: str
    last_price: float
    price_change: float
    price_change_percent: float
    high_price: float
    low_price: float
    open_price: float
    volume: float
    synthetic: bool = False   # fabricated by the fallback generator, never a live quote

# ---- alerting domain ----

class AlertFired(TypedDict, total=False):
    symbol: str
    rule_id: str
    direction: Literal["above", "below"]
    target_price: float
    current_price: float
    ts: float
    message: str
