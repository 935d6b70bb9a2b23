from __future__ import annotations

from typing import Optional

import numpy as np

from candlewatch.utils.time import utc_now_s
from candlewatch.utils.types import Candle, Ticker

# Seed prices used when the provider is unreachable.
BASE_PRICES: dict[str, float] = {
    "BTCUSDT": 43000.0,
    "ETHUSDT": 2500.0,
    "BNBUSDT": 300.0,
    "SOLUSDT": 100.0,
    "XRPUSDT": 0.6,
    "ADAUSDT": 0.5,
    "DOGEUSDT": 0.08,
    "MATICUSDT": 0.9,
}
DEFAULT_BASE_PRICE = 100.0


def base_price_for(symbol: str) -> float:
    return BASE_PRICES.get(symbol.upper(), DEFAULT_BASE_PRICE)


def generate_fallback(
    base_price: float,
    count: int,
    interval_s: int = 3600,
    end_epoch: Optional[float] = None,
    seed: Optional[int] = None,
    volatility: float = 0.02,
) -> list[Candle]:
    """
    Synthetic candles around `base_price`.

    - epochs strictly increase by `interval_s`, the last one aligned down to
      the interval boundary of `end_epoch` (default: now)
    - open jitters ±volatility/2 around base, close ±volatility/2 around open
    - high >= max(open, close), low <= min(open, close), all prices > 0
    """
    if base_price <= 0:
        raise ValueError("base_price must be > 0")
    if interval_s <= 0:
        raise ValueError("interval_s must be >= 1")
    if count <= 0:
        return []

    rng = np.random.default_rng(seed)
    end = int(utc_now_s() if end_epoch is None else end_epoch)
    last = (end // interval_s) * interval_s
    epochs = last - interval_s * np.arange(count - 1, -1, -1, dtype=np.int64)

    opens = base_price * (1.0 + (rng.random(count) - 0.5) * volatility)
    closes = opens * (1.0 + (rng.random(count) - 0.5) * volatility)
    highs = np.maximum(opens, closes) * (1.0 + rng.random(count) * 0.01)
    lows = np.minimum(opens, closes) * (1.0 - rng.random(count) * 0.01)
    vols = rng.random(count) * 1000.0 + 100.0

    return [
        Candle(
            epoch=int(epochs[i]),
            open=float(opens[i]),
            high=float(highs[i]),
            low=float(lows[i]),
            close=float(closes[i]),
            volume=float(vols[i]),
        )
        for i in range(count)
    ]


def fallback_ticker(symbol: str, seed: Optional[int] = None, volatility: float = 0.05) -> Ticker:
    """Synthetic 24h ticker jittered around the symbol's base price."""
    rng = np.random.default_rng(seed)
    base = base_price_for(symbol)
    last = base * (1.0 + float(rng.random() - 0.5) * volatility)
    change = float(rng.random() - 0.5) * base * volatility
    open_ = last - change
    high = max(last, open_) * (1.0 + float(rng.random()) * 0.03)
    low = min(last, open_) * (1.0 - float(rng.random()) * 0.03)
    return Ticker(
        symbol=symbol.upper(),
        last_price=last,
        price_change=change,
        price_change_percent=change / open_ * 100.0,
        high_price=high,
        low_price=low,
        open_price=open_,
        volume=float(rng.integers(100_000_000, 5_100_000_000)),
        synthetic=True,
    )
