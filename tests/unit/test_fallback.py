import pytest

from candlewatch.data.fallback import (
    BASE_PRICES, DEFAULT_BASE_PRICE, base_price_for, fallback_ticker, generate_fallback,
)

def test_base_prices():
    assert base_price_for("btcusdt") == BASE_PRICES["BTCUSDT"] == 43000.0
    assert base_price_for("NOPEUSDT") == DEFAULT_BASE_PRICE

def test_generate_fallback_shape_and_invariants():
    candles = generate_fallback(43000.0, 24, interval_s=3600, end_epoch=1_700_003_000, seed=1)
    assert len(candles) == 24
    epochs = [c.epoch for c in candles]
    assert epochs[-1] == 1_700_002_800             # aligned down to the hour
    assert all(b - a == 3600 for a, b in zip(epochs, epochs[1:]))
    for c in candles:
        assert c.high >= max(c.open, c.close)
        assert c.low <= min(c.open, c.close)
        assert c.low > 0 and c.volume > 0
        assert abs(c.open - 43000.0) / 43000.0 <= 0.01 + 1e-9

def test_generate_fallback_seeded_is_reproducible():
    a = generate_fallback(100.0, 5, end_epoch=1_700_000_000, seed=42)
    b = generate_fallback(100.0, 5, end_epoch=1_700_000_000, seed=42)
    assert a == b

def test_generate_fallback_edges():
    assert generate_fallback(100.0, 0) == []
    with pytest.raises(ValueError):
        generate_fallback(0.0, 5)
    with pytest.raises(ValueError):
        generate_fallback(100.0, 5, interval_s=0)

def test_fallback_ticker():
    t = fallback_ticker("ethusdt", seed=3)
    assert t.symbol == "ETHUSDT"
    assert t.synthetic is True
    assert t.low_price <= t.last_price <= t.high_price
    assert t.low_price <= t.open_price <= t.high_price
    assert abs(t.last_price - 2500.0) / 2500.0 <= 0.025 + 1e-9
    assert t.volume > 0
