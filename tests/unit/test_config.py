import pytest

from candlewatch.alerts.rules import Direction
from candlewatch.config import config_from_env
from candlewatch.errors import InvalidInput
from candlewatch.utils.sessions import DEFAULT_SESSIONS

ENV_KEYS = [
    "SYMBOL", "MARKET", "TIMEFRAME", "REFERENCE_TZ", "SESSIONS", "TICKER_POLL_S", "CANDLES_POLL_S",
    "HISTORY_POLL_S", "HISTORY_INTERVAL", "HTTP_TIMEOUT_S", "FEED_FAILURE_THRESHOLD",
    "FEED_REOPEN_INITIAL_S", "FEED_REOPEN_CAP_S", "ALERT_COOLDOWN_S", "ALERT_NOISE_FLOOR",
    "ALERTS", "ALERT_TZ", "EXPORT_DIR", "LOG_LEVEL", "LOG_FORMAT", "CANDLES_START", "CANDLES_END",
]

@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for k in ENV_KEYS:
        monkeypatch.delenv(k, raising=False)

def test_defaults():
    cfg = config_from_env()
    assert cfg.symbol == "BTCUSDT"
    assert cfg.market == "futures"
    assert cfg.timeframe == "1h"
    assert cfg.sessions == DEFAULT_SESSIONS
    assert cfg.alert_cooldown_s == 300.0
    assert cfg.alert_noise_floor == 0.005
    assert cfg.alerts == []
    assert cfg.export_dir is None

def test_overrides(monkeypatch):
    monkeypatch.setenv("SYMBOL", "ethusdt")
    monkeypatch.setenv("MARKET", "SPOT")
    monkeypatch.setenv("TIMEFRAME", "4h")
    monkeypatch.setenv("SESSIONS", "asia=0-8,london=8-16")
    monkeypatch.setenv("ALERTS", "above:3000,below:2000")
    monkeypatch.setenv("TICKER_POLL_S", "2.5")
    monkeypatch.setenv("FEED_FAILURE_THRESHOLD", "5")
    cfg = config_from_env()
    assert cfg.symbol == "ETHUSDT" and cfg.market == "spot" and cfg.timeframe == "4h"
    assert [s.name for s in cfg.sessions] == ["asia", "london"]
    assert cfg.alerts == [(Direction.ABOVE, 3000.0), (Direction.BELOW, 2000.0)]
    assert cfg.ticker_poll_s == 2.5
    assert cfg.failure_threshold == 5

@pytest.mark.parametrize("key,value", [
    ("MARKET", "margin"),
    ("TIMEFRAME", "7x"),
    ("TICKER_POLL_S", "fast"),
    ("FEED_FAILURE_THRESHOLD", "3.5"),
    ("SESSIONS", "night=19"),
    ("REFERENCE_TZ", "Mars/Olympus"),
    ("ALERT_TZ", "Not/AZone"),
    ("CANDLES_START", "2024-01-05"),
])
def test_bad_values_fail_loudly(monkeypatch, key, value):
    monkeypatch.setenv(key, value)
    with pytest.raises(ValueError):
        config_from_env()

def test_bad_alert_spec(monkeypatch):
    monkeypatch.setenv("ALERTS", "above:abc")
    with pytest.raises(InvalidInput):
        config_from_env()

def test_timezones_validated_and_kept(monkeypatch):
    monkeypatch.setenv("REFERENCE_TZ", "Asia/Dhaka")
    monkeypatch.setenv("ALERT_TZ", "America/Chicago")
    cfg = config_from_env()
    assert (cfg.reference_tz, cfg.alert_tz) == ("Asia/Dhaka", "America/Chicago")

def test_candle_window_in_reference_tz(monkeypatch):
    from datetime import datetime, timezone
    monkeypatch.setenv("REFERENCE_TZ", "Asia/Dhaka")
    monkeypatch.setenv("CANDLES_START", "2024-01-05")
    monkeypatch.setenv("CANDLES_END", "2024-01-06T12:00")
    cfg = config_from_env()
    assert cfg.candles_start_ms == int(datetime(2024, 1, 4, 18, tzinfo=timezone.utc).timestamp() * 1000)
    assert cfg.candles_end_ms == int(datetime(2024, 1, 6, 6, tzinfo=timezone.utc).timestamp() * 1000)

def test_candle_window_order_checked(monkeypatch):
    monkeypatch.setenv("CANDLES_START", "2024-01-06")
    monkeypatch.setenv("CANDLES_END", "2024-01-05")
    with pytest.raises(ValueError):
        config_from_env()
