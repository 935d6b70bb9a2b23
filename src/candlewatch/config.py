from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional
from zoneinfo import ZoneInfoNotFoundError

from candlewatch.alerts.rules import Direction, parse_rules_env
from candlewatch.ingest.binance_rest import BASE_URLS
from candlewatch.utils.sessions import DEFAULT_SESSIONS, Session, parse_sessions
from candlewatch.utils.time import parse_local_ms, resolve_tz
from candlewatch.utils.timeframes import interval_seconds


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_tz(name: str, default: str = "UTC") -> str:
    raw = (os.getenv(name) or default).strip()
    try:
        resolve_tz(raw)
    except (ZoneInfoNotFoundError, ValueError, OSError) as e:
        raise ValueError(f"{name} is not a known timezone: {raw!r}") from e
    return raw


@dataclass(slots=True)
class AppConfig:
    symbol: str = "BTCUSDT"
    market: str = "futures"                 # "spot" | "futures"
    timeframe: str = "1h"
    candles_start_ms: Optional[int] = None   # explicit recent-candles window
    candles_end_ms: Optional[int] = None
    reference_tz: str = "UTC"
    sessions: tuple[Session, ...] = DEFAULT_SESSIONS

    ticker_poll_s: float = 1.0
    candles_poll_s: float = 30.0
    history_poll_s: float = 300.0
    history_interval: str = "1h"
    http_timeout_s: float = 10.0

    # feed failover
    failure_threshold: int = 3
    reopen_initial_s: float = 5.0
    reopen_cap_s: float = 300.0

    alert_cooldown_s: float = 300.0
    alert_noise_floor: float = 0.005
    alerts: list[tuple[Direction, float]] = field(default_factory=list)
    alert_tz: str = "UTC"

    export_dir: Optional[str] = None
    log_level: str = "INFO"
    log_format: str = "console"


def config_from_env() -> AppConfig:
    """
    Build AppConfig from the process environment (call load_dotenv() first).
    Raises ValueError on malformed values so startup fails loudly.
    """
    market = os.getenv("MARKET", "futures").strip().lower()
    if market not in BASE_URLS:
        raise ValueError(f"MARKET must be one of {sorted(BASE_URLS)}, got {market!r}")

    timeframe = os.getenv("TIMEFRAME", "1h").strip()
    interval_seconds(timeframe)
    history_interval = os.getenv("HISTORY_INTERVAL", "1h").strip()
    interval_seconds(history_interval)

    reference_tz = _env_tz("REFERENCE_TZ")
    alert_tz = _env_tz("ALERT_TZ")

    start_raw = os.getenv("CANDLES_START", "").strip()
    end_raw = os.getenv("CANDLES_END", "").strip()
    if bool(start_raw) != bool(end_raw):
        raise ValueError("CANDLES_START and CANDLES_END must be set together")
    candles_start_ms = parse_local_ms(start_raw, reference_tz) if start_raw else None
    candles_end_ms = parse_local_ms(end_raw, reference_tz) if end_raw else None
    if candles_start_ms is not None and candles_end_ms < candles_start_ms:
        raise ValueError("CANDLES_END is before CANDLES_START")

    sessions_env = os.getenv("SESSIONS", "").strip()
    sessions = parse_sessions(sessions_env) if sessions_env else DEFAULT_SESSIONS

    return AppConfig(
        symbol=os.getenv("SYMBOL", "BTCUSDT").strip().upper(),
        market=market,
        timeframe=timeframe,
        candles_start_ms=candles_start_ms,
        candles_end_ms=candles_end_ms,
        reference_tz=reference_tz,
        sessions=sessions,
        ticker_poll_s=_env_float("TICKER_POLL_S", 1.0),
        candles_poll_s=_env_float("CANDLES_POLL_S", 30.0),
        history_poll_s=_env_float("HISTORY_POLL_S", 300.0),
        history_interval=history_interval,
        http_timeout_s=_env_float("HTTP_TIMEOUT_S", 10.0),
        failure_threshold=_env_int("FEED_FAILURE_THRESHOLD", 3),
        reopen_initial_s=_env_float("FEED_REOPEN_INITIAL_S", 5.0),
        reopen_cap_s=_env_float("FEED_REOPEN_CAP_S", 300.0),
        alert_cooldown_s=_env_float("ALERT_COOLDOWN_S", 300.0),
        alert_noise_floor=_env_float("ALERT_NOISE_FLOOR", 0.005),
        alerts=parse_rules_env(os.getenv("ALERTS", "")),
        alert_tz=alert_tz,
        export_dir=os.getenv("EXPORT_DIR") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").strip().upper(),
        log_format=os.getenv("LOG_FORMAT", "console").strip().lower(),
    )
