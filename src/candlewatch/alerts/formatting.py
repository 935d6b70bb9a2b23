from __future__ import annotations
from datetime import datetime
from zoneinfo import ZoneInfo

from candlewatch.data.daily import DayBucket
from candlewatch.utils.types import Candle

def _fmt_ts(ts_s: float, tz_name: str) -> str:
    tz = ZoneInfo(tz_name)
    return datetime.fromtimestamp(ts_s, tz).strftime("%Y-%m-%d %H:%M:%S %Z")

def format_price(px: float) -> str:
    if px == 0:
        return "N/A"
    # small-cap coins need more decimals
    return f"${px:,.2f}" if px >= 1 else f"${px:,.6f}"

def format_alert_pretty(evt: dict, tz_name: str = "UTC") -> str:
    sym    = evt.get("symbol", "?")
    dirn   = evt.get("direction", "above")  # "above" | "below"
    target = float(evt.get("target_price", 0.0))
    curr   = float(evt.get("current_price", 0.0))
    ts     = float(evt.get("ts", 0.0))

    arrow = "↑" if dirn == "above" else "↓"
    verb  = "rose above" if dirn == "above" else "fell below"
    return (
        f"[{sym} {dirn.upper()}] {_fmt_ts(ts, tz_name)} {arrow} {verb} "
        f"{format_price(target)}  |  now {format_price(curr)} "
        f"(rule {evt.get('rule_id', '?')})"
    )

def format_day_line(b: DayBucket) -> str:
    """One-line summary of a day bucket for console output."""
    parts = [f"{b.date.isoformat()} {b.weekday[:3]}"]
    for name, r in b.sessions.items():
        parts.append(f"{name}={format_price(r.high)}/{format_price(r.low)}")
    parts.append(f"day={format_price(b.daily_high)}/{format_price(b.daily_low)}")
    return "  ".join(parts)

def format_candle_line(c: Candle, tz_name: str = "UTC") -> str:
    return (
        f"{_fmt_ts(c.epoch, tz_name)}  O={format_price(c.open)} H={format_price(c.high)} "
        f"L={format_price(c.low)} C={format_price(c.close)} V={c.volume:,.2f}"
    )
