from __future__ import annotations

import time
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

UTC = timezone.utc

# --- fast, allocation-free time helpers ---

def utc_now_s() -> float:
    """Unix epoch seconds (float)."""
    return time.time()

def resolve_tz(tz: tzinfo | str | None) -> tzinfo:
    """Accept a tzinfo, an IANA name ("Asia/Dhaka") or None (UTC)."""
    if tz is None:
        return UTC
    if isinstance(tz, str):
        return UTC if tz.upper() == "UTC" else ZoneInfo(tz)
    return tz

def local_dt(ts: float | int, tz: tzinfo | str | None = None) -> datetime:
    """Epoch seconds -> aware datetime in the reference timezone."""
    return datetime.fromtimestamp(float(ts), tz=resolve_tz(tz))

def parse_local_ms(text: str, tz: tzinfo | str | None = None) -> int:
    """
    ISO date or datetime ("2024-01-05", "2024-01-05T08:00") -> epoch ms.
    Naive values are taken in the reference timezone.
    """
    dt = datetime.fromisoformat(text.strip())
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=resolve_tz(tz))
    return int(dt.timestamp() * 1000)

# --- calendar-month helpers (history view) ---

def month_range_ms(year: int, month: int, tz: tzinfo | str | None = None) -> tuple[int, int]:
    """
    [first instant of the month, first instant of next month - 1ms] in epoch ms,
    with month boundaries taken in the reference timezone.
    """
    if not 1 <= month <= 12:
        raise ValueError(f"month must be in 1..12, got {month}")
    z = resolve_tz(tz)
    start = datetime(year, month, 1, tzinfo=z)
    nxt = datetime(year + 1, 1, 1, tzinfo=z) if month == 12 else datetime(year, month + 1, 1, tzinfo=z)
    return int(start.timestamp() * 1000), int(nxt.timestamp() * 1000) - 1

