from __future__ import annotations

import csv
import io
import os
from datetime import tzinfo
from typing import Iterable, Sequence

from candlewatch.data.daily import DayBucket
from candlewatch.utils.sessions import DEFAULT_SESSIONS, Session
from candlewatch.utils.time import local_dt
from candlewatch.utils.types import Candle

# Column order is consumed downstream; do not reorder.
# With DEFAULT_SESSIONS this yields:
# Date,Day,Morning High,Morning Low,Afternoon High,Afternoon Low,Night High,Night Low,Daily High,Daily Low


def header(sessions: Sequence[Session] = DEFAULT_SESSIONS) -> list[str]:
    cols = ["Date", "Day"]
    for s in sessions:
        label = s.name.capitalize()
        cols += [f"{label} High", f"{label} Low"]
    cols += ["Daily High", "Daily Low"]
    return cols


def _fmt(v: float) -> str:
    # repr-style floats; 0 stays "0" for "no data"
    return "0" if v == 0 else repr(float(v))


def row(bucket: DayBucket, sessions: Sequence[Session] = DEFAULT_SESSIONS) -> list[str]:
    out = [bucket.date.isoformat(), bucket.weekday]
    for s in sessions:
        r = bucket.session(s.name)
        out += [_fmt(r.high), _fmt(r.low)] if r.has_data else ["0", "0"]
    out += [_fmt(bucket.daily_high), _fmt(bucket.daily_low)]
    return out


def to_csv(buckets: Iterable[DayBucket], sessions: Sequence[Session] = DEFAULT_SESSIONS) -> str:
    """Flat CSV text (header + one line per bucket, in the given order)."""
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(header(sessions))
    for b in buckets:
        w.writerow(row(b, sessions))
    return buf.getvalue()


def export_filename(symbol: str, year: int, month: int) -> str:
    return f"{symbol}_{month}_{year}_analysis.csv"


# ---- raw candles (recent-candles view) ----

OHLCV_HEADER = ["Date", "Time", "Open", "High", "Low", "Close", "Volume"]


def ohlcv_row(c: Candle, tz: tzinfo | str | None = None) -> list[str]:
    dt = local_dt(c.epoch, tz)
    return [
        dt.date().isoformat(),
        dt.strftime("%H:%M"),
        repr(float(c.open)),
        repr(float(c.high)),
        repr(float(c.low)),
        repr(float(c.close)),
        repr(float(c.volume)),
    ]


def ohlcv_to_csv(candles: Iterable[Candle], tz: tzinfo | str | None = None) -> str:
    buf = io.StringIO()
    w = csv.writer(buf, lineterminator="\n")
    w.writerow(OHLCV_HEADER)
    for c in candles:
        w.writerow(ohlcv_row(c, tz))
    return buf.getvalue()


def ohlcv_filename(symbol: str, timeframe: str) -> str:
    return f"{symbol}_ohlcv_{timeframe}.csv"


def _atomic_write(path: str, text: str) -> str:
    # tmp + rename so readers never see a half file
    tmp = f"{path}.tmp"
    with open(tmp, "w", encoding="utf-8", newline="") as f:
        f.write(text)
    os.replace(tmp, path)
    return path


def write_csv(
    path: str,
    buckets: Iterable[DayBucket],
    sessions: Sequence[Session] = DEFAULT_SESSIONS,
) -> str:
    return _atomic_write(path, to_csv(buckets, sessions))


def write_ohlcv_csv(path: str, candles: Iterable[Candle], tz: tzinfo | str | None = None) -> str:
    return _atomic_write(path, ohlcv_to_csv(candles, tz))
