from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, tzinfo
from typing import Dict, Iterable, Optional, Sequence

import structlog

from candlewatch.utils.sessions import DEFAULT_SESSIONS, Session
from candlewatch.utils.time import local_dt, resolve_tz
from candlewatch.utils.types import Candle

log = structlog.get_logger("daily")

# value reported for an extremum that never saw a candle
NO_DATA = 0.0


@dataclass(slots=True)
class SessionRange:
    high: float = NO_DATA
    low: float = NO_DATA

    @property
    def has_data(self) -> bool:
        return not (self.high == NO_DATA and self.low == NO_DATA)


@dataclass(slots=True)
class DayBucket:
    """
    Per-calendar-date extrema: one SessionRange per configured session plus
    the full-day high/low across every candle of that date.
    """
    date: date
    sessions: Dict[str, SessionRange] = field(default_factory=dict)
    daily_high: float = NO_DATA
    daily_low: float = NO_DATA

    @property
    def weekday(self) -> str:
        return calendar.day_name[self.date.weekday()]

    def session(self, name: str) -> SessionRange:
        return self.sessions[name]


@dataclass(slots=True)
class _Acc:
    # running extrema; +/-inf until the first candle lands
    h: float = -math.inf
    l: float = math.inf

    def update(self, high: float, low: float) -> None:
        if high > self.h:
            self.h = high
        if low < self.l:
            self.l = low

    def finish(self) -> SessionRange:
        if self.h == -math.inf:
            return SessionRange()
        return SessionRange(high=self.h, low=self.l)


@dataclass(slots=True)
class _DayAcc:
    day: _Acc = field(default_factory=_Acc)
    sessions: Dict[str, _Acc] = field(default_factory=dict)


def aggregate(
    candles: Iterable[Candle],
    sessions: Sequence[Session] = DEFAULT_SESSIONS,
    tz: tzinfo | str | None = None,
    descending: bool = True,
) -> list[DayBucket]:
    """
    Fold a candle batch into one DayBucket per calendar date (reference tz).

    Pure and order-independent: each call builds fresh accumulators, and max/min
    are commutative, so shuffling or duplicating candles does not change the
    result. Sessions that never saw a candle report NO_DATA for high and low.

    Candles with high < low are not validated; they are folded as-is.
    """
    z = resolve_tz(tz)
    days: Dict[date, _DayAcc] = {}
    malformed = 0

    for c in candles:
        dt = local_dt(c.epoch, z)
        d = dt.date()
        acc = days.get(d)
        if acc is None:
            acc = _DayAcc(sessions={s.name: _Acc() for s in sessions})
            days[d] = acc

        if c.high < c.low:
            malformed += 1

        acc.day.update(c.high, c.low)
        hour = dt.hour
        for s in sessions:
            if s.contains_hour(hour):
                acc.sessions[s.name].update(c.high, c.low)

    if malformed:
        log.warning("malformed_candles_passthrough", count=malformed)

    out: list[DayBucket] = []
    for d, acc in days.items():
        day = acc.day.finish()
        out.append(DayBucket(
            date=d,
            sessions={name: a.finish() for name, a in acc.sessions.items()},
            daily_high=day.high,
            daily_low=day.low,
        ))
    out.sort(key=lambda b: b.date, reverse=descending)
    return out


def recent_candles(candles: Iterable[Candle], limit: Optional[int] = None) -> list[Candle]:
    """
    Newest-first view of a candle batch, de-duplicated by open time (the last
    occurrence of a repeated timestamp wins), truncated to `limit`.
    """
    by_epoch: Dict[int, Candle] = {}
    for c in candles:
        by_epoch[c.epoch] = c
    out = [by_epoch[e] for e in sorted(by_epoch, reverse=True)]
    if limit is not None:
        out = out[: max(0, int(limit))]
    return out
