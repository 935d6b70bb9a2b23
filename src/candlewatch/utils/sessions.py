from __future__ import annotations

from dataclasses import dataclass
from datetime import tzinfo
from typing import Iterable

from candlewatch.utils.time import local_dt

# Reference intraday windows (hours in the reference timezone, end exclusive).
MORNING = (4, 8)
AFTERNOON = (12, 15)
NIGHT = (19, 1)   # wraps past midnight


@dataclass(frozen=True, slots=True)
class Session:
    """
    Named hour-of-day window [start_hour, end_hour).

    start_hour > end_hour wraps midnight (19 -> 1 covers 19:00..00:59).
    start_hour == end_hour covers the whole day.
    """
    name: str
    start_hour: int
    end_hour: int

    def __post_init__(self) -> None:
        for h in (self.start_hour, self.end_hour):
            if not 0 <= h < 24:
                raise ValueError(f"session hours must be in [0, 24), got {h} for {self.name!r}")

    @property
    def wraps(self) -> bool:
        return self.start_hour > self.end_hour

    def contains_hour(self, hour: int) -> bool:
        if self.start_hour == self.end_hour:
            return True
        if self.wraps:
            return hour >= self.start_hour or hour < self.end_hour
        return self.start_hour <= hour < self.end_hour


DEFAULT_SESSIONS: tuple[Session, ...] = (
    Session("morning", *MORNING),
    Session("afternoon", *AFTERNOON),
    Session("night", *NIGHT),
)


def classify_hour(hour: int, sessions: Iterable[Session] = DEFAULT_SESSIONS) -> frozenset[str]:
    return frozenset(s.name for s in sessions if s.contains_hour(hour))


def classify(
    ts: float | int,
    sessions: Iterable[Session] = DEFAULT_SESSIONS,
    tz: tzinfo | str | None = None,
) -> frozenset[str]:
    """
    Names of every session whose window contains the hour of `ts` (epoch seconds)
    in the reference timezone. Calendar date plays no part: a 00:30 candle is
    "night" regardless of which evening the window opened on.
    """
    return classify_hour(local_dt(ts, tz).hour, sessions)


def parse_sessions(spec: str) -> tuple[Session, ...]:
    """
    Parse "morning=4-8,afternoon=12-15,night=19-1" into Session objects.
    """
    out: list[Session] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            name, hours = part.split("=", 1)
            start, end = hours.split("-", 1)
            out.append(Session(name.strip(), int(start), int(end)))
        except ValueError as e:
            raise ValueError(f"bad session spec {part!r}: {e}") from e
    if not out:
        raise ValueError("session spec is empty")
    names = [s.name for s in out]
    if len(set(names)) != len(names):
        raise ValueError(f"duplicate session names in {spec!r}")
    return tuple(out)

