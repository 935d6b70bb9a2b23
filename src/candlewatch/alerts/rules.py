# src/candlewatch/alerts/rules.py
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from candlewatch.errors import InvalidInput


class Direction(str, Enum):
    ABOVE = "above"
    BELOW = "below"


@dataclass(slots=True)
class AlertRule:
    """
    Fire when price crosses `target_price` in `direction`:
      ABOVE → price >= target, coming from below it
      BELOW → price <= target, coming from above it
    """
    id: str
    target_price: float
    direction: Direction
    enabled: bool = True
    last_fired_at: Optional[float] = None   # epoch seconds


@dataclass(slots=True)
class AlertPolicy:
    cooldown_seconds: float = 300.0   # 5 minutes per rule
    noise_floor: float = 0.005        # 0.5% move since the last fired price, across all rules


def parse_price(value: Any) -> float:
    """Accept numbers or numeric strings; anything else (or <= 0) is InvalidInput."""
    if isinstance(value, bool):
        raise InvalidInput(f"invalid alert price: {value!r}")
    if isinstance(value, str):
        value = value.strip()
    try:
        px = float(value)
    except (TypeError, ValueError) as e:
        raise InvalidInput(f"invalid alert price: {value!r}") from e
    if not math.isfinite(px) or px <= 0.0:
        raise InvalidInput(f"alert price must be a positive number, got {value!r}")
    return px


def parse_direction(value: Any) -> Direction:
    if isinstance(value, Direction):
        return value
    try:
        return Direction(str(value).strip().lower())
    except ValueError as e:
        raise InvalidInput(f"direction must be 'above' or 'below', got {value!r}") from e


def parse_rules_env(spec: str) -> list[tuple[Direction, float]]:
    """
    "above:50000,below:40000" -> [(ABOVE, 50000.0), (BELOW, 40000.0)]
    """
    out: list[tuple[Direction, float]] = []
    for part in spec.split(","):
        part = part.strip()
        if not part:
            continue
        if ":" not in part:
            raise InvalidInput(f"bad alert spec {part!r} (want direction:price)")
        d, px = part.split(":", 1)
        out.append((parse_direction(d), parse_price(px)))
    return out
