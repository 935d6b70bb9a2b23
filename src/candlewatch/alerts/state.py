from __future__ import annotations

import itertools
from dataclasses import dataclass, replace
from typing import Dict, Iterator, Optional

from candlewatch.alerts.rules import AlertRule, Direction
from candlewatch.errors import InvalidInput


@dataclass(slots=True)
class EvaluatorState:
    # price at which any rule last fired; 0 = nothing fired yet
    last_notified_price: float = 0.0


class AlertRuleStore:
    """
    Ordered rule collection (insertion order = evaluation order).

    Ids are "<n>-<direction>" from a counter that never goes backwards, so an id
    is never handed out twice for the lifetime of the store, even after removal.
    """
    def __init__(self):
        self._rules: Dict[str, AlertRule] = {}
        self._seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[AlertRule]:
        return iter(list(self._rules.values()))

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def next_id(self, direction: Direction) -> str:
        while True:
            rid = f"{next(self._seq)}-{direction.value}"
            if rid not in self._rules:
                return rid

    def add(self, rule: AlertRule) -> AlertRule:
        if rule.id in self._rules:
            raise InvalidInput(f"duplicate alert id: {rule.id}")
        self._rules[rule.id] = rule
        return rule

    def get(self, rule_id: str) -> Optional[AlertRule]:
        return self._rules.get(rule_id)

    def remove(self, rule_id: str) -> bool:
        return self._rules.pop(rule_id, None) is not None

    def snapshot(self) -> list[AlertRule]:
        """Live rule objects in order (list copy, safe to iterate while mutating)."""
        return list(self._rules.values())

    def copies(self) -> list[AlertRule]:
        """Detached copies for callers outside the owner."""
        return [replace(r) for r in self._rules.values()]
