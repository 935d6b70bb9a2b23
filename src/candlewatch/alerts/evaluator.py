from __future__ import annotations

import asyncio
from dataclasses import replace
from typing import Any, Callable, Optional

import structlog

from candlewatch.alerts.rules import (
    AlertPolicy,
    AlertRule,
    Direction,
    parse_direction,
    parse_price,
)
from candlewatch.alerts.state import AlertRuleStore, EvaluatorState
from candlewatch.errors import ServiceStopped
from candlewatch.utils.time import utc_now_s
from candlewatch.utils.types import AlertFired

log = structlog.get_logger("alerts")


class ThresholdEvaluator:
    """
    Edge-triggered price-threshold alerts for one symbol.

    evaluate(price, now) walks enabled rules in store order and applies:
      1) per-rule cooldown        (now - last_fired_at < cooldown → skip)
      2) global noise floor       (|price - last_notified| / last_notified < floor → skip)
      3) crossing test            (ABOVE: price >= target > last_notified
                                   BELOW: price <= target < last_notified)
    Every rule in one call is judged against the last_notified_price held at
    the start of the call; if anything fired it becomes `price` afterwards.

    Not thread-safe on its own; AlertService owns one and serializes access.
    """
    def __init__(
        self,
        symbol: str,
        policy: Optional[AlertPolicy] = None,
        store: Optional[AlertRuleStore] = None,
        state: Optional[EvaluatorState] = None,
    ):
        self.symbol = symbol
        self.policy = policy or AlertPolicy()
        self.store = store or AlertRuleStore()
        self.state = state or EvaluatorState()

    @property
    def last_notified_price(self) -> float:
        return self.state.last_notified_price

    # --- rule store mutations ---

    def add_rule(self, price: Any, direction: Any, rule_id: Optional[str] = None) -> AlertRule:
        """Validate then insert. On InvalidInput the store is untouched."""
        px = parse_price(price)
        d = parse_direction(direction)
        rule = AlertRule(id=rule_id or self.store.next_id(d), target_price=px, direction=d)
        self.store.add(rule)
        log.info("alert_rule_added", rule_id=rule.id, direction=d.value, target=px)
        return rule

    def add_rules(self, *, above: Any = None, below: Any = None) -> list[AlertRule]:
        """
        Add an ABOVE and/or BELOW rule in one go. Both prices are validated
        before either rule is inserted.
        """
        wanted: list[tuple[Direction, float]] = []
        if above is not None:
            wanted.append((Direction.ABOVE, parse_price(above)))
        if below is not None:
            wanted.append((Direction.BELOW, parse_price(below)))
        if not wanted:
            raise ValueError("pick at least one direction (above or below)")
        return [self.add_rule(px, d) for d, px in wanted]

    def remove_rule(self, rule_id: str) -> bool:
        ok = self.store.remove(rule_id)
        if ok:
            log.info("alert_rule_removed", rule_id=rule_id)
        return ok

    def toggle_rule(self, rule_id: str) -> Optional[AlertRule]:
        rule = self.store.get(rule_id)
        if rule is None:
            return None
        rule.enabled = not rule.enabled
        log.info("alert_rule_toggled", rule_id=rule_id, enabled=rule.enabled)
        return rule

    def list_rules(self) -> list[AlertRule]:
        return self.store.copies()

    # --- core evaluation ---

    def _crossed(self, rule: AlertRule, price: float, last: float) -> bool:
        if rule.direction is Direction.ABOVE:
            return price >= rule.target_price and last < rule.target_price
        return price <= rule.target_price and last > rule.target_price

    def evaluate(self, current_price: float, now: float) -> list[AlertFired]:
        price = float(current_price)
        last = self.state.last_notified_price
        cooldown = self.policy.cooldown_seconds

        # noise floor is global: one check per call against the snapshot
        if last > 0.0 and abs(price - last) / last < self.policy.noise_floor:
            return []

        fired: list[AlertFired] = []
        for rule in self.store.snapshot():
            if not rule.enabled:
                continue
            if rule.last_fired_at is not None and now - rule.last_fired_at < cooldown:
                continue
            if not self._crossed(rule, price, last):
                continue

            rule.last_fired_at = now
            evt: AlertFired = {
                "symbol": self.symbol,
                "rule_id": rule.id,
                "direction": rule.direction.value,
                "target_price": rule.target_price,
                "current_price": price,
                "ts": float(now),
                "message": (
                    f"{self.symbol} {'rose to' if rule.direction is Direction.ABOVE else 'fell to'} "
                    f"{price:.2f} (target {rule.target_price:.2f})"
                ),
            }
            fired.append(evt)

        if fired:
            self.state.last_notified_price = price
            log.info("alerts_fired", symbol=self.symbol, price=price, rules=[e["rule_id"] for e in fired])
        return fired


class AlertService:
    """
    Single owner of a ThresholdEvaluator.

    Inbox items (tagged tuples, processed strictly in arrival order):
      ("price", symbol, price, ts)          from the feed poller
      ("cmd", name, kwargs, future)         rule mutations / listing

    Because evaluation and mutation run one item at a time on one task, a rule
    added while prices are queued is only considered from the next price on.
    Fired events go to q_alerts (dropped when full).
    """
    def __init__(
        self,
        evaluator: ThresholdEvaluator,
        q_in: asyncio.Queue,
        q_alerts: asyncio.Queue,
        clock: Callable[[], float] = utc_now_s,
    ):
        self.evaluator = evaluator
        self.q_in = q_in
        self.q_alerts = q_alerts
        self.clock = clock
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self._stop.clear()
        self._task = asyncio.create_task(self._loop(), name="alerts-service")

    async def stop(self) -> None:
        self._stop.set()
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._fail_pending()

    def _fail_pending(self) -> None:
        # commands still in the inbox would otherwise leave their callers waiting forever
        dropped = 0
        while True:
            try:
                item = self.q_in.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item[0] == "cmd" and not item[3].done():
                item[3].set_exception(ServiceStopped("alert service stopped"))
                dropped += 1
        if dropped:
            log.info("alerts_pending_commands_failed", count=dropped)

    # --- public API (awaitable round-trips through the inbox) ---

    def submit_price(self, symbol: str, price: float, ts: Optional[float] = None) -> bool:
        try:
            self.q_in.put_nowait(("price", symbol, float(price), ts))
            return True
        except asyncio.QueueFull:
            log.info("alerts_inbox_full_drop", symbol=symbol)
            return False

    async def add_rule(self, price: Any, direction: Any) -> AlertRule:
        return await self._request("add_rule", price=price, direction=direction)

    async def add_rules(self, *, above: Any = None, below: Any = None) -> list[AlertRule]:
        return await self._request("add_rules", above=above, below=below)

    async def remove_rule(self, rule_id: str) -> bool:
        return await self._request("remove_rule", rule_id=rule_id)

    async def toggle_rule(self, rule_id: str) -> Optional[AlertRule]:
        return await self._request("toggle_rule", rule_id=rule_id)

    async def list_rules(self) -> list[AlertRule]:
        return await self._request("list_rules")

    async def _request(self, name: str, **kwargs):
        if self._stop.is_set():
            raise ServiceStopped("alert service stopped")
        fut = asyncio.get_running_loop().create_future()
        await self.q_in.put(("cmd", name, kwargs, fut))
        return await fut

    # --- loop ---

    async def _loop(self) -> None:
        try:
            while not self._stop.is_set():
                item = await self.q_in.get()
                self._handle(item)
        except asyncio.CancelledError:
            return

    def _handle(self, item: tuple) -> None:
        kind = item[0]
        if kind == "price":
            _, symbol, price, ts = item
            if symbol != self.evaluator.symbol:
                return
            now = self.clock() if ts is None else ts
            try:
                fired = self.evaluator.evaluate(price, now)
            except Exception as e:
                log.warning("alerts_evaluate_failed", err=str(e), price=price)
                return
            for evt in fired:
                self._emit(evt)
        elif kind == "cmd":
            _, name, kwargs, fut = item
            if fut.done():
                return
            try:
                result = getattr(self.evaluator, name)(**kwargs)
            except Exception as e:
                fut.set_exception(e)
                return
            fut.set_result(self._detached(result))
        else:
            log.warning("alerts_unknown_item", kind=kind)

    @staticmethod
    def _detached(result):
        # callers outside the service never get the live rule objects
        if isinstance(result, AlertRule):
            return replace(result)
        if isinstance(result, list):
            return [replace(r) if isinstance(r, AlertRule) else r for r in result]
        return result

    def _emit(self, evt: AlertFired) -> None:
        try:
            self.q_alerts.put_nowait(evt)
        except asyncio.QueueFull:
            log.warning("alerts_queue_full_drop", rule_id=evt.get("rule_id"))
