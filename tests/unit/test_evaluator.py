import pytest

from candlewatch.alerts.evaluator import ThresholdEvaluator
from candlewatch.alerts.rules import AlertPolicy, Direction
from candlewatch.alerts.state import EvaluatorState
from candlewatch.errors import InvalidInput

def _ev(last=0.0, **policy):
    return ThresholdEvaluator("BTCUSDT", AlertPolicy(**policy), state=EvaluatorState(last))

def test_first_crossing_fires_and_sets_last_price():
    ev = _ev()
    r = ev.add_rule(50000, "above")
    fired = ev.evaluate(50100.0, now=1000.0)
    assert len(fired) == 1
    e = fired[0]
    assert e["rule_id"] == r.id and e["direction"] == "above"
    assert e["target_price"] == 50000.0 and e["current_price"] == 50100.0
    assert e["ts"] == 1000.0
    assert e["message"] == "BTCUSDT rose to 50100.00 (target 50000.00)"
    assert ev.last_notified_price == 50100.0
    assert ev.list_rules()[0].last_fired_at == 1000.0

def test_crossing_up_from_last_notified():
    ev = _ev(last=50000.0)
    ev.add_rule(50300, "above")
    assert len(ev.evaluate(50400.0, now=0.0)) == 1
    assert ev.last_notified_price == 50400.0

def test_no_fire_without_crossing():
    ev = _ev(last=51000.0)
    ev.add_rule(50000, "above")        # already above the target
    ev.add_rule(40000, "below")        # not reached
    assert ev.evaluate(52000.0, now=0.0) == []
    assert ev.last_notified_price == 51000.0

def test_below_rule_fires_on_fall():
    ev = _ev(last=41000.0)
    ev.add_rule(40000, "below")
    (e,) = ev.evaluate(39900.0, now=0.0)
    assert e["direction"] == "below"
    assert e["message"].startswith("BTCUSDT fell to 39900.00")

def test_noise_floor_suppresses_small_moves():
    ev = _ev(last=50000.0)
    ev.add_rule(50100, "above")
    assert ev.evaluate(50200.0, now=0.0) == []      # 0.4% < 0.5%
    assert ev.last_notified_price == 50000.0
    assert len(ev.evaluate(50300.0, now=1.0)) == 1  # 0.6%

def test_cooldown_per_rule():
    ev = _ev(cooldown_seconds=300.0)
    ev.add_rule(100, "above")
    ev.add_rule(90, "below")
    assert len(ev.evaluate(101.0, now=0.0)) == 1
    assert len(ev.evaluate(89.0, now=10.0)) == 1     # other rule is not cooling down
    assert ev.evaluate(101.0, now=20.0) == []        # above rule still cooling down
    assert ev.last_notified_price == 89.0
    assert len(ev.evaluate(101.0, now=400.0)) == 1

def test_all_rules_judged_against_same_snapshot():
    ev = _ev()
    ev.add_rule(100, "above")
    ev.add_rule(105, "above")
    fired = ev.evaluate(106.0, now=0.0)
    assert [e["target_price"] for e in fired] == [100.0, 105.0]
    assert ev.last_notified_price == 106.0

def test_disabled_rules_are_skipped():
    ev = _ev()
    r = ev.add_rule(100, "above")
    assert ev.toggle_rule(r.id).enabled is False
    assert ev.evaluate(101.0, now=0.0) == []
    ev.toggle_rule(r.id)
    assert len(ev.evaluate(101.0, now=1.0)) == 1

def test_invalid_price_leaves_store_unchanged():
    ev = _ev()
    with pytest.raises(InvalidInput):
        ev.add_rule("abc", "above")
    with pytest.raises(InvalidInput):
        ev.add_rule(-1, "below")
    with pytest.raises(InvalidInput):
        ev.add_rules(above=100, below="x")
    assert ev.list_rules() == []

def test_add_rules_both_directions_unique_ids():
    ev = _ev()
    rules = ev.add_rules(above=50000, below="40000")
    assert [r.direction for r in rules] == [Direction.ABOVE, Direction.BELOW]
    assert len({r.id for r in rules}) == 2
    with pytest.raises(ValueError):
        ev.add_rules()

def test_remove_and_toggle_unknown():
    ev = _ev()
    r = ev.add_rule(100, "above")
    assert ev.remove_rule(r.id) is True
    assert ev.remove_rule(r.id) is False
    assert ev.toggle_rule("nope") is None
    assert ev.evaluate(101.0, now=0.0) == []

def test_above_sequence_from_cold_start():
    ev = _ev()
    ev.add_rule(50000, "above")
    assert ev.evaluate(49999.0, now=0.0) == []
    assert len(ev.evaluate(50000.0, now=1.0)) == 1
    assert ev.last_notified_price == 50000.0
    assert ev.evaluate(50001.0, now=2.0) == []

def test_below_sequence_fires_once():
    ev = _ev(last=41000.0)
    ev.add_rule(40000, "below")
    assert len(ev.evaluate(39999.0, now=0.0)) == 1
    assert ev.evaluate(39998.0, now=1.0) == []

def test_string_price_accepted():
    ev = _ev()
    assert ev.add_rule("50000.5", "below").target_price == 50000.5
