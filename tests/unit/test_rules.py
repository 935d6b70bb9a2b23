import math

import pytest

from candlewatch.alerts.rules import Direction, parse_direction, parse_price, parse_rules_env
from candlewatch.alerts.state import AlertRuleStore
from candlewatch.alerts.rules import AlertRule
from candlewatch.errors import InvalidInput

@pytest.mark.parametrize("raw,expected", [(50000, 50000.0), ("43250.5", 43250.5), (" 0.08 ", 0.08)])
def test_parse_price_ok(raw, expected):
    assert parse_price(raw) == pytest.approx(expected)

@pytest.mark.parametrize("raw", ["abc", "", None, 0, -5, "-1", True, math.nan, math.inf, [1]])
def test_parse_price_rejects(raw):
    with pytest.raises(InvalidInput):
        parse_price(raw)

def test_invalid_input_is_value_error():
    with pytest.raises(ValueError):
        parse_price("nope")

def test_parse_direction():
    assert parse_direction("ABOVE") is Direction.ABOVE
    assert parse_direction(Direction.BELOW) is Direction.BELOW
    with pytest.raises(InvalidInput):
        parse_direction("sideways")

def test_parse_rules_env():
    assert parse_rules_env("above:50000, below:40000") == [
        (Direction.ABOVE, 50000.0), (Direction.BELOW, 40000.0),
    ]
    assert parse_rules_env("") == []
    with pytest.raises(InvalidInput):
        parse_rules_env("above50000")

def test_store_ids_never_reused():
    s = AlertRuleStore()
    r1 = s.add(AlertRule(s.next_id(Direction.ABOVE), 100.0, Direction.ABOVE))
    assert s.remove(r1.id)
    r2 = s.add(AlertRule(s.next_id(Direction.ABOVE), 100.0, Direction.ABOVE))
    assert r1.id != r2.id
    assert not s.remove(r1.id)
    with pytest.raises(InvalidInput):
        s.add(AlertRule(r2.id, 1.0, Direction.BELOW))

def test_store_copies_are_detached():
    s = AlertRuleStore()
    s.add(AlertRule("x", 100.0, Direction.ABOVE))
    (copy,) = s.copies()
    copy.enabled = False
    assert s.get("x").enabled is True
    assert "x" in s and len(s) == 1
