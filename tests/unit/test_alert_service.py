import asyncio
import pytest

from candlewatch.alerts.evaluator import AlertService, ThresholdEvaluator
from candlewatch.errors import InvalidInput, ServiceStopped

@pytest.fixture
async def service():
    q_in = asyncio.Queue(maxsize=100)
    q_alerts = asyncio.Queue(maxsize=100)
    svc = AlertService(ThresholdEvaluator("BTCUSDT"), q_in, q_alerts, clock=lambda: 1234.0)
    await svc.start()
    try:
        yield svc
    finally:
        await svc.stop()

@pytest.mark.asyncio
async def test_price_crossing_emits_alert(service):
    rule = await service.add_rule(50000, "above")
    assert service.submit_price("BTCUSDT", 50100.0, ts=10.0)
    evt = await asyncio.wait_for(service.q_alerts.get(), timeout=1.0)
    assert evt["rule_id"] == rule.id
    assert evt["ts"] == 10.0

@pytest.mark.asyncio
async def test_clock_used_when_no_timestamp(service):
    await service.add_rule(100, "above")
    service.submit_price("BTCUSDT", 101.0)
    evt = await asyncio.wait_for(service.q_alerts.get(), timeout=1.0)
    assert evt["ts"] == 1234.0

@pytest.mark.asyncio
async def test_other_symbols_ignored(service):
    await service.add_rule(100, "above")
    service.submit_price("ETHUSDT", 101.0, ts=1.0)
    await service.list_rules()   # round-trip: everything queued before it is handled
    assert service.q_alerts.empty()

@pytest.mark.asyncio
async def test_rule_added_mid_stream_applies_to_next_price(service):
    service.submit_price("BTCUSDT", 101.0, ts=1.0)   # no rules yet
    await service.add_rule(100, "above")             # handled after the price above
    assert service.q_alerts.empty()
    service.submit_price("BTCUSDT", 102.0, ts=2.0)
    evt = await asyncio.wait_for(service.q_alerts.get(), timeout=1.0)
    assert evt["current_price"] == 102.0

@pytest.mark.asyncio
async def test_invalid_rule_raises_to_caller(service):
    with pytest.raises(InvalidInput):
        await service.add_rule("abc", "above")
    assert await service.list_rules() == []

@pytest.mark.asyncio
async def test_returned_rules_are_copies(service):
    rules = await service.add_rules(above=100, below=90)
    rules[0].enabled = False
    listed = await service.list_rules()
    assert [r.enabled for r in listed] == [True, True]
    toggled = await service.toggle_rule(listed[0].id)
    assert toggled.enabled is False
    assert await service.remove_rule(listed[1].id) is True
    assert len(await service.list_rules()) == 1

@pytest.mark.asyncio
async def test_submit_price_drops_when_inbox_full():
    svc = AlertService(ThresholdEvaluator("BTCUSDT"), asyncio.Queue(maxsize=1), asyncio.Queue())
    assert svc.submit_price("BTCUSDT", 1.0) is True
    assert svc.submit_price("BTCUSDT", 2.0) is False

@pytest.mark.asyncio
async def test_stop_fails_commands_left_in_inbox():
    svc = AlertService(ThresholdEvaluator("BTCUSDT"), asyncio.Queue(), asyncio.Queue())
    # never started: the command sits in the inbox until stop()
    pending = asyncio.create_task(svc.add_rule(100, "above"))
    await asyncio.sleep(0)
    assert not pending.done()
    await svc.stop()
    with pytest.raises(ServiceStopped):
        await asyncio.wait_for(pending, timeout=1.0)
    assert svc.q_in.empty()

@pytest.mark.asyncio
async def test_requests_after_stop_are_rejected(service):
    await service.stop()
    with pytest.raises(ServiceStopped):
        await service.list_rules()
