import random

from candlewatch.utils.backoff import next_backoff, jitter

def test_next_backoff_caps():
    assert next_backoff(1, 4) == 2
    assert next_backoff(2, 4) == 4
    assert next_backoff(4, 4) == 4

def test_jitter_bounds():
    random.seed(7)
    for _ in range(200):
        v = jitter(10.0, ratio=0.05)
        assert 9.5 <= v <= 10.5
