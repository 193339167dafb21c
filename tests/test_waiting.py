import threading
import time

from waiting import POLL_PERIOD, wait_until


def test_true_predicate_returns_immediately():
    t0 = time.monotonic()
    assert wait_until(lambda: True, 5.0) is True
    assert time.monotonic() - t0 < 0.1


def test_false_predicate_waits_full_duration(clock):
    assert wait_until(lambda: False, 3.0, clock=clock, stop=clock) is False
    assert 3.0 <= clock.now <= 3.0 + POLL_PERIOD


def test_false_predicate_real_time():
    t0 = time.monotonic()
    assert wait_until(lambda: False, 0.6) is False
    elapsed = time.monotonic() - t0
    assert 0.6 <= elapsed < 0.6 + POLL_PERIOD + 0.5


def test_zero_duration_checks_once_and_never_sleeps(clock):
    calls = {"n": 0}

    def pred():
        calls["n"] += 1
        return False

    assert wait_until(pred, 0, clock=clock, stop=clock) is False
    assert calls["n"] == 1
    assert clock.waits == 0

    assert wait_until(pred, -1.0, clock=clock, stop=clock) is False
    assert calls["n"] == 2


def test_predicate_becomes_true(clock):
    assert wait_until(lambda: clock.now >= 2.0, 10.0, clock=clock, stop=clock) is True
    assert clock.now == 2.0
    assert clock.waits == 4


def test_stop_event_ends_wait():
    stop = threading.Event()
    stop.set()
    t0 = time.monotonic()
    assert wait_until(lambda: False, 30.0, stop=stop) is False
    assert time.monotonic() - t0 < 0.1
