import errno
import threading

import pytest

from net import ErrorKind, Failure, Success


class FakeClock:
    """Monotonic clock + stop-event stand-in: wait() advances time instead of sleeping."""

    def __init__(self):
        self.now = 0.0
        self.waits = 0

    def __call__(self) -> float:
        return self.now

    def wait(self, timeout: float) -> bool:
        self.waits += 1
        self.now += timeout
        return False


class FakeHttp:
    """Returns scripted outcomes in order and records each call with the clock time."""

    def __init__(self, outcomes, clock=None, gate: threading.Event = None):
        self.outcomes = list(outcomes)
        self.clock = clock
        self.gate = gate
        self.calls = []

    def request(self, method, url, params=None, **kwargs):
        if self.gate is not None:
            self.gate.wait(5)
        at = self.clock() if self.clock else None
        self.calls.append({"method": method, "url": url, "params": params, "at": at, **kwargs})
        res = self.outcomes.pop(0)
        if isinstance(res, BaseException):
            raise res
        return res


class FakeMonitor:
    def __init__(self, reachable=lambda: False):
        self._reachable = reachable
        self.checks = 0

    def is_reachable(self) -> bool:
        self.checks += 1
        return self._reachable()


class MonitorFactory:
    def __init__(self, monitor=None, error: BaseException = None):
        self.monitor = monitor or FakeMonitor()
        self.error = error
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.monitor


def offline_failure() -> Failure:
    return Failure(OSError(errno.ENETUNREACH, "Network is unreachable"), ErrorKind.OFFLINE)


def other_failure() -> Failure:
    return Failure(ValueError("bad json"), ErrorKind.OTHER)


def ok(payload=None) -> Success:
    return Success(payload if payload is not None else {"ok": True})


@pytest.fixture
def clock():
    return FakeClock()
