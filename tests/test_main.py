import logging

import pytest

import main
from conftest import FakeHttp, MonitorFactory, ok, other_failure
from config import CFG
from retry import RetryingExecutor


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    monkeypatch.setattr(CFG, "log_file", "")
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _executor(outcomes, clock):
    http = FakeHttp(outcomes)
    return http, RetryingExecutor(http, MonitorFactory(), clock=clock, stop=clock)


def test_success_exit_code(clock):
    http, ex = _executor([ok({"name": "Portland"})], clock)
    try:
        rc = main.main(["http://example.test/weather", "--param", "q=portland,or", "--wait", "10"], executor=ex)
    finally:
        ex.shutdown()

    assert rc == 0
    assert http.calls[0]["method"] == "GET"
    assert http.calls[0]["params"] == {"q": "portland,or"}


def test_failure_exit_code(clock):
    http, ex = _executor([other_failure()], clock)
    try:
        rc = main.main(["http://example.test", "--no-retry"], executor=ex)
    finally:
        ex.shutdown()

    assert rc == 1
    assert len(http.calls) == 1


def test_bad_param(clock):
    http, ex = _executor([], clock)
    try:
        rc = main.main(["http://example.test", "--param", "novalue"], executor=ex)
    finally:
        ex.shutdown()

    assert rc == 2
    assert http.calls == []


def test_setup_logging_quiets_urllib3():
    main.setup_logging("debug")
    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("urllib3").level == logging.WARNING
