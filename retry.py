# retry.py
import concurrent.futures
import logging
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set

from config import CFG
from connectivity import ConnectivityMonitor, ConnectivityUnavailable
from connectivity import monitor_factory as config_monitor_factory
from net import HTTP, ErrorKind, Failure, Outcome
from waiting import wait_until

log = logging.getLogger(__name__)

Completion = Callable[[Outcome], None]


@dataclass(frozen=True)
class RequestDescriptor:
    method: str
    url: str
    params: Optional[Dict[str, Any]] = None
    retry: bool = True
    wait_interval: float = 30.0
    headers: Optional[Dict[str, str]] = None
    timeout: Optional[float] = None
    encoding: str = "url"  # "url" | "json"


class State(Enum):
    ATTEMPTING = "attempting"
    WAITING_FOR_CONNECTIVITY = "waiting_for_connectivity"
    RETRYING = "retrying"
    DONE = "done"


@dataclass
class _Chain:
    desc: RequestDescriptor
    state: State = State.ATTEMPTING
    retries_left: int = 0
    attempts: int = 0
    first_failure: Optional[Failure] = None
    outcome: Optional[Outcome] = field(default=None, repr=False)


class RetryingExecutor:
    """
    Runs each execute() chain on its own daemon thread:
    attempt -> (offline) wait for connectivity -> at most one retry -> completion.
    Chains never queue behind each other, so a long connectivity wait
    cannot delay another call's first attempt.
    """

    def __init__(
            self,
            http=None,
            monitor_factory: Optional[Callable[[], ConnectivityMonitor]] = None,
            *,
            clock: Callable[[], float] = time.monotonic,
            stop: Optional[threading.Event] = None,
    ):
        self.http = http or HTTP
        self.monitor_factory = monitor_factory or config_monitor_factory(CFG)
        self.clock = clock
        self.stop = stop or threading.Event()
        self._lock = threading.Lock()
        self._threads: Set[threading.Thread] = set()
        self._seq = 0

    def execute(self, desc: RequestDescriptor, completion: Completion) -> "concurrent.futures.Future[Outcome]":
        """Start the chain and return its handle immediately; completion runs exactly once."""
        log.info(f"[RETRY] submit {desc.method} {desc.url} retry={desc.retry} wait={desc.wait_interval}s")
        fut: "concurrent.futures.Future[Outcome]" = concurrent.futures.Future()
        fut.set_running_or_notify_cancel()
        with self._lock:
            self._seq += 1
            t = threading.Thread(target=self._run, args=(desc, completion, fut),
                                 name=f"netretry-{self._seq}", daemon=True)
            self._threads.add(t)
        t.start()
        return fut

    def shutdown(self, wait: bool = True, cancel_waits: bool = False) -> None:
        if cancel_waits:
            self.stop.set()
        if not wait:
            return
        with self._lock:
            pending = list(self._threads)
        for t in pending:
            t.join()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()

    # ------------------------------------------------------------------

    def _run(self, desc: RequestDescriptor, completion: Completion,
             fut: "concurrent.futures.Future[Outcome]") -> None:
        try:
            outcome = self.run_chain(desc)
        except Exception as e:
            log.exception(f"[RETRY] chain crashed {desc.method} {desc.url}: {e}")
            outcome = Failure(e, ErrorKind.OTHER)

        try:
            completion(outcome)
        except Exception:
            log.exception("[RETRY] completion handler raised")
        finally:
            fut.set_result(outcome)
            with self._lock:
                self._threads.discard(threading.current_thread())

    def _attempt(self, chain: _Chain) -> Outcome:
        d = chain.desc
        chain.attempts += 1
        res = self.http.request(d.method, d.url, d.params,
                                headers=d.headers, timeout=d.timeout, encoding=d.encoding)
        return replace(res, attempts=chain.attempts)

    def run_chain(self, desc: RequestDescriptor) -> Outcome:
        """Synchronous body of execute(): blocks the calling thread until DONE."""
        chain = _Chain(desc=desc, retries_left=1 if desc.retry else 0)

        while chain.state is not State.DONE:
            if chain.state is State.ATTEMPTING:
                res = self._attempt(chain)
                if res.ok or res.cause is ErrorKind.OTHER:
                    chain.outcome = res
                    chain.state = State.DONE
                elif chain.retries_left <= 0:
                    log.info(f"[RETRY] offline, retry disabled -> fail {desc.url}")
                    chain.outcome = res
                    chain.state = State.DONE
                else:
                    chain.first_failure = res
                    chain.state = State.WAITING_FOR_CONNECTIVITY

            elif chain.state is State.WAITING_FOR_CONNECTIVITY:
                chain.outcome = chain.first_failure
                chain.state = State.DONE
                try:
                    monitor = self.monitor_factory()
                except ConnectivityUnavailable as e:
                    log.warning(f"[NET] reachability unavailable, not retrying {desc.url}: {e}")
                    continue

                t0 = self.clock()
                log.info(f"[RETRY] offline, waiting up to {desc.wait_interval}s for network {desc.url}")
                try:
                    back = wait_until(monitor.is_reachable, desc.wait_interval,
                                      stop=self.stop, clock=self.clock)
                except Exception as e:
                    log.error(f"[NET] reachability check failed, not retrying {desc.url}: {e}")
                    continue
                if back:
                    log.info(f"[RETRY] network back after {self.clock() - t0:.2f}s -> retry {desc.url}")
                    chain.state = State.RETRYING
                else:
                    log.warning(f"[RETRY] network still down after {self.clock() - t0:.2f}s -> fail {desc.url}")

            elif chain.state is State.RETRYING:
                chain.retries_left -= 1
                chain.desc = replace(desc, retry=False)
                chain.outcome = self._attempt(chain)
                chain.state = State.DONE

        log.info(f"[RETRY] done {desc.method} {desc.url} ok={chain.outcome.ok} attempts={chain.attempts}")
        return chain.outcome


_EXECUTOR: Optional[RetryingExecutor] = None
_EXECUTOR_LOCK = threading.Lock()


def default_executor() -> RetryingExecutor:
    global _EXECUTOR
    with _EXECUTOR_LOCK:
        if _EXECUTOR is None:
            _EXECUTOR = RetryingExecutor()
        return _EXECUTOR


def request(
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        *,
        retry: bool = True,
        wait_interval: float = 30.0,
        completion: Completion,
        **kwargs,
) -> "concurrent.futures.Future[Outcome]":
    """Top-level shortcut: build the descriptor and execute on the shared executor."""
    desc = RequestDescriptor(method, url, params, retry=retry, wait_interval=wait_interval, **kwargs)
    return default_executor().execute(desc, completion)
