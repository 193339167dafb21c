# net.py
import errno
import logging
import threading
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

import requests

log = logging.getLogger(__name__)

# "no network path" errnos; DNS failures, refused connections etc. are not offline
OFFLINE_ERRNOS = frozenset({errno.ENETUNREACH, errno.ENETDOWN})

# methods whose params go into the query string under "url" encoding
QUERY_METHODS = frozenset({"GET", "HEAD", "DELETE"})


class ErrorKind(Enum):
    OFFLINE = "offline"
    OTHER = "other"


@dataclass(frozen=True)
class Success:
    payload: Any
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    error: BaseException
    cause: ErrorKind
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return False

    @property
    def offline(self) -> bool:
        return self.cause is ErrorKind.OFFLINE


Outcome = Union[Success, Failure]


def _iter_chain(exc: BaseException):
    """
    Walk everything an exception wraps:
    __cause__ / __context__, urllib3 MaxRetryError.reason, and exceptions in args
    (requests.ConnectionError carries the MaxRetryError as args[0]).
    """
    seen = set()
    stack = [exc]
    while stack:
        e = stack.pop()
        if e is None or id(e) in seen:
            continue
        seen.add(id(e))
        yield e
        stack.append(e.__cause__)
        stack.append(e.__context__)
        reason = getattr(e, "reason", None)
        if isinstance(reason, BaseException):
            stack.append(reason)
        for a in getattr(e, "args", ()):
            if isinstance(a, BaseException):
                stack.append(a)


def classify(exc: BaseException) -> ErrorKind:
    for e in _iter_chain(exc):
        if isinstance(e, OSError) and e.errno in OFFLINE_ERRNOS:
            return ErrorKind.OFFLINE
    return ErrorKind.OTHER


class Http:
    """
    One requests.Session per thread: Session is not guaranteed thread-safe,
    and every retry chain runs on its own thread. A thread's session is
    dropped with the thread.
    """

    def __init__(self, timeout: float = 10.0):
        self.timeout = timeout
        self._local = threading.local()
        self._sessions: "weakref.WeakSet[requests.Session]" = weakref.WeakSet()
        self._lock = threading.Lock()

    @property
    def sess(self) -> requests.Session:
        s = getattr(self._local, "sess", None)
        if s is None:
            s = requests.Session()
            self._local.sess = s
            with self._lock:
                self._sessions.add(s)
        return s

    def request(self, method: str, url: str, params: Optional[Dict[str, Any]] = None, *,
                headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None,
                encoding: str = "url") -> Outcome:
        """
        Send one request and decode the JSON body.
        Never raises: transport / status / decode errors come back as Failure.
        """
        method = method.upper()
        kwargs: Dict[str, Any] = {
            "headers": headers,
            "timeout": self.timeout if timeout is None else timeout,
        }
        if params:
            if encoding == "json":
                kwargs["json"] = params
            elif method in QUERY_METHODS:
                kwargs["params"] = params
            else:
                kwargs["data"] = params

        try:
            r = self.sess.request(method, url, **kwargs)
            r.raise_for_status()
            return Success(r.json())
        except Exception as e:
            cause = classify(e)
            log.debug(f"[HTTP] {method} {url} failed cause={cause.value}: {e!r}")
            return Failure(e, cause)

    def get(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Outcome:
        return self.request("GET", url, params, **kwargs)

    def post(self, url: str, params: Optional[Dict[str, Any]] = None, **kwargs) -> Outcome:
        return self.request("POST", url, params, **kwargs)

    def close(self) -> None:
        with self._lock:
            sessions = list(self._sessions)
        for s in sessions:
            s.close()


HTTP = Http()
