# main.py
import argparse
import logging
import sys
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

from config import CFG
from net import Outcome
from retry import RequestDescriptor, RetryingExecutor


def setup_logging(level: str, log_file: str = "") -> None:
    """
    - App logs -> console (+ file when log_file is set)
    - urllib3 / requests -> WARNING+
    """
    level = level.upper()
    lvl = getattr(logging, level, logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()  # avoid duplicate handlers on re-init
    root.setLevel(lvl)

    fmt = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        "%Y-%m-%d %H:%M:%S",
    )

    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        fh.setLevel(lvl)
        root.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.setLevel(lvl)
    root.addHandler(ch)

    for name in ("urllib3", "requests"):
        logging.getLogger(name).setLevel(logging.WARNING)

    root.info(
        "[LOG] logging initialized "
        f"(level={level}, file={log_file or 'off'}, console=on)"
    )


log = logging.getLogger(__name__)


def _parse_params(items: List[str]) -> Optional[Dict[str, Any]]:
    if not items:
        return None
    out: Dict[str, Any] = {}
    for it in items:
        k, sep, v = it.partition("=")
        if not sep or not k:
            raise argparse.ArgumentTypeError(f"bad --param {it!r}, expected key=value")
        out[k] = v
    return out


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="netretry",
        description="Fetch JSON, waiting for the network and retrying once if the device is offline.",
    )
    p.add_argument("url", nargs="?", default=CFG.endpoint)
    p.add_argument("--method", default="GET")
    p.add_argument("--wait", type=float, default=CFG.wait_interval_sec,
                   help="seconds to wait for connectivity before giving up")
    p.add_argument("--no-retry", action="store_true")
    p.add_argument("--param", action="append", default=[], metavar="KEY=VALUE")
    return p


def main(argv: Optional[List[str]] = None, executor: Optional[RetryingExecutor] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(CFG.log_level, CFG.log_file)

    try:
        params = _parse_params(args.param)
    except argparse.ArgumentTypeError as e:
        log.error(f"[MAIN] {e}")
        return 2

    desc = RequestDescriptor(
        args.method, args.url, params,
        retry=not args.no_retry,
        wait_interval=args.wait,
        timeout=CFG.http_timeout_sec,
    )

    def on_done(outcome: Outcome) -> None:
        if outcome.ok:
            log.info(f"JSON     = {outcome.payload}")
        else:
            log.info(f"error    = {outcome.error}")

    owned = executor is None
    ex = executor or RetryingExecutor()
    try:
        handle = ex.execute(desc, on_done)
        outcome = handle.result()
    except KeyboardInterrupt:
        log.info("[MAIN] KeyboardInterrupt -> stop waiting")
        ex.shutdown(wait=False, cancel_waits=True)
        return 130
    finally:
        if owned:
            ex.shutdown(wait=False)
    return 0 if outcome.ok else 1


if __name__ == "__main__":
    sys.exit(main())
