# config.py
import os
from dataclasses import dataclass, field
from typing import Tuple


def _split_csv(s: str) -> Tuple[str, ...]:
    return tuple(x.strip() for x in (s or "").split(",") if x.strip())


@dataclass
class Config:
    # runtime
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_file: str = field(default_factory=lambda: os.getenv("LOG_FILE", "netretry.log"))  # "" -> console only

    # request / retry
    wait_interval_sec: float = field(default_factory=lambda: float(os.getenv("WAIT_INTERVAL_SEC", "30.0")))
    http_timeout_sec: float = field(default_factory=lambda: float(os.getenv("HTTP_TIMEOUT_SEC", "10.0")))

    # connectivity
    interface_class: str = field(default_factory=lambda: os.getenv("NET_INTERFACE_CLASS", "wifi"))
    interface_prefixes: Tuple[str, ...] = field(
        default_factory=lambda: _split_csv(os.getenv("NET_INTERFACE_PREFIXES", "")))
    probe_host: str = field(default_factory=lambda: os.getenv("NET_PROBE_HOST", ""))  # set -> tcp probe instead of interfaces
    probe_port: int = field(default_factory=lambda: int(os.getenv("NET_PROBE_PORT", "443")))
    probe_timeout_sec: float = field(default_factory=lambda: float(os.getenv("NET_PROBE_TIMEOUT_SEC", "1.0")))

    # endpoints
    endpoint: str = field(default_factory=lambda: os.getenv(
        "FETCH_URL", "https://api.openweathermap.org/data/2.5/weather?q=portland,or"))


CFG = Config()
