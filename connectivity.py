# connectivity.py
import abc
import ipaddress
import logging
import socket
import sys
from typing import Callable, Dict, Optional, Sequence, Tuple

import psutil

from config import Config

log = logging.getLogger(__name__)

# interface name prefixes per class, linux / *bsd naming
INTERFACE_CLASSES: Dict[str, Tuple[str, ...]] = {
    "wifi": ("wl", "ath", "iwn", "iwm", "iwx"),
    "ethernet": ("eth", "en", "em", "igb", "bond"),
    "cellular": ("wwan", "rmnet", "ppp"),
    "any": (),
}

# macOS: Wi-Fi is en0 on every current Mac; wired / thunderbolt ports are en1+
DARWIN_INTERFACE_CLASSES: Dict[str, Tuple[str, ...]] = {
    "wifi": ("en0",),
    "ethernet": ("en",),
    "cellular": ("pdp_ip",),
    "any": (),
}

# always-up virtual / peer-to-peer links; never evidence of a network path
VIRTUAL_PREFIXES: Tuple[str, ...] = (
    "lo", "br", "virbr", "docker", "veth", "cni", "flannel", "vmnet", "vboxnet",
    "awdl", "llw", "utun", "gif", "stf", "anpi",
)

_ADDR_FAMILIES = (socket.AF_INET, socket.AF_INET6)


def interface_classes(platform: str = sys.platform) -> Dict[str, Tuple[str, ...]]:
    return DARWIN_INTERFACE_CLASSES if platform == "darwin" else INTERFACE_CLASSES


def _routable(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_link_local or ip.is_unspecified)


class ConnectivityUnavailable(RuntimeError):
    """The reachability primitive cannot be used on this host."""


class ConnectivityMonitor(abc.ABC):
    @abc.abstractmethod
    def is_reachable(self) -> bool:
        ...


class InterfaceMonitor(ConnectivityMonitor):
    """
    Reachable == some interface of the chosen class is up, is not a virtual link
    and has a routable IPv4/IPv6 address (loopback and link-local don't count).
    Read fresh from the OS on every call.

    Explicit `prefixes` replace the class table and skip the virtual-link filter.
    """

    def __init__(self, interface_class: str = "wifi", prefixes: Optional[Sequence[str]] = None,
                 platform: str = sys.platform):
        classes = interface_classes(platform)
        self.exclude: Tuple[str, ...] = ()
        if prefixes:
            self.prefixes = tuple(prefixes)
        elif interface_class in classes:
            self.prefixes = classes[interface_class]
            self.exclude = VIRTUAL_PREFIXES
        else:
            raise ConnectivityUnavailable(f"unknown interface class: {interface_class!r}")
        self.interface_class = interface_class

        # probe once so an unusable primitive fails here, not mid-wait
        try:
            stats = psutil.net_if_stats()
        except Exception as e:
            raise ConnectivityUnavailable(f"net_if_stats failed: {e}") from e
        if not stats:
            raise ConnectivityUnavailable("no network interfaces reported")

    def _matches(self, name: str) -> bool:
        if self.exclude and name.startswith(self.exclude):
            return False
        if not self.prefixes:
            return True
        return name.startswith(self.prefixes)

    def is_reachable(self) -> bool:
        stats = psutil.net_if_stats()
        addrs = psutil.net_if_addrs()
        for name, st in stats.items():
            if not st.isup or not self._matches(name):
                continue
            for a in addrs.get(name, ()):
                if a.family in _ADDR_FAMILIES and _routable(a.address):
                    return True
        return False


class ProbeMonitor(ConnectivityMonitor):
    """Reachable == a TCP connect to host:port succeeds within `timeout`."""

    def __init__(self, host: str, port: int = 443, timeout: float = 1.0):
        if not host:
            raise ConnectivityUnavailable("probe host not set")
        self.host = host
        self.port = port
        self.timeout = timeout

    def is_reachable(self) -> bool:
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout):
                return True
        except OSError:
            return False


def make_monitor(cfg: Config) -> ConnectivityMonitor:
    if cfg.probe_host:
        return ProbeMonitor(cfg.probe_host, cfg.probe_port, cfg.probe_timeout_sec)
    return InterfaceMonitor(cfg.interface_class, cfg.interface_prefixes)


def monitor_factory(cfg: Config) -> Callable[[], ConnectivityMonitor]:
    def _make() -> ConnectivityMonitor:
        m = make_monitor(cfg)
        log.debug(f"[NET] monitor={type(m).__name__}")
        return m
    return _make
