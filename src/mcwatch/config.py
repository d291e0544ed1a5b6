"""Validated monitor settings and the capture filter derived from them."""
from __future__ import annotations

import dataclasses
import ipaddress
import logging
import math
import typing as t

from .errors import InvalidConfiguration

log = logging.getLogger("mcwatch.config")

DEFAULT_TICK_INTERVAL = 0.1


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    group: str
    port: int
    timeout: float
    interface: t.Optional[str] = None
    tick_interval: float = DEFAULT_TICK_INTERVAL

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        try:
            addr = ipaddress.ip_address(self.group)
        except ValueError:
            raise InvalidConfiguration(f"invalid multicast address: {self.group!r}")
        if not addr.is_multicast:
            # accepted anyway: the capture filter still matches unicast hosts
            log.warning("%s is not a multicast address", self.group)
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port <= 65535:
            raise InvalidConfiguration(f"invalid port: {self.port!r}")
        if isinstance(self.timeout, bool) or not isinstance(self.timeout, (int, float)) or not self.timeout > 0 \
                or not math.isfinite(self.timeout):
            raise InvalidConfiguration(f"timeout must be a positive number of seconds, got {self.timeout!r}")
        if not self.tick_interval > 0:
            raise InvalidConfiguration(f"tick interval must be positive, got {self.tick_interval!r}")

    @property
    def ip_version(self) -> int:
        return ipaddress.ip_address(self.group).version

    @property
    def bpf_filter(self) -> str:
        family = "ip6" if self.ip_version == 6 else "ip"
        return f"{family} and udp and host {self.group} and port {self.port}"

    def matches(self, event) -> bool:
        """Userspace equivalent of `bpf_filter`, for replayed capture files."""
        if self.group not in (event.src_ip, event.dst_ip):
            return False
        return self.port in (event.src_port, event.dst_port)

    @classmethod
    def from_values(cls, group, port, timeout, interface=None, tick_interval=DEFAULT_TICK_INTERVAL) -> "MonitorConfig":
        """Build a config from raw (possibly string) values, e.g. CLI input."""
        group = str(group or "").strip()
        try:
            port = int(str(port).strip())
        except (TypeError, ValueError):
            raise InvalidConfiguration(f"invalid port: {port!r}")
        # same rule as the interactive prompt: whole seconds only
        try:
            timeout = int(str(timeout).strip())
        except (TypeError, ValueError):
            raise InvalidConfiguration(f"timeout must be a positive integer number of seconds, got {timeout!r}")
        return cls(group=group, port=port, timeout=timeout, interface=interface or None, tick_interval=float(tick_interval))
