"""Live capture through scapy.

`LiveCapture` wraps scapy's `AsyncSniffer`: the BPF filter does the
group/port selection in the kernel, and every delivered frame is decoded with
`parse_raw` and handed to a callback (normally `MonitorEngine.submit`) on the
sniffer's own thread.

Design notes:
- Frames that do not decode to IP are dropped silently; an exception raised
  by the callback is logged and the capture keeps going.
- Opening the device or compiling the filter happens in `start()`, which
  raises `CaptureError` so the caller can report it before monitoring begins.
- Live mode requires capture privileges (root or CAP_NET_RAW).
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Optional

import dpkt
from scapy.all import AsyncSniffer, conf, get_if_list
from scapy.layers.inet import IP
from scapy.layers.inet6 import IPv6
from scapy.layers.l2 import CookedLinux

from .errors import CaptureError, InvalidConfiguration
from .events import CaptureEvent
from .packet import parse_raw

log = logging.getLogger("mcwatch.live_capture")

# how long start() waits for the sniffer thread to open the device
OPEN_GRACE = 1.0


def _linktype_of(pkt) -> int:
    # layer-3 interfaces (tun, loopback on some platforms) deliver bare IP
    if isinstance(pkt, (IP, IPv6)):
        return dpkt.pcap.DLT_RAW
    if isinstance(pkt, CookedLinux):
        return dpkt.pcap.DLT_LINUX_SLL
    return dpkt.pcap.DLT_EN10MB


def list_interfaces() -> List[Dict[str, Any]]:
    """Return capture devices as `{"name", "description"}` dicts, sorted by name."""
    out = []
    seen = set()
    for iface in conf.ifaces.values():
        name = getattr(iface, "network_name", None) or getattr(iface, "name", None)
        if not name or name in seen:
            continue
        seen.add(name)
        desc = getattr(iface, "description", None) or getattr(iface, "name", None) or name
        out.append({"name": name, "description": str(desc)})
    if not out:
        # some platforms only populate the plain interface list
        out = [{"name": n, "description": n} for n in get_if_list()]
    out.sort(key=lambda d: d["name"])
    return out


def resolve_interface(choice: str, interfaces: Optional[List[Dict[str, Any]]] = None) -> str:
    """Map a name, description or 1-based index onto a capture device name."""
    interfaces = list_interfaces() if interfaces is None else interfaces
    choice = str(choice).strip()
    if choice.isdigit():
        idx = int(choice)
        if 0 < idx <= len(interfaces):
            return interfaces[idx - 1]["name"]
        raise InvalidConfiguration(f"no interface number {idx}")
    for iface in interfaces:
        if choice == iface["name"] or choice.lower() == iface["description"].lower():
            return iface["name"]
    raise InvalidConfiguration(f"unknown interface: {choice}")


class LiveCapture:
    def __init__(self, interface: str, bpf_filter: Optional[str], callback: Callable[[CaptureEvent], Any]):
        self.interface = interface
        self.bpf_filter = bpf_filter
        self.callback = callback
        self.delivered = 0
        self.dropped = 0
        self._sniffer: Optional[AsyncSniffer] = None

    def _prn(self, pkt) -> None:
        ts = float(getattr(pkt, "time", time.time()))
        try:
            raw = bytes(pkt)
        except Exception:
            self.dropped += 1
            return
        ev = parse_raw(ts, raw, _linktype_of(pkt))
        if ev is None:
            self.dropped += 1
            log.debug("dropped undecodable frame on %s", self.interface)
            return
        try:
            self.callback(ev)
            self.delivered += 1
        except Exception:
            log.exception("capture callback failed")

    def start(self) -> "LiveCapture":
        try:
            self._sniffer = AsyncSniffer(iface=self.interface, filter=self.bpf_filter, prn=self._prn, store=False)
            self._sniffer.start()
        except PermissionError as e:
            raise CaptureError(f"permission denied opening {self.interface}: {e}")
        except Exception as e:
            raise CaptureError(f"error opening {self.interface} with filter {self.bpf_filter!r}: {e}")
        # device and filter errors surface on the sniffer thread
        deadline = time.monotonic() + OPEN_GRACE
        while not self._sniffer.running and time.monotonic() < deadline:
            err = getattr(self._sniffer, "exception", None)
            if err is not None:
                self._sniffer = None
                raise CaptureError(f"error opening {self.interface} with filter {self.bpf_filter!r}: {err}")
            time.sleep(0.01)
        log.info("capturing on %s with filter %r", self.interface, self.bpf_filter)
        return self

    @property
    def running(self) -> bool:
        return bool(self._sniffer is not None and self._sniffer.running)

    def stop(self) -> None:
        if self._sniffer is None:
            return
        try:
            if self._sniffer.running:
                self._sniffer.stop()
        except Exception:
            log.exception("failed to stop sniffer on %s", self.interface)
        finally:
            self._sniffer = None
        log.info("capture on %s stopped (%d delivered, %d dropped)", self.interface, self.delivered, self.dropped)
