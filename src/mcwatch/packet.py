"""Packet decoding: convert raw link-layer frames into CaptureEvent."""
from __future__ import annotations

import socket
import typing as t

import dpkt

from .events import CaptureEvent


def _decode_link(raw: bytes, linktype: int):
    if linktype == dpkt.pcap.DLT_RAW or linktype == 101:
        # raw IP: version nibble picks the header
        if raw and raw[0] >> 4 == 6:
            return dpkt.ip6.IP6(raw)
        return dpkt.ip.IP(raw)
    if linktype == dpkt.pcap.DLT_LINUX_SLL:
        return dpkt.sll.SLL(raw).data
    return dpkt.ethernet.Ethernet(raw).data


def parse_raw(ts: float, raw: bytes, linktype: int = dpkt.pcap.DLT_EN10MB) -> t.Optional[CaptureEvent]:
    """Parse raw frame bytes and return a CaptureEvent or None if unsupported.

    Supports Ethernet, Linux cooked and raw-IP framing carrying IPv4/IPv6.
    Returns None for non-IP or malformed packets; UDP ports are filled in when
    present and left at 0 otherwise.
    """
    try:
        ip = _decode_link(raw, linktype)
    except (dpkt.UnpackError, IndexError, ValueError):
        return None

    if isinstance(ip, dpkt.ip.IP):
        family = socket.AF_INET
    elif isinstance(ip, dpkt.ip6.IP6):
        family = socket.AF_INET6
    else:
        return None

    try:
        src_ip = socket.inet_ntop(family, ip.src)
        dst_ip = socket.inet_ntop(family, ip.dst)
    except (ValueError, OSError):
        return None

    src_port = 0
    dst_port = 0
    if isinstance(ip.data, dpkt.udp.UDP):
        src_port = ip.data.sport
        dst_port = ip.data.dport

    return CaptureEvent(time=float(ts), src_ip=src_ip, dst_ip=dst_ip, src_port=src_port, dst_port=dst_port)
