"""PCAP and PCAPNG streaming replay.

`iter_packets()` yields `(ts, raw, linktype)` for every frame in a capture
file without loading it into memory; `iter_events()` decodes those frames
into `CaptureEvent`s, dropping anything that is not IP.

pcap files are read with dpkt. pcapng files are read with python-pcapng's
`FileScanner` when it can handle the file, otherwise with dpkt's pcapng
reader.
"""
from __future__ import annotations

import logging
import os
import typing as t

import dpkt
from pcapng import FileScanner
from pcapng.blocks import EnhancedPacket, InterfaceDescription, SimplePacket

from .errors import CaptureError
from .events import CaptureEvent
from .packet import parse_raw

log = logging.getLogger("mcwatch.ingest")

PCAPNG_MAGIC = b"\x0a\x0d\x0d\x0a"


def _iter_pcap(fh) -> t.Iterator[tuple[float, bytes, int]]:
    rdr = dpkt.pcap.Reader(fh)
    linktype = rdr.datalink()
    for ts, buf in rdr:
        yield float(ts), buf, linktype


def _iter_pcapng_with_scanner(fh) -> t.Iterator[tuple[float, bytes, int]]:
    linktypes: list[int] = []
    last_ts = 0.0
    for block in FileScanner(fh):
        if isinstance(block, InterfaceDescription):
            linktypes.append(block.link_type)
        elif isinstance(block, EnhancedPacket):
            linktype = linktypes[block.interface_id] if block.interface_id < len(linktypes) else dpkt.pcap.DLT_EN10MB
            last_ts = float(block.timestamp)
            yield last_ts, bytes(block.packet_data), linktype
        elif isinstance(block, SimplePacket):
            # simple packets carry no timestamp; reuse the previous one
            linktype = linktypes[0] if linktypes else dpkt.pcap.DLT_EN10MB
            yield last_ts, bytes(block.packet_data), linktype


def _iter_pcapng_with_dpkt(fh) -> t.Iterator[tuple[float, bytes, int]]:
    rdr = dpkt.pcapng.Reader(fh)
    linktype = rdr.datalink()
    for ts, buf in rdr:
        yield float(ts), buf, linktype


def iter_packets(path: str) -> t.Iterator[tuple[float, bytes, int]]:
    """Yield (ts, raw_bytes, linktype) for packets in a pcap or pcapng file."""
    if not os.path.exists(path):
        raise CaptureError(f"pcap file not found: {path}")

    with open(path, "rb") as fh:
        magic = fh.read(4)
    if magic != PCAPNG_MAGIC:
        with open(path, "rb") as fh:
            try:
                yield from _iter_pcap(fh)
            except ValueError as e:
                raise CaptureError(f"unreadable pcap file {path}: {e}")
        return

    yielded = 0
    try:
        with open(path, "rb") as fh:
            for pkt in _iter_pcapng_with_scanner(fh):
                yield pkt
                yielded += 1
    except Exception as e:
        # FileScanner rejects some writer quirks that dpkt tolerates;
        # resume with dpkt after the packets already produced
        log.debug("pcapng scanner failed on %s after %d packets (%s); retrying with dpkt", path, yielded, e)
        with open(path, "rb") as fh:
            try:
                for idx, pkt in enumerate(_iter_pcapng_with_dpkt(fh)):
                    if idx >= yielded:
                        yield pkt
            except ValueError as e2:
                raise CaptureError(f"unreadable pcapng file {path}: {e2}")


def iter_events(path: str, max_packets: t.Optional[int] = None) -> t.Iterator[CaptureEvent]:
    """Decode a capture file into CaptureEvents, in file order."""
    dropped = 0
    for idx, (ts, raw, linktype) in enumerate(iter_packets(path)):
        if max_packets is not None and idx >= int(max_packets):
            break
        ev = parse_raw(ts, raw, linktype)
        if ev is None:
            dropped += 1
            continue
        yield ev
    if dropped:
        log.debug("dropped %d non-IP frames from %s", dropped, path)


def capture_span(path: str) -> t.Optional[tuple[float, float]]:
    """(first, last) packet timestamps of a capture file, or None if it is empty."""
    first = last = None
    for ts, _raw, _linktype in iter_packets(path):
        if first is None:
            first = ts
        last = ts
    if first is None:
        return None
    return first, last
