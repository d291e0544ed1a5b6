"""Notice sinks.

A sink is any callable taking one notice. The engine calls it on its consumer
thread, in emission order.

- `ConsoleSink` prints one timestamped line per notice.
- `NdjsonSink` appends canonical JSON lines to a file.
- `CollectingSink` keeps notices in memory (tests, replay summaries).
- `FanoutSink` forwards to several sinks; one failing does not stop the rest.
"""
from __future__ import annotations

import datetime
import json
import logging
import sys
from typing import Callable, Iterable, List, Optional, TextIO

from .events import GlobalTimeout, MultiSourceWarning, NewSource, Notice, SourceEvicted

log = logging.getLogger("mcwatch.sinks")


def format_time(ts: float) -> str:
    """Local time as HH:MM:SS.fff."""
    dt = datetime.datetime.fromtimestamp(ts)
    return dt.strftime("%H:%M:%S.") + f"{dt.microsecond // 1000:03d}"


def _format_seconds(v: float) -> str:
    return str(int(v)) if float(v).is_integer() else f"{v:g}"


def format_notice(notice: Notice) -> str:
    ts = format_time(notice.time)
    if isinstance(notice, NewSource):
        return f"{ts}: New source {notice.source} for multicast address {notice.group}"
    if isinstance(notice, MultiSourceWarning):
        return f"{ts}: Warning: Multiple sources transmitting on multicast address {notice.group}"
    if isinstance(notice, SourceEvicted):
        return f"{ts}: Removed inactive source {notice.source} for multicast address {notice.group}"
    if isinstance(notice, GlobalTimeout):
        return f"{ts}: Timeout reached. No packets received within the last {_format_seconds(notice.timeout)} seconds."
    raise TypeError(f"unknown notice type: {type(notice).__name__}")


def _canonical_bytes(obj) -> bytes:
    """Canonical JSON bytes: sort keys, round floats to 3 decimals, compact separators."""
    def _round(o):
        if isinstance(o, float):
            return round(o, 3)
        if isinstance(o, dict):
            return {k: _round(o[k]) for k in sorted(o.keys())}
        if isinstance(o, list):
            return [_round(x) for x in o]
        return o

    s = json.dumps(_round(obj), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return s.encode("utf-8")


class ConsoleSink:
    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream

    def __call__(self, notice: Notice) -> None:
        # resolve stdout lazily so redirected sys.stdout is honored
        stream = self._stream or sys.stdout
        stream.write(format_notice(notice) + "\n")
        stream.flush()


class NdjsonSink:
    def __init__(self, path: str):
        self.path = path
        self._fh = open(path, "ab")

    def __call__(self, notice: Notice) -> None:
        self._fh.write(_canonical_bytes(notice.as_dict()))
        self._fh.write(b"\n")
        self._fh.flush()

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()


class CollectingSink:
    def __init__(self):
        self.notices: List[Notice] = []

    def __call__(self, notice: Notice) -> None:
        self.notices.append(notice)

    def kinds(self) -> List[str]:
        return [n.kind for n in self.notices]

    def of_kind(self, kind: str) -> List[Notice]:
        return [n for n in self.notices if n.kind == kind]


class FanoutSink:
    def __init__(self, sinks: Iterable[Callable[[Notice], None]]):
        self.sinks = list(sinks)

    def __call__(self, notice: Notice) -> None:
        for sink in self.sinks:
            try:
                sink(notice)
            except Exception:
                log.exception("sink %r failed", sink)

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if callable(close):
                close()
