"""Capture events and the notices the engine emits for them.

`CaptureEvent` is what the packet decoder hands to the engine. Notices are
immutable records delivered to sinks in emission order; `as_dict()` gives a
JSON-safe form with a `kind` discriminator.
"""
from __future__ import annotations

import dataclasses
import typing as t

NOTICE_SCHEMA = "notice/v1"


@dataclasses.dataclass(frozen=True)
class CaptureEvent:
    time: float
    src_ip: str
    dst_ip: str
    src_port: int = 0
    dst_port: int = 0

    @property
    def group(self) -> str:
        return self.dst_ip

    @property
    def source(self) -> str:
        return self.src_ip


class _Notice:
    kind: t.ClassVar[str] = "notice"

    def as_dict(self) -> dict:
        d = dataclasses.asdict(self)
        d["kind"] = self.kind
        d["schema_version"] = NOTICE_SCHEMA
        return d


@dataclasses.dataclass(frozen=True)
class NewSource(_Notice):
    source: str
    group: str
    time: float
    kind: t.ClassVar[str] = "new_source"


@dataclasses.dataclass(frozen=True)
class MultiSourceWarning(_Notice):
    group: str
    time: float
    kind: t.ClassVar[str] = "multi_source_warning"


@dataclasses.dataclass(frozen=True)
class SourceEvicted(_Notice):
    source: str
    group: str
    time: float
    kind: t.ClassVar[str] = "source_evicted"


@dataclasses.dataclass(frozen=True)
class GlobalTimeout(_Notice):
    time: float
    timeout: float
    kind: t.ClassVar[str] = "global_timeout"


Notice = t.Union[NewSource, MultiSourceWarning, SourceEvicted, GlobalTimeout]
