"""Per-event source tracking.

`ActivityTracker.handle` turns one capture event into registry updates and
notices, always in this order:

1. refresh the source's last-seen time in its group;
2. a `NewSource` notice (emitted for every packet, including repeats);
3. when the group has more than one source: a `MultiSourceWarning`, then
   eviction of that group's stale sources with a `SourceEvicted` each;
4. record global activity on the sweeper.
"""
from __future__ import annotations

from typing import List

from .events import CaptureEvent, MultiSourceWarning, NewSource, Notice, SourceEvicted
from .registry import SourceRegistry
from .sweeper import EvictionSweeper


class ActivityTracker:
    def __init__(self, registry: SourceRegistry, sweeper: EvictionSweeper, timeout: float):
        self.registry = registry
        self.sweeper = sweeper
        self.timeout = timeout

    def handle(self, event: CaptureEvent, now: float) -> List[Notice]:
        group = event.group
        source = event.source
        result = self.registry.record_activity(group, source, now)

        notices: List[Notice] = [NewSource(source=source, group=group, time=now)]
        if result.active_count > 1:
            notices.append(MultiSourceWarning(group=group, time=now))
            for stale in self.registry.evict_stale(group, now, self.timeout):
                notices.append(SourceEvicted(source=stale, group=group, time=now))

        self.sweeper.mark_activity(now)
        return notices
