"""Global-silence sweeper.

On every tick the sweeper checks whether the whole capture has been silent
for longer than `timeout`. If so it emits one `GlobalTimeout`, sweeps every
group, and restarts the silence window at `now`, so a long silence produces
one notice per `timeout` window rather than one per tick.

The sweeper does not prune a stale source on its own while other traffic
keeps flowing; outside of global silence, sources are evicted only by the
tracker when a group has competing sources.
"""
from __future__ import annotations

import logging
from typing import List

from .events import GlobalTimeout, Notice, SourceEvicted
from .registry import SourceRegistry

log = logging.getLogger("mcwatch.sweeper")


class EvictionSweeper:
    def __init__(self, registry: SourceRegistry, timeout: float, start_time: float):
        self.registry = registry
        self.timeout = timeout
        self.last_activity = start_time

    def mark_activity(self, now: float) -> None:
        self.last_activity = now

    def silent_for(self, now: float) -> float:
        return now - self.last_activity

    def tick(self, now: float) -> List[Notice]:
        if self.silent_for(now) <= self.timeout:
            return []
        log.debug("no traffic for %.3fs (timeout %ss)", self.silent_for(now), self.timeout)
        notices: List[Notice] = [GlobalTimeout(time=now, timeout=self.timeout)]
        for group, evicted in self.registry.sweep_all(now, self.timeout).items():
            for source in evicted:
                notices.append(SourceEvicted(source=source, group=group, time=now))
        self.last_activity = now
        return notices
