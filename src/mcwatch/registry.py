"""Per-group registry of active multicast sources.

Each multicast group address maps to a `GroupState` holding the sources seen
sending to it and their last-seen timestamps. Group states are created lazily
and never removed; an empty state is inert.

The registry is not thread-safe on its own. `mcwatch.engine` gives it a single
owning thread.
"""
from __future__ import annotations

import copy
import dataclasses
import typing as t

from .errors import ClockRegressionError


@dataclasses.dataclass
class GroupState:
    group: str
    sources: dict[str, float] = dataclasses.field(default_factory=dict)

    def touch(self, source: str, now: float) -> bool:
        is_new = source not in self.sources
        self.sources[source] = now
        return is_new

    def stale_sources(self, now: float, timeout: float) -> list[str]:
        stale = []
        for source, last_seen in self.sources.items():
            if now < last_seen:
                raise ClockRegressionError(
                    f"now={now!r} is earlier than last_seen={last_seen!r} for {source} on {self.group}"
                )
            # strict: a source exactly `timeout` old is still active
            if now - last_seen > timeout:
                stale.append(source)
        return stale


@dataclasses.dataclass(frozen=True)
class ActivityResult:
    is_new_source: bool
    active_count: int


class SourceRegistry:
    def __init__(self):
        self._groups: dict[str, GroupState] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def __contains__(self, group: str) -> bool:
        return group in self._groups

    def get_or_create(self, group: str) -> GroupState:
        state = self._groups.get(group)
        if state is None:
            state = GroupState(group=group)
            self._groups[group] = state
        return state

    def record_activity(self, group: str, source: str, now: float) -> ActivityResult:
        """Insert or refresh `source` under `group` and report the new count."""
        state = self.get_or_create(group)
        is_new = state.touch(source, now)
        return ActivityResult(is_new_source=is_new, active_count=len(state.sources))

    def evict_stale(self, group: str, now: float, timeout: float) -> list[str]:
        """Remove sources of `group` idle for more than `timeout` seconds.

        Returns the removed addresses in the order they were first recorded.
        An unknown group evicts nothing.
        """
        state = self._groups.get(group)
        if state is None:
            return []
        evicted = state.stale_sources(now, timeout)
        for source in evicted:
            del state.sources[source]
        return evicted

    def sweep_all(self, now: float, timeout: float) -> dict[str, list[str]]:
        """Apply `evict_stale` to every group; only groups that lost sources are returned."""
        out: dict[str, list[str]] = {}
        for group in self.groups():
            evicted = self.evict_stale(group, now, timeout)
            if evicted:
                out[group] = evicted
        return out

    def active_count(self, group: str) -> int:
        state = self._groups.get(group)
        return len(state.sources) if state is not None else 0

    def groups(self) -> list[str]:
        # deterministic iteration order
        return sorted(self._groups.keys())

    def sources(self, group: str) -> dict[str, float]:
        state = self._groups.get(group)
        return dict(state.sources) if state is not None else {}

    def snapshot(self) -> dict[str, dict[str, float]]:
        return {g: copy.deepcopy(self._groups[g].sources) for g in self.groups()}

    def pairs(self) -> t.Iterator[tuple[str, str]]:
        for group in self.groups():
            for source in sorted(self._groups[group].sources):
                yield group, source
