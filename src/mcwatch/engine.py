"""Single-writer monitor engine.

Capture callbacks and the sweeper's ticker never touch the registry directly.
Both enqueue work on one `queue.Queue`; a single consumer thread owns the
registry, the tracker and the sweeper, and is the only thread that emits
notices. That keeps per-event notice order intact without any locking of the
registry itself.

Design notes:
- Events are stamped with `clock()` when the consumer dequeues them (arrival
  time), and ticks are evaluated with `clock()` on the same thread, so `now`
  never runs backwards across queue items.
- `stop()` sets a shared event and wakes the consumer with a sentinel; both
  loops exit within one tick or one event.
- An exception on the consumer thread is fatal: the engine stops accepting
  events and the error is re-raised from `wait()` or `stop()`.
- `replay()` is the deterministic single-threaded counterpart used for pcap
  files and tests: the clock is the event timestamp and ticks are
  synthesized between events.
"""
from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Iterable, List, Optional

from .config import MonitorConfig
from .events import CaptureEvent, Notice
from .registry import SourceRegistry
from .sweeper import EvictionSweeper
from .tracker import ActivityTracker

log = logging.getLogger("mcwatch.engine")

_EVENT = "event"
_TICK = "tick"
_STOP = "stop"


class SteadyClock:
    """Wall-clock epoch seconds that advance with `time.monotonic()`."""

    def __init__(self):
        self._wall0 = time.time()
        self._mono0 = time.monotonic()

    def __call__(self) -> float:
        return self._wall0 + (time.monotonic() - self._mono0)


class MonitorCore:
    """Registry, tracker and sweeper wired together; not thread-safe."""

    def __init__(self, config: MonitorConfig, sink: Callable[[Notice], None], start_time: float):
        self.config = config
        self.sink = sink
        self.registry = SourceRegistry()
        self.sweeper = EvictionSweeper(self.registry, config.timeout, start_time)
        self.tracker = ActivityTracker(self.registry, self.sweeper, config.timeout)
        self.events_seen = 0

    def on_event(self, event: CaptureEvent, now: float) -> List[Notice]:
        self.events_seen += 1
        return self._emit(self.tracker.handle(event, now))

    def on_tick(self, now: float) -> List[Notice]:
        return self._emit(self.sweeper.tick(now))

    def _emit(self, notices: List[Notice]) -> List[Notice]:
        for n in notices:
            try:
                self.sink(n)
            except Exception:
                log.exception("notice sink failed for %s", n.kind)
        return notices


class MonitorEngine:
    def __init__(
        self,
        config: MonitorConfig,
        sink: Callable[[Notice], None],
        clock: Optional[Callable[[], float]] = None,
        tick_interval: Optional[float] = None,
    ):
        self.config = config
        self.clock = clock or SteadyClock()
        self.tick_interval = tick_interval if tick_interval is not None else config.tick_interval
        self.core = MonitorCore(config, sink, start_time=self.clock())
        self.error: Optional[BaseException] = None
        self._error_raised = False
        self._queue: "queue.Queue" = queue.Queue()
        self._stop = threading.Event()
        self._consumer: Optional[threading.Thread] = None
        self._ticker: Optional[threading.Thread] = None

    @property
    def registry(self) -> SourceRegistry:
        # only safe to inspect once the engine is stopped
        return self.core.registry

    @property
    def stopping(self) -> bool:
        return self._stop.is_set()

    def start(self) -> "MonitorEngine":
        if self._consumer is not None:
            raise RuntimeError("engine already started")
        # silence window starts when monitoring starts
        self.core.sweeper.mark_activity(self.clock())
        self._consumer = threading.Thread(target=self._consume, name="mcwatch-consumer", daemon=True)
        self._ticker = threading.Thread(target=self._tick_loop, name="mcwatch-ticker", daemon=True)
        self._consumer.start()
        self._ticker.start()
        log.info("monitoring %s port %s (timeout %ss)", self.config.group, self.config.port, self.config.timeout)
        return self

    def submit(self, event: CaptureEvent) -> bool:
        """Queue an event from any thread; returns False once stopping."""
        if self._stop.is_set():
            return False
        self._queue.put((_EVENT, event))
        return True

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop both threads; re-raises a fatal consumer error not yet raised by `wait()`."""
        if not self._stop.is_set():
            self._stop.set()
            self._queue.put((_STOP, None))
        for th in (self._ticker, self._consumer):
            if th is not None and th is not threading.current_thread():
                th.join(timeout)
        log.info("monitor stopped after %d events", self.core.events_seen)
        self._raise_error()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stopped; raises the consumer's error if it died."""
        stopped = self._stop.wait(timeout)
        self._raise_error()
        return stopped

    def _raise_error(self) -> None:
        if self.error is not None and not self._error_raised:
            self._error_raised = True
            raise self.error

    def __enter__(self) -> "MonitorEngine":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.stop()

    def _tick_loop(self) -> None:
        while not self._stop.wait(self.tick_interval):
            self._queue.put((_TICK, None))

    def _consume(self) -> None:
        try:
            while True:
                kind, payload = self._queue.get()
                if kind == _STOP or self._stop.is_set():
                    break
                now = self.clock()
                if kind == _EVENT:
                    self.core.on_event(payload, now)
                else:
                    self.core.on_tick(now)
        except BaseException as e:
            # invariant failures are fatal: stop accepting work and hand the
            # error to whoever waits on or stops the engine
            log.critical("monitor consumer failed: %s", e)
            self.error = e
            self._stop.set()


def replay(
    events: Iterable[CaptureEvent],
    config: MonitorConfig,
    sink: Callable[[Notice], None],
    tick_interval: Optional[float] = None,
    start_time: Optional[float] = None,
    end_time: Optional[float] = None,
) -> MonitorCore:
    """Run events through the engine deterministically using their own timestamps.

    Sweeper ticks are synthesized every `tick_interval` seconds of capture
    time, starting at `start_time` (default: the first event). An event older
    than its predecessor, or than `start_time`, is clamped forward to that
    time. With `end_time`, ticking continues after the last event
    up to that time. Without any events and without `start_time` no time elapses,
    so nothing is emitted.
    """
    step = tick_interval if tick_interval is not None else config.tick_interval
    core: Optional[MonitorCore] = None
    next_tick = 0.0
    now = 0.0
    if start_time is not None:
        now = float(start_time)
        core = MonitorCore(config, sink, start_time=now)
        next_tick = now + step
    for ev in events:
        if core is None:
            now = float(ev.time)
            core = MonitorCore(config, sink, start_time=now)
            next_tick = now + step
        else:
            now = max(now, float(ev.time))
            while next_tick <= now:
                core.on_tick(next_tick)
                next_tick += step
        core.on_event(ev, now)

    if core is None:
        start = end_time if end_time is not None else 0.0
        return MonitorCore(config, sink, start_time=start)
    if end_time is not None:
        while next_tick <= end_time:
            core.on_tick(next_tick)
            next_tick += step
    return core
