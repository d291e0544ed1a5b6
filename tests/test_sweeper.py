from mcwatch.config import MonitorConfig
from mcwatch.engine import replay
from mcwatch.events import CaptureEvent, GlobalTimeout, SourceEvicted
from mcwatch.registry import SourceRegistry
from mcwatch.sweeper import EvictionSweeper

G = "239.1.1.1"


def test_tick_is_quiet_within_timeout():
    reg = SourceRegistry()
    reg.record_activity(G, "10.0.0.1", 0.0)
    sw = EvictionSweeper(reg, 5, start_time=0.0)
    assert sw.tick(5.0) == []
    assert reg.active_count(G) == 1


def test_global_timeout_sweeps_all_groups_and_resets_window():
    reg = SourceRegistry()
    reg.record_activity(G, "10.0.0.1", 0.0)
    reg.record_activity("239.2.2.2", "10.0.0.2", 0.0)
    sw = EvictionSweeper(reg, 5, start_time=0.0)

    notices = sw.tick(6.0)
    assert notices == [
        GlobalTimeout(time=6.0, timeout=5),
        SourceEvicted(source="10.0.0.1", group=G, time=6.0),
        SourceEvicted(source="10.0.0.2", group="239.2.2.2", time=6.0),
    ]
    assert sw.last_activity == 6.0
    # debounced: the next tick in the same window is quiet
    assert sw.tick(6.1) == []
    assert sw.tick(11.0) == []
    assert sw.tick(11.5) == [GlobalTimeout(time=11.5, timeout=5)]


def test_global_timeout_without_sources_still_fires():
    sw = EvictionSweeper(SourceRegistry(), 2, start_time=100.0)
    assert sw.tick(102.5) == [GlobalTimeout(time=102.5, timeout=2)]


def test_sweeper_does_not_prune_lone_stale_source_while_traffic_flows():
    reg = SourceRegistry()
    sw = EvictionSweeper(reg, 5, start_time=0.0)
    reg.record_activity(G, "10.0.0.1", 0.0)
    for t in range(1, 30):
        reg.record_activity("239.2.2.2", "10.0.0.2", float(t))
        sw.mark_activity(float(t))
        assert sw.tick(t + 0.5) == []
    assert reg.sources(G) == {"10.0.0.1": 0.0}


def test_one_global_timeout_per_silent_window_in_replay(collecting_sink):
    cfg = MonitorConfig(group=G, port=5000, timeout=5, tick_interval=1.0)
    sink = collecting_sink
    replay([CaptureEvent(time=0.0, src_ip="10.0.0.1", dst_ip=G)], cfg, sink, end_time=20.0)
    timeouts = sink.of_kind("global_timeout")
    # 20 ticks elapsed, windows close at 6, 12 and 18
    assert [n.time for n in timeouts] == [6.0, 12.0, 18.0]
    assert sink.of_kind("source_evicted") == [SourceEvicted(source="10.0.0.1", group=G, time=6.0)]


def test_source_refreshed_every_half_timeout_is_never_evicted(collecting_sink):
    cfg = MonitorConfig(group=G, port=5000, timeout=4, tick_interval=0.5)
    sink = collecting_sink
    events = [CaptureEvent(time=float(t), src_ip="10.0.0.1", dst_ip=G) for t in range(0, 200, 2)]
    # a second, equally regular source keeps the warning path busy
    events += [CaptureEvent(time=t + 1.0, src_ip="10.0.0.2", dst_ip=G) for t in range(0, 200, 2)]
    events.sort(key=lambda e: e.time)
    core = replay(events, cfg, sink)
    assert sink.of_kind("source_evicted") == []
    assert sink.of_kind("global_timeout") == []
    assert core.registry.active_count(G) == 2
