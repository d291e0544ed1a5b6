"""Per-event notice sequences from the activity tracker."""
from mcwatch.events import CaptureEvent, MultiSourceWarning, NewSource, SourceEvicted
from mcwatch.registry import SourceRegistry
from mcwatch.sweeper import EvictionSweeper
from mcwatch.tracker import ActivityTracker

G = "239.1.1.1"
A = "10.0.0.1"
B = "10.0.0.2"
T0 = 1_700_000_000.0


def _tracker(timeout=5):
    reg = SourceRegistry()
    sweeper = EvictionSweeper(reg, timeout, start_time=T0)
    return reg, sweeper, ActivityTracker(reg, sweeper, timeout)


def _feed(tracker, events):
    out = []
    for ts, src, grp in events:
        out.extend(tracker.handle(CaptureEvent(time=ts, src_ip=src, dst_ip=grp), ts))
    return out


def test_single_source_never_warns():
    _, _, tr = _tracker()
    notices = _feed(tr, [(T0 + i * 0.5, A, G) for i in range(50)])
    assert all(isinstance(n, NewSource) for n in notices)
    assert len(notices) == 50


def test_new_source_notice_for_every_packet():
    reg, _, tr = _tracker()
    notices = _feed(tr, [(T0, A, G), (T0 + 1, A, G), (T0 + 2, A, G)])
    assert notices == [
        NewSource(source=A, group=G, time=T0),
        NewSource(source=A, group=G, time=T0 + 1),
        NewSource(source=A, group=G, time=T0 + 2),
    ]
    assert reg.sources(G) == {A: T0 + 2}


def test_second_source_triggers_warning():
    _, _, tr = _tracker()
    notices = _feed(tr, [(T0, A, G), (T0 + 1, B, G)])
    assert notices == [
        NewSource(source=A, group=G, time=T0),
        NewSource(source=B, group=G, time=T0 + 1),
        MultiSourceWarning(group=G, time=T0 + 1),
    ]


def test_warning_repeats_while_both_sources_active():
    _, _, tr = _tracker()
    notices = _feed(tr, [(T0, A, G), (T0 + 1, B, G), (T0 + 2, A, G)])
    assert [n.kind for n in notices] == [
        "new_source", "new_source", "multi_source_warning", "new_source", "multi_source_warning",
    ]


def test_reactive_eviction_on_warning():
    reg, _, tr = _tracker(timeout=5)
    notices = _feed(tr, [(T0, A, G), (T0 + 10, B, G)])
    assert notices == [
        NewSource(source=A, group=G, time=T0),
        NewSource(source=B, group=G, time=T0 + 10),
        MultiSourceWarning(group=G, time=T0 + 10),
        SourceEvicted(source=A, group=G, time=T0 + 10),
    ]
    assert reg.sources(G) == {B: T0 + 10}


def test_lone_stale_source_is_not_pruned_by_its_own_traffic_elsewhere():
    reg, _, tr = _tracker(timeout=5)
    # A goes quiet on G while traffic continues on another group
    _feed(tr, [(T0, A, G)] + [(T0 + i, B, "239.2.2.2") for i in range(1, 30)])
    assert reg.sources(G) == {A: T0}


def test_groups_are_tracked_independently():
    _, _, tr = _tracker()
    notices = _feed(tr, [(T0, A, G), (T0 + 1, B, "239.2.2.2")])
    assert not any(isinstance(n, MultiSourceWarning) for n in notices)


def test_handle_marks_global_activity():
    _, sweeper, tr = _tracker()
    _feed(tr, [(T0 + 3, A, G)])
    assert sweeper.last_activity == T0 + 3
