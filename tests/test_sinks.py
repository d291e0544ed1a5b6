import datetime
import io
import json

from mcwatch.events import GlobalTimeout, MultiSourceWarning, NewSource, SourceEvicted
from mcwatch.sinks import CollectingSink, ConsoleSink, FanoutSink, NdjsonSink, format_notice, format_time

G = "239.1.1.1"
TS = datetime.datetime(2026, 1, 12, 9, 5, 7, 42000).timestamp()


def test_format_time_millis():
    assert format_time(TS) == "09:05:07.042"


def test_console_lines():
    buf = io.StringIO()
    sink = ConsoleSink(buf)
    sink(NewSource(source="10.0.0.1", group=G, time=TS))
    sink(MultiSourceWarning(group=G, time=TS))
    sink(SourceEvicted(source="10.0.0.1", group=G, time=TS))
    sink(GlobalTimeout(time=TS, timeout=30))
    assert buf.getvalue().splitlines() == [
        "09:05:07.042: New source 10.0.0.1 for multicast address 239.1.1.1",
        "09:05:07.042: Warning: Multiple sources transmitting on multicast address 239.1.1.1",
        "09:05:07.042: Removed inactive source 10.0.0.1 for multicast address 239.1.1.1",
        "09:05:07.042: Timeout reached. No packets received within the last 30 seconds.",
    ]


def test_fractional_timeout_rendering():
    line = format_notice(GlobalTimeout(time=TS, timeout=0.5))
    assert line.endswith("within the last 0.5 seconds.")


def test_ndjson_sink_appends_canonical_lines(tmp_path):
    path = tmp_path / "notices.ndjson"
    sink = NdjsonSink(str(path))
    sink(NewSource(source="10.0.0.1", group=G, time=1.23456))
    sink(GlobalTimeout(time=2.0, timeout=5))
    sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    first = json.loads(lines[0])
    assert first == {
        "group": G,
        "kind": "new_source",
        "schema_version": "notice/v1",
        "source": "10.0.0.1",
        "time": 1.235,
    }
    # keys sorted, compact separators
    assert lines[1] == '{"kind":"global_timeout","schema_version":"notice/v1","time":2.0,"timeout":5}'


def test_fanout_isolates_failing_sink():
    collected = CollectingSink()

    def broken(_notice):
        raise RuntimeError("boom")

    fan = FanoutSink([broken, collected])
    fan(MultiSourceWarning(group=G, time=1.0))
    assert collected.kinds() == ["multi_source_warning"]
