"""Command line entry point for mcwatch."""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, List, Optional

from . import __version__
from .config import DEFAULT_TICK_INTERVAL, MonitorConfig
from .errors import CaptureError, InvalidConfiguration, MonitorError
from .logging_config import setup_logging
from .sinks import ConsoleSink, FanoutSink, NdjsonSink

log = logging.getLogger("mcwatch.cli")

EXIT_OK = 0
EXIT_CONFIG = 2
EXIT_CAPTURE = 3
EXIT_INTERNAL = 10


def build_parser():
    p = argparse.ArgumentParser(prog="mcwatch", description="Detect competing or silent multicast sources")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    p.add_argument("--log", default="INFO", help="Log level")
    sub = p.add_subparsers(dest="cmd")
    w = sub.add_parser("watch", help="Monitor one multicast group/port")
    w.add_argument("-i", "--interface", help="Capture interface (name, description or list number); prompted if omitted")
    w.add_argument("-g", "--group", help="Multicast group address, e.g. 239.1.1.1; prompted if omitted")
    w.add_argument("-p", "--port", help="UDP port of the group; prompted if omitted")
    w.add_argument("-t", "--timeout", help="Inactivity timeout in seconds; prompted if omitted")
    w.add_argument("--pcap-file", help="Replay a pcap/pcapng file instead of capturing live")
    w.add_argument("--tick-interval", type=float, default=DEFAULT_TICK_INTERVAL, help=argparse.SUPPRESS)
    w.add_argument("--out-ndjson", metavar="FILE", help="Append notices as newline-delimited JSON")
    w.add_argument("--quiet", action="store_true", help="Do not print notices to stdout")
    sub.add_parser("interfaces", help="List capture interfaces")
    return p, {"watch": w}


def choose_interface(interfaces: List[dict], input_fn: Callable[[str], str] = input) -> Optional[str]:
    print("Available Network Interfaces:")
    for i, iface in enumerate(interfaces, 1):
        print(f"{i}. {iface['description']} ({iface['name']})")
    raw = input_fn("Select a network interface (enter the number): ").strip()
    if raw.isdigit() and 0 < int(raw) <= len(interfaces):
        return interfaces[int(raw) - 1]["name"]
    return None


def prompt_settings(args, input_fn: Callable[[str], str] = input) -> None:
    """Fill in any of group/port/timeout missing from `args` interactively."""
    if not args.group:
        args.group = input_fn("Enter multicast address (e.g., 224.0.0.1): ").strip()
    while args.port is None or not str(args.port).strip().isdigit():
        if args.port is not None:
            print("Invalid port. Please enter a valid numeric port.")
        args.port = input_fn("Enter multicast port: ").strip()
    while args.timeout is None or not str(args.timeout).strip().isdigit() or int(args.timeout) <= 0:
        if args.timeout is not None:
            print("Invalid timeout. Please enter a valid positive integer.")
        args.timeout = input_fn("Enter the timeout in seconds: ").strip()


def _build_sink(args):
    sinks = []
    if not args.quiet:
        sinks.append(ConsoleSink())
    if args.out_ndjson:
        sinks.append(NdjsonSink(args.out_ndjson))
    return FanoutSink(sinks)


def _run_replay(args, config: MonitorConfig, sink) -> int:
    from .engine import replay
    from .ingest import capture_span, iter_events

    # silence is measured over the whole file, matching traffic or not
    span = capture_span(args.pcap_file)
    start, end = span if span is not None else (None, None)
    events = (ev for ev in iter_events(args.pcap_file) if config.matches(ev))
    core = replay(events, config, sink, start_time=start, end_time=end)
    log.info(
        "replayed %s: %d matching events, %d groups",
        args.pcap_file, core.events_seen, len(core.registry),
    )
    return EXIT_OK


def _run_live(args, config: MonitorConfig, sink) -> int:
    from .engine import MonitorEngine
    from .live_capture import LiveCapture

    engine = MonitorEngine(config, sink)
    capture = LiveCapture(config.interface, config.bpf_filter, engine.submit)
    engine.start()
    try:
        capture.start()
        while not engine.wait(0.5):
            if not capture.running:
                log.error("capture on %s ended unexpectedly", config.interface)
                return EXIT_CAPTURE
    except KeyboardInterrupt:
        log.info("interrupted")
    finally:
        capture.stop()
        engine.stop(timeout=2.0)
    return EXIT_OK


def cmd_interfaces() -> int:
    from .live_capture import list_interfaces

    interfaces = list_interfaces()
    if not interfaces:
        print("No capture devices were found. Make sure libpcap/Npcap is installed.")
        return EXIT_CAPTURE
    for i, iface in enumerate(interfaces, 1):
        print(f"{i}. {iface['description']} ({iface['name']})")
    return EXIT_OK


def cmd_watch(args, input_fn: Callable[[str], str] = input) -> int:
    interface = None
    if not args.pcap_file:
        from .live_capture import list_interfaces, resolve_interface

        interfaces = list_interfaces()
        if not interfaces:
            print("No capture devices were found. Make sure libpcap/Npcap is installed.")
            return EXIT_CAPTURE
        if args.interface:
            interface = resolve_interface(args.interface, interfaces)
        else:
            interface = choose_interface(interfaces, input_fn)
            if interface is None:
                print("Invalid selection or no network interfaces available.")
                return EXIT_CAPTURE
        prompt_settings(args, input_fn)

    config = MonitorConfig.from_values(
        args.group, args.port, args.timeout, interface=interface, tick_interval=args.tick_interval,
    )
    sink = _build_sink(args)
    try:
        if args.pcap_file:
            return _run_replay(args, config, sink)
        return _run_live(args, config, sink)
    finally:
        sink.close()


def main(argv=None):
    parser, subparsers = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log)
    if args.cmd is None:
        parser.print_help()
        return EXIT_CONFIG
    try:
        if args.cmd == "interfaces":
            return cmd_interfaces()
        return cmd_watch(args)
    except InvalidConfiguration as e:
        log.error("invalid configuration: %s", e)
        return EXIT_CONFIG
    except CaptureError as e:
        log.error("capture error: %s", e)
        return EXIT_CAPTURE
    except MonitorError as e:
        log.critical("monitor failed: %s", e)
        return EXIT_INTERNAL


if __name__ == "__main__":
    sys.exit(main())
