import dpkt

from mcwatch.packet import parse_raw
from tests.utils_pcap import arp_frame, udp_frame


def test_parse_ipv4_udp_multicast():
    ev = parse_raw(12.5, udp_frame("192.0.2.10", "239.1.1.1", sport=40000, dport=5004))
    assert ev is not None
    assert ev.time == 12.5
    assert ev.src_ip == "192.0.2.10"
    assert ev.dst_ip == "239.1.1.1"
    assert (ev.src_port, ev.dst_port) == (40000, 5004)
    assert ev.group == "239.1.1.1"
    assert ev.source == "192.0.2.10"


def test_parse_ipv6_udp_multicast():
    ev = parse_raw(1.0, udp_frame("2001:db8::1", "ff15::1234", dport=6000))
    assert ev is not None
    assert ev.src_ip == "2001:db8::1"
    assert ev.dst_ip == "ff15::1234"
    assert ev.dst_port == 6000


def test_parse_raw_ip_linktype():
    frame = udp_frame("192.0.2.10", "239.1.1.1")
    ip_only = bytes(dpkt.ethernet.Ethernet(frame).data)
    ev = parse_raw(1.0, ip_only, linktype=dpkt.pcap.DLT_RAW)
    assert ev is not None
    assert ev.dst_ip == "239.1.1.1"


def test_non_ip_and_garbage_are_dropped():
    assert parse_raw(1.0, arp_frame()) is None
    assert parse_raw(1.0, b"") is None
    assert parse_raw(1.0, b"\x00\x01\x02") is None
