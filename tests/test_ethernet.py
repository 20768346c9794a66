import pytest

from netstack.ethernet import (
    ETHERNET_BROADCAST,
    EthernetFrame,
    EthernetHeader,
    format_ethernet_address,
)
from netstack.wire import Parser, parse, serialize

LOCAL = bytes([0x02, 0x00, 0x00, 0x00, 0x00, 0x0A])
REMOTE = bytes([0x02, 0x11, 0x22, 0x33, 0x44, 0x55])


def test_format_address():
    assert format_ethernet_address(LOCAL) == "02:00:00:00:00:0a"


def test_format_broadcast():
    assert format_ethernet_address(ETHERNET_BROADCAST) == "ff:ff:ff:ff:ff:ff"


def test_header_wire_layout():
    header = EthernetHeader(dst=ETHERNET_BROADCAST, src=LOCAL, type=EthernetHeader.TYPE_ARP)
    out = serialize(header)
    assert out == [ETHERNET_BROADCAST + LOCAL + EthernetHeader.TYPE_ARP.to_bytes(2, "big")]
    assert len(out[0]) == EthernetHeader.LENGTH


def test_header_round_trip():
    header = EthernetHeader(dst=REMOTE, src=LOCAL, type=EthernetHeader.TYPE_IPv4)
    parsed = EthernetHeader()
    assert parse(parsed, serialize(header))
    assert parsed == header


def test_header_parse_short_input_is_error():
    parsed = EthernetHeader()
    assert not parse(parsed, [b"\x01\x02\x03"])


def test_header_bad_address_length():
    header = EthernetHeader(dst=b"\x01\x02", src=LOCAL, type=EthernetHeader.TYPE_IPv4)
    with pytest.raises(ValueError):
        serialize(header)


@pytest.mark.parametrize(
    "frame_type, text",
    [(EthernetHeader.TYPE_IPv4, "type=IPv4"), (EthernetHeader.TYPE_ARP, "type=ARP")],
)
def test_header_str_known_types(frame_type, text):
    header = EthernetHeader(dst=REMOTE, src=LOCAL, type=frame_type)
    rendered = str(header)
    assert rendered.endswith(text)
    assert rendered.startswith("dst=" + format_ethernet_address(REMOTE))


def test_header_str_unknown_type():
    header = EthernetHeader(dst=REMOTE, src=LOCAL, type=0x1234)
    assert str(header).endswith("type=[unknown type 1234!]")


def test_frame_round_trip():
    frame = EthernetFrame(
        header=EthernetHeader(dst=REMOTE, src=LOCAL, type=EthernetHeader.TYPE_IPv4),
        payload=[b"hello", b"world"],
    )
    out = serialize(frame)
    assert out[1:] == [b"hello", b"world"]
    parsed = EthernetFrame()
    assert parse(parsed, out)
    assert parsed.header == frame.header
    assert b"".join(parsed.payload) == b"helloworld"


def test_frame_parse_from_single_buffer():
    header = EthernetHeader(dst=REMOTE, src=LOCAL, type=EthernetHeader.TYPE_ARP)
    wire = b"".join(serialize(header)) + b"payload"
    frame = EthernetFrame()
    frame.parse(Parser([wire]))
    assert frame.header == header
    assert frame.payload == [b"payload"]