import struct

import pytest

from socks5_relay.core.exceptions import ProtocolError, ProtocolErrorKind
from socks5_relay.core.lib import wire
from socks5_relay.core.lib.wire import AddressType, AuthMethod, DetailReply, ReplyCode


class ChunkedStream:
    """Hands out at most ``chunk`` bytes per recv, then EOF."""

    def __init__(self, data, chunk=1):
        self.data = data
        self.chunk = chunk

    def recv(self, bufsize):
        n = min(bufsize, self.chunk)
        out, self.data = self.data[:n], self.data[n:]
        return out


def test_read_exact_joins_partial_reads():
    stream = ChunkedStream(b"abcdef", chunk=1)
    assert wire.read_exact(stream, 4) == b"abcd"
    assert stream.data == b"ef"


def test_read_exact_truncated():
    with pytest.raises(ProtocolError) as exc:
        wire.read_exact(ChunkedStream(b"ab"), 3)
    assert exc.value.kind is ProtocolErrorKind.TRUNCATED


def test_decode_greeting():
    greeting = wire.decode_greeting(ChunkedStream(b"\x05\x03\x02\x00\x01"))
    assert greeting.version == 5
    assert greeting.methods == b"\x02\x00\x01"
    assert greeting.offers(AuthMethod.NO_AUTH)
    assert not greeting.offers(0x80)


def test_decode_greeting_without_methods():
    greeting = wire.decode_greeting(ChunkedStream(b"\x05\x00"))
    assert greeting.methods == b""
    assert not greeting.offers(AuthMethod.NO_AUTH)


def test_decode_greeting_bad_version_does_not_read_methods():
    stream = ChunkedStream(b"\x04\x01\x00", chunk=10)
    with pytest.raises(ProtocolError) as exc:
        wire.decode_greeting(stream)
    assert exc.value.kind is ProtocolErrorKind.UNSUPPORTED_VERSION
    assert stream.data == b"\x00"


def test_decode_greeting_truncated_methods():
    with pytest.raises(ProtocolError) as exc:
        wire.decode_greeting(ChunkedStream(b"\x05\x03\x00"))
    assert exc.value.kind is ProtocolErrorKind.TRUNCATED


def test_encode_method_selection():
    assert wire.encode_method_selection(AuthMethod.NO_AUTH) == b"\x05\x00"
    assert wire.encode_method_selection(AuthMethod.NO_ACCEPTABLE) == b"\x05\xff"


def test_decode_ipv4_request():
    request = wire.decode_detail_request(ChunkedStream(b"\x05\x01\x00\x01\x7f\x00\x00\x01\x00\x50"))
    assert request.command == 1
    assert request.address_type is AddressType.IPV4
    assert request.address == b"\x7f\x00\x00\x01"
    assert request.port == 80
    assert request.destination == "127.0.0.1:80"


@pytest.mark.parametrize(
    ("address", "port", "expected"),
    [
        (b"\x00\x00\x00\x00", 0, "0.0.0.0:0"),
        (b"\xff\xff\xff\xff", 65535, "255.255.255.255:65535"),
        (b"\x0a\x01\xc8\x02", 1080, "10.1.200.2:1080"),
    ],
)
def test_ipv4_destination_formatting(address, port, expected):
    data = b"\x05\x01\x00\x01" + address + struct.pack("!H", port)
    assert wire.decode_detail_request(ChunkedStream(data, chunk=3)).destination == expected


def test_decode_domain_request():
    name = b"example.com"
    data = b"\x05\x01\x00\x03" + bytes([len(name)]) + name + b"\x01\xbb"
    request = wire.decode_detail_request(ChunkedStream(data, chunk=2))
    assert request.address_type is AddressType.DOMAIN
    assert request.address == name
    assert len(request.address) == len(name)
    assert request.destination == "example.com:443"


def test_decode_domain_request_max_and_empty_length():
    long_name = b"a" * 255
    request = wire.decode_detail_request(ChunkedStream(b"\x05\x01\x00\x03\xff" + long_name + b"\x00\x16", chunk=64))
    assert len(request.address) == 255

    request = wire.decode_detail_request(ChunkedStream(b"\x05\x01\x00\x03\x00\x00\x50"))
    assert request.address == b""
    assert request.destination == ":80"


def test_decode_domain_request_truncated_name():
    with pytest.raises(ProtocolError) as exc:
        wire.decode_detail_request(ChunkedStream(b"\x05\x01\x00\x03\x0aexample"))
    assert exc.value.kind is ProtocolErrorKind.TRUNCATED


def test_decode_request_with_predecoded_header():
    stream = ChunkedStream(b"\x05\x01\x00\x01\xc0\xa8\x00\x01\x1f\x90", chunk=10)
    header = wire.decode_detail_header(stream)
    assert header == wire.DetailHeader(version=5, command=1, reserved=0, address_type=1)
    assert wire.decode_detail_request(stream, header).destination == "192.168.0.1:8080"


def test_decode_request_unknown_address_type():
    with pytest.raises(ProtocolError) as exc:
        wire.decode_detail_request(ChunkedStream(b"\x05\x01\x00\x04" + b"\x00" * 18))
    assert exc.value.kind is ProtocolErrorKind.MALFORMED


def test_encode_failure_reply():
    encoded = wire.encode_detail_reply(DetailReply.failure(ReplyCode.COMMAND_NOT_SUPPORTED))
    assert encoded == b"\x05\x07\x00\x01\x00\x00\x00\x00\x00\x00"


def test_encode_success_reply():
    encoded = wire.encode_detail_reply(DetailReply.success(("192.168.1.20", 0x1234)))
    assert encoded == b"\x05\x00\x00\x01\xc0\xa8\x01\x14\x12\x34"
    assert len(encoded) == 10


def test_success_reply_for_ipv6_socket_zeroes_address():
    reply = DetailReply.success(("::1", 4321, 0, 0))
    assert wire.encode_detail_reply(reply) == b"\x05\x00\x00\x01\x00\x00\x00\x00\x10\xe1"


def test_reply_codes_match_rfc1928():
    assert [code.value for code in ReplyCode] == list(range(10))
