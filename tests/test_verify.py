import struct
import zlib

import pytest

from ssrkit.verify import VerifyError, VerifySimple, pack_data


def test_pack_data_layout():
    payload = b"hello world"
    packet = pack_data(payload)
    overhead = len(packet) - len(payload)
    assert 7 <= overhead <= 22
    assert struct.unpack(">H", packet[:2])[0] == len(packet)
    assert packet[2] == overhead - 6
    assert packet[2 + packet[2]:-4] == payload


def test_pack_data_crc_residue():
    packet = pack_data(b"abc")
    assert zlib.crc32(packet) == 0xFFFFFFFF


def test_round_trip_client_to_server():
    client, server = VerifySimple(), VerifySimple()
    payload = bytes(range(256)) * 3
    assert server.server_post_decrypt(client.client_pre_encrypt(payload)) == payload


def test_round_trip_server_to_client():
    client, server = VerifySimple(), VerifySimple()
    payload = b"response body"
    assert client.client_post_decrypt(server.server_pre_encrypt(payload)) == payload


def test_large_data_split_into_units():
    payload = bytes(5000)
    stream = VerifySimple().client_pre_encrypt(payload)
    lengths = []
    rest = stream
    while rest:
        size = struct.unpack(">H", rest[:2])[0]
        lengths.append(size - rest[2] - 6)
        rest = rest[size:]
    assert lengths == [2000, 2000, 1000]


def test_empty_data_gives_empty_stream():
    assert VerifySimple().client_pre_encrypt(b"") == b""


def test_partial_delivery_byte_by_byte():
    payload = b"fragmented payload" * 10
    stream = VerifySimple().client_pre_encrypt(payload)
    server = VerifySimple()
    received = b"".join(server.server_post_decrypt(stream[i:i + 1]) for i in range(len(stream)))
    assert received == payload


def test_incomplete_packet_returns_nothing_yet():
    stream = pack_data(b"abcdef")
    server = VerifySimple()
    assert server.server_post_decrypt(stream[:-1]) == b""
    assert server.server_post_decrypt(stream[-1:]) == b"abcdef"


def test_bad_length_raises():
    with pytest.raises(VerifyError):
        VerifySimple().server_post_decrypt(b"\x00\x03\x01\x00\x00")


def test_too_long_length_raises():
    with pytest.raises(VerifyError):
        VerifySimple().client_post_decrypt(b"\x20\x00\x01")


def test_corrupt_crc_raises():
    packet = bytearray(pack_data(b"payload"))
    packet[-1] ^= 0xFF
    with pytest.raises(VerifyError):
        VerifySimple().client_post_decrypt(bytes(packet))


def test_buffer_reset_after_error():
    server = VerifySimple()
    with pytest.raises(VerifyError):
        server.server_post_decrypt(b"\x00\x03\x01")
    assert server.server_post_decrypt(pack_data(b"ok")) == b"ok"


def test_buffer_limit_enforced():
    with pytest.raises(VerifyError):
        VerifySimple().server_post_decrypt(bytes(16385))