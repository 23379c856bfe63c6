"""The verify_simple protocol: length-prefixed, CRC32-checked packets."""

from __future__ import annotations

import os
import secrets
import struct
import zlib

from .log import log_error

PACK_UNIT_SIZE = 2000
RECV_BUFFER_LIMIT = 16384
MIN_PACKET = 7
MAX_PACKET = 8192


class VerifyError(ValueError):
    """Raised when received data is not a valid verify_simple stream."""


def pack_data(data):
    """Wrap ``data`` in one packet: length, random padding, payload, CRC32."""
    data = bytes(data)
    rand_len = secrets.randbelow(16) + 1
    out_size = rand_len + len(data) + 6
    if out_size > 0xFFFF:
        raise ValueError("data too long for a single packet")
    body = struct.pack(">HB", out_size, rand_len) + os.urandom(rand_len - 1) + data
    crc = 0xFFFFFFFF - zlib.crc32(body)
    return body + struct.pack("<I", crc)


def _pack_stream(data: bytes) -> bytes:
    data = bytes(data)
    return b"".join(
        pack_data(data[start:start + PACK_UNIT_SIZE])
        for start in range(0, len(data), PACK_UNIT_SIZE)
    )


class VerifySimple:
    """State for one verify_simple connection."""

    def __init__(self):
        self._recv = bytearray()

    def _decode(self, data: bytes, report: bool) -> bytes:
        data = bytes(data)
        if len(self._recv) + len(data) > RECV_BUFFER_LIMIT:
            message = f"verify_simple: wrong buf length {len(self._recv) + len(data)}"
            if report:
                log_error(message)
            raise VerifyError(message)
        self._recv += data

        out = bytearray()
        while len(self._recv) > 2:
            length = (self._recv[0] << 8) | self._recv[1]
            if length >= MAX_PACKET or length < MIN_PACKET:
                self._recv.clear()
                message = f"verify_simple: wrong length {length}"
                if report:
                    log_error(message)
                raise VerifyError(message)
            if length > len(self._recv):
                break
            packet = bytes(self._recv[:length])
            if zlib.crc32(packet) != 0xFFFFFFFF:
                self._recv.clear()
                if report:
                    log_error("verify_simple: wrong crc")
                raise VerifyError("verify_simple: wrong crc")
            rand_len = packet[2]
            data_size = length - rand_len - 6
            start = 2 + rand_len
            out += packet[start:start + data_size]
            del self._recv[:length]
        return bytes(out)

    def client_pre_encrypt(self, data):
        """Split outgoing client data into packets."""
        return _pack_stream(data)

    def client_post_decrypt(self, data):
        """Return the payload of every complete packet received so far."""
        return self._decode(data, report=False)

    def server_pre_encrypt(self, data):
        """Split outgoing server data into packets."""
        return _pack_stream(data)

    def server_post_decrypt(self, data):
        """Return the payload of every complete packet received so far."""
        return self._decode(data, report=True)