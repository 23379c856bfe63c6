"""The tls1.2_ticket_auth obfuscation: traffic dressed up as a TLS 1.2 session."""

from __future__ import annotations

import hashlib
import hmac
import os
import re
import secrets
import struct
import time
from dataclasses import dataclass, field
from enum import IntEnum

from .log import log_error

HMAC_LEN = 10
HELLO_MIN_REPLY = 11 + 32 + 1 + 32
FINISH_LEN = 43
SERVER_HELLO_LEN = 86

_APP_RECORD = b"\x17\x03\x03"
_CHANGE_CIPHER_SPEC = b"\x14\x03\x03\x00\x01\x01"
_FINISHED_HEAD = b"\x16\x03\x03\x00\x20"
_SERVER_HELLO_TAIL = bytes.fromhex("c0 2f 00 00 05 ff 01 00 01 00")

_CIPHER_SUITES = bytes.fromhex(
    "00 1c c0 2b c0 2f cc a9 cc a8 cc 14 cc 13 c0 0a c0 14 c0 09 c0 13"
    " 00 9c 00 35 00 2f 00 0a 01 00"
)
_EXT_RENEGOTIATION = bytes.fromhex("ff 01 00 01 00")
_EXT_TICKET_HEAD = bytes.fromhex("00 17 00 00 00 23 00 d0")
_EXT_TAIL = bytes.fromhex(
    "00 0d 00 16 00 14 06 01 06 03 05 01 05 03 04 01 04 03 03 01 03 03 02 01 02 03"
    " 00 05 00 05 01 00 00 00 00 00 12 00 00 75 50 00 00 00 0b 00 02 01 00"
    " 00 0a 00 06 00 04 00 17 00 18"
)
_TICKET_LEN = 208


class ObfsError(ValueError):
    """Raised when received data is not a valid obfuscated stream."""


class _Status(IntEnum):
    INITIAL = 0
    HELLO_SENT = 1
    HELLO_RECEIVED = 2
    SERVER_HELLO_SENT = 3
    ESTABLISHED = 8


@dataclass
class ServerInfo:
    """What the obfuscator knows of the server it talks to or runs as."""

    host: str = ""
    port: int = 0
    param: str | None = None
    key: bytes = b""

    def __post_init__(self) -> None:
        self.key = bytes(self.key)


@dataclass
class TicketAuthGlobal:
    """State shared by every connection of one server or client."""

    local_client_id: bytes = field(default_factory=lambda: os.urandom(32))
    client_data: set = field(default_factory=set)
    startup_time: int = field(default_factory=lambda: int(time.time()))


def _hmac(key: bytes, data: bytes) -> bytes:
    return hmac.new(key, data, hashlib.sha1).digest()[:HMAC_LEN]


def _u16(value: int) -> bytes:
    return struct.pack(">H", value & 0xFFFF)


def _atoi(text: str) -> int:
    match = re.match(r"\s*([+-]?\d+)", text)
    return int(match.group(1)) if match else 0


def pack_auth_data(global_data, server):
    """Return the 32-byte random field: time, 18 random bytes and an HMAC."""
    stamp = struct.pack(">I", int(time.time()) & 0xFFFFFFFF)
    head = stamp + os.urandom(18)
    return head + _hmac(server.key + global_data.local_client_id, head)


def _app_record(data: bytes) -> bytes:
    return _APP_RECORD + _u16(len(data)) + data


def _pack_application(data: bytes) -> bytes:
    if len(data) < 1024:
        return _app_record(data)
    parts = []
    start = 0
    while len(data) - start > 2048:
        size = min(secrets.randbelow(4096) + 100, len(data) - start)
        parts.append(_app_record(data[start:start + size]))
        start += size
    if len(data) - start > 0:
        parts.append(_app_record(data[start:]))
    return b"".join(parts)


class TlsTicketAuth:
    """One connection's tls1.2_ticket_auth state, for either end."""

    def __init__(self, server, global_data=None):
        self.server = server
        self.global_data = global_data if global_data is not None else TicketAuthGlobal()
        self._status = _Status.INITIAL
        self._send = bytearray()
        self._recv = bytearray()

    @property
    def established(self) -> bool:
        """True once the handshake is over and data flows in records."""
        return self._status == _Status.ESTABLISHED

    def _param(self) -> str | None:
        return self.server.param or None

    def _key(self) -> bytes:
        return self.server.key + self.global_data.local_client_id

    def _pick_sni(self) -> str:
        hosts = (self._param() or self.server.host or "")[:1023]
        name = secrets.choice(hosts.split(","))
        if name and name[-1].isdigit():
            return ""
        return name

    def _client_hello(self) -> bytes:
        sni = self._pick_sni().encode()
        ext_sni = (
            b"\x00\x00"
            + _u16(len(sni) + 5)
            + _u16(len(sni) + 3)
            + b"\x00"
            + _u16(len(sni))
            + sni
        )
        extensions = (
            _EXT_RENEGOTIATION
            + ext_sni
            + _EXT_TICKET_HEAD
            + os.urandom(_TICKET_LEN)
            + _EXT_TAIL
        )
        hello = (
            b"\x03\x03"
            + pack_auth_data(self.global_data, self.server)
            + b"\x20"
            + self.global_data.local_client_id
            + _CIPHER_SUITES
            + _u16(len(extensions))
            + extensions
        )
        handshake = b"\x01\x00" + _u16(len(hello)) + hello
        return b"\x16\x03\x01" + _u16(len(handshake)) + handshake

    def _finish(self) -> bytes:
        head = _CHANGE_CIPHER_SPEC + _FINISHED_HEAD + os.urandom(22)
        return head + _hmac(self._key(), head)

    def client_encode(self, data):
        """Wrap outgoing client data, sending the handshake first as needed."""
        data = bytes(data)
        if self._status == _Status.ESTABLISHED:
            return _pack_application(data)

        self._send += _app_record(data)
        if self._status == _Status.INITIAL:
            self._status = _Status.HELLO_SENT
            return self._client_hello()
        if not data:
            out = self._finish() + bytes(self._send)
            self._send.clear()
            self._status = _Status.ESTABLISHED
            return out
        return b""

    def server_encode(self, data):
        """Wrap outgoing server data, or answer a client hello.

        Before the handshake is over the data is dropped and the server hello,
        change cipher spec and finished messages are returned instead.
        """
        data = bytes(data)
        if self._status == _Status.ESTABLISHED:
            return _pack_application(data)

        self._status = _Status.SERVER_HELLO_SENT
        body = (
            b"\x03\x03"
            + pack_auth_data(self.global_data, self.server)
            + b"\x20"
            + self.global_data.local_client_id
            + _SERVER_HELLO_TAIL
        )
        handshake = b"\x02\x00" + _u16(len(body)) + body
        server_hello = b"\x16\x03\x03" + _u16(len(handshake)) + handshake
        head = server_hello + _CHANGE_CIPHER_SPEC + _FINISHED_HEAD + os.urandom(22)
        return head + _hmac(self._key(), head)

    def _drain_records(self, check_version: bool) -> bytes:
        out = bytearray()
        while len(self._recv) > 5:
            if check_version:
                if self._recv[:3] != _APP_RECORD:
                    message = "server_decode data error, wrong tls version 3"
                    log_error(message)
                    raise ObfsError(message)
            elif self._recv[0] != 0x17:
                raise ObfsError("client_decode data error, not an application record")
            size = int.from_bytes(self._recv[3:5], "big")
            if size + 5 > len(self._recv):
                break
            out += self._recv[5:5 + size]
            del self._recv[:5 + size]
        return bytes(out)

    def client_decode(self, data):
        """Decode incoming server data.

        Returns ``(payload, send_back)``; when ``send_back`` is true the caller
        should call ``client_encode(b"")`` to finish the handshake.
        """
        data = bytes(data)
        if self._status == _Status.ESTABLISHED:
            self._recv += data
            return self._drain_records(check_version=False), False
        if len(data) < HELLO_MIN_REPLY:
            raise ObfsError("client_decode data error, too short")
        if not hmac.compare_digest(data[33:33 + HMAC_LEN], _hmac(self._key(), data[11:33])):
            raise ObfsError("client_decode data error, hash mismatch")
        return b"", True

    def _fail(self, message: str):
        log_error(message)
        raise ObfsError(message)

    def server_decode(self, data):
        """Decode incoming client data.

        Returns ``(payload, send_back)``; when ``send_back`` is true the caller
        should answer with ``server_encode(b"")``.
        """
        data = bytes(data)
        if self._status == _Status.ESTABLISHED:
            self._recv += data
            return self._drain_records(check_version=True), False

        if self._status == _Status.SERVER_HELLO_SENT:
            return self._server_decode_finish(data)

        self._status = _Status.HELLO_RECEIVED
        return self._server_decode_hello(data)

    def _server_decode_finish(self, data: bytes):
        if len(data) < FINISH_LEN:
            self._fail(f"server_decode data error, too short:{len(data)}")
        if data[:6] != _CHANGE_CIPHER_SPEC:
            self._fail("server_decode data error, wrong tls version")
        if data[6:11] != _FINISHED_HEAD:
            self._fail("server_decode data error, wrong tls version 2")
        if not hmac.compare_digest(data[33:43], _hmac(self._key(), data[:33])):
            self._fail("server_decode data error, hash Mismatch")
        self._recv = bytearray(data[FINISH_LEN:])
        self._status = _Status.ESTABLISHED
        return self.server_decode(b"")

    def _server_decode_hello(self, data: bytes):
        if data[:3] != b"\x16\x03\x01":
            raise ObfsError("tls_auth not a tls handshake record")
        if len(data) < 5 or int.from_bytes(data[3:5], "big") != len(data) - 5:
            self._fail("tls_auth wrong tls head size")
        if data[5:7] != b"\x01\x00":
            self._fail("tls_auth not client hello message")
        if len(data) < 9 or int.from_bytes(data[7:9], "big") != len(data) - 9:
            self._fail("tls_auth wrong message size")
        if data[9:11] != b"\x03\x03":
            self._fail("tls_auth wrong tls version")

        verify_id = data[11:43]
        if len(data) < 44:
            self._fail("tls_auth wrong sessionid_len")
        session_len = data[43]
        if session_len < 32 or session_len > 127:
            self._fail("tls_auth wrong sessionid_len")
        session_id = data[44:44 + session_len]
        if len(session_id) < session_len:
            self._fail("tls_auth wrong sessionid_len")
        self.global_data.local_client_id = session_id
        expected = _hmac(self.server.key + session_id, verify_id[:22])

        utc_time = int.from_bytes(verify_id[:4], "big")
        param = self._param()
        max_time_dif = _atoi(param) if param else 0
        time_dif = utc_time - int(time.time())
        if max_time_dif > 0 and (
            time_dif < -max_time_dif
            or time_dif > max_time_dif
            or utc_time - self.global_data.startup_time < -(max_time_dif // 2)
        ):
            self._fail("tls_auth wrong time")

        if not hmac.compare_digest(verify_id[22:32], expected):
            self._fail("tls_auth wrong sha1")

        if verify_id in self.global_data.client_data:
            self._fail("replay attack detect!")
        self.global_data.client_data.add(verify_id)
        return b"", True