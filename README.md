# ssrkit

Building blocks for a ShadowsocksR-style proxy, in plain Python with no
third-party dependencies.

## Modules

### `ssrkit.verify`

The `verify_simple` protocol. Each frame is a two-byte big-endian length, a
random padding of 1 to 16 bytes (its first byte holds the padding length), the
payload and a CRC32 trailer.

- `pack_data(data)` wraps one chunk in a frame.
- `VerifySimple` keeps one connection's receive buffer.
  `client_pre_encrypt(data)` and `server_pre_encrypt(data)` split data into
  frames of at most 2000 payload bytes; `client_post_decrypt(data)` and
  `server_post_decrypt(data)` buffer incoming bytes and return the payload of
  every complete frame so far. A frame length outside 7..8191, a bad checksum
  or more than 16384 buffered bytes raises `VerifyError` (the server side also
  logs the error).

### `ssrkit.tls_ticket`

The `tls1.2_ticket_auth` obfuscation, which makes the stream look like a
TLS 1.2 session resumed with a ticket.

- `ServerInfo(host, port, param, key)` describes the server. `host` (or a
  comma-separated `param` list) supplies the SNI name on the client; on the
  server, a numeric `param` sets the allowed clock difference in seconds.
- `TicketAuthGlobal` holds state shared by all connections: the 32-byte client
  id, the set of seen client randoms (for replay detection) and the start time.
- `pack_auth_data(global_data, server)` builds the 32-byte client random: a
  timestamp, 18 random bytes and a truncated HMAC-SHA1.
- `TlsTicketAuth(server, global_data=None)` is one connection.
  `client_encode` / `server_encode` produce the handshake and then
  application-data records (large writes are split into records of random
  size); `client_decode` / `server_decode` return `(payload, send_back)`.
  When `send_back` is true the caller answers with `client_encode(b"")` or
  `server_encode(b"")`. The `established` property tells whether the
  handshake is over. Malformed or unauthenticated data raises `ObfsError`.

### `ssrkit.udpsockets`

- `create_server_socket(host, port)` resolves and binds the listening UDP
  socket. With `host=None` it prefers a dual-stack IPv6 wildcard; it sets
  `SO_REUSEADDR`, `SO_REUSEPORT` and the IP TOS where available.
- `create_remote_socket(ipv6)` returns a UDP socket bound to any address on
  a free port.

Both raise `OSError` on failure.

### `ssrkit.log`

Timestamped `INFO`/`ERROR` lines on standard error, coloured on a terminal,
or sent to syslog: `configure_logging(use_tty=None, use_syslog=False,
ident=None)`, `format_line(level, message, tty=False, now=None)`,
`log_info(message)` and `log_error(message)`.

## Example

```python
from ssrkit.tls_ticket import ServerInfo, TicketAuthGlobal, TlsTicketAuth
from ssrkit.verify import VerifySimple

# verify_simple round trip
sender, receiver = VerifySimple(), VerifySimple()
assert receiver.server_post_decrypt(sender.client_pre_encrypt(b"hello")) == b"hello"

# tls1.2_ticket_auth handshake
client = TlsTicketAuth(ServerInfo(host="example.com", key=b"secret"))
server = TlsTicketAuth(ServerInfo(key=b"secret"), TicketAuthGlobal())

hello = client.client_encode(b"GET")           # ClientHello; b"GET" is queued
_, send_back = server.server_decode(hello)     # send_back is True
reply = server.server_encode(b"")              # ServerHello + Finished
_, send_back = client.client_decode(reply)     # send_back is True
finish = client.client_encode(b"")             # Finished + queued data
payload, _ = server.server_decode(finish)
assert payload == b"GET"
```

## What it does not do

There is no command to run and no relay server: the package has no event
loop, no stream or packet ciphers, no SOCKS5/shadowsocks address header
parsing, no connection cache and no privilege-dropping or daemon helpers.
It supplies the obfuscation layers, the UDP sockets and the logging that such
a server would be built on.

## Tests

```
pip install -e .[test]
pytest
```