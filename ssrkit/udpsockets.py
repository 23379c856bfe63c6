"""Sockets for the UDP relay: the listening socket and per-flow remote sockets."""

from __future__ import annotations

import socket

from .log import log_error, log_info

QOS_TOS = 46


def _set_option(sock: socket.socket, level: int, name: str, value: int) -> bool:
    option = getattr(socket, name, None)
    if option is None:
        return False
    try:
        sock.setsockopt(level, option, value)
    except OSError:
        return False
    return True


def create_remote_socket(ipv6):
    """Return a UDP socket bound to any address and a free port.

    The socket is IPv6 when ``ipv6`` is true, else IPv4. Raises OSError when
    the socket cannot be created or bound.
    """
    if ipv6:
        family, address = socket.AF_INET6, ("::", 0)
    else:
        family, address = socket.AF_INET, ("0.0.0.0", 0)
    try:
        sock = socket.socket(family, socket.SOCK_DGRAM, 0)
    except OSError as exc:
        log_error(f"[udp] cannot create socket: {exc.strerror}")
        raise
    try:
        sock.bind(address)
    except OSError as exc:
        sock.close()
        log_error(f"[udp] cannot bind remote: {exc.strerror}")
        raise
    return sock


def _resolve(host, port):
    flags = socket.AI_PASSIVE | getattr(socket, "AI_ADDRCONFIG", 0)
    try:
        return socket.getaddrinfo(
            host, port, socket.AF_UNSPEC, socket.SOCK_DGRAM, socket.IPPROTO_UDP, flags
        )
    except socket.gaierror:
        # Hosts with only a loopback interface may reject AI_ADDRCONFIG.
        return socket.getaddrinfo(
            host, port, socket.AF_UNSPEC, socket.SOCK_DGRAM, socket.IPPROTO_UDP,
            socket.AI_PASSIVE,
        )


def create_server_socket(host, port):
    """Return a UDP socket listening on ``host`` and ``port``.

    With ``host`` None the wildcard address is used, preferring a dual-stack
    IPv6 socket when one is offered. Raises OSError when the name cannot be
    resolved or no address can be bound.
    """
    try:
        candidates = _resolve(host, port)
    except socket.gaierror as exc:
        log_error(f"[udp] getaddrinfo: {exc.strerror}")
        raise

    if host is None:
        # Binding 0.0.0.0 would block the dual-stack :: that follows it.
        for index, info in enumerate(candidates):
            if info[0] == socket.AF_INET6:
                candidates = candidates[index:]
                break

    last_error = None
    for family, socktype, proto, _canonname, sockaddr in candidates:
        try:
            sock = socket.socket(family, socktype, proto)
        except OSError as exc:
            last_error = exc
            continue

        if family == socket.AF_INET6:
            _set_option(sock, socket.IPPROTO_IPV6, "IPV6_V6ONLY", 1 if host else 0)
        _set_option(sock, socket.SOL_SOCKET, "SO_REUSEADDR", 1)
        _set_option(sock, socket.SOL_SOCKET, "SO_NOSIGPIPE", 1)
        if _set_option(sock, socket.SOL_SOCKET, "SO_REUSEPORT", 1):
            log_info("udp port reuse enabled")
        _set_option(sock, socket.IPPROTO_IP, "IP_TOS", QOS_TOS)

        try:
            sock.bind(sockaddr)
        except OSError as exc:
            log_error(f"[udp] bind: {exc.strerror}")
            last_error = exc
            sock.close()
            continue
        return sock

    log_error("[udp] cannot bind")
    if last_error is not None:
        raise OSError(last_error.errno, "[udp] cannot bind") from last_error
    raise OSError("[udp] cannot bind")