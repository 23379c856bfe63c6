"""verify_simple and tls1.2_ticket_auth obfuscation, UDP relay sockets and server logging."""

__version__ = "0.1.0"