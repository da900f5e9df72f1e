"""SOCKS5 wire format, handshake state machine, address helpers, nonce filters and plugin launching."""

__version__ = "0.1.0"