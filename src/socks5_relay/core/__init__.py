"""Core relay implementation.

This package contains the components of the SOCKS5 relay:
- Wire codec for the fixed SOCKS5 message layouts
- Handshake negotiation state machine
- Buffer pool and bidirectional relay
- Per-connection supervisor and threaded listener
- Connection statistics and the live statistics panel
- Exception types

The command-line package only wires these pieces together.
"""
