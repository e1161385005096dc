"""Command line interface modules.

This package provides the command-line surface of the relay:
- Parsing the listen address and tuning options
- Configuring logging
- Starting the listener and the optional statistics panel

The command modules stay thin and delegate all protocol work to
``socks5_relay.core``.
"""
