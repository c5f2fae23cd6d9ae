"""CLI command modules."""

from kstools.cli.commands.keystore import convert_cmd, inspect_cmd
from kstools.cli.commands.tls import connect_cmd, serve_cmd

keystore_commands = [convert_cmd, inspect_cmd]
tls_commands = [connect_cmd, serve_cmd]

__all__ = [
    "convert_cmd",
    "inspect_cmd",
    "connect_cmd",
    "serve_cmd",
    "keystore_commands",
    "tls_commands",
]
