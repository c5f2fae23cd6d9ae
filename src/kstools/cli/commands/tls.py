"""Mutual-TLS client and server commands for CLI."""

from __future__ import annotations

import sys

import click

from kstools.cli.main import Context, handle_errors, pass_context
from kstools.cli.output import (
    OutputFormat,
    console,
    print_error,
    print_info,
    print_json,
    print_key_value,
    print_success,
)
from kstools.core.server import ServerTLSConfig, TLSEchoServer, is_port_in_use
from kstools.core.tls import ClientTLSConfig, create_socket, peer_subject

RECV_SIZE = 4096


@click.command("connect")
@click.option("--host", "-H", default=None, help="Server host (default: KSTOOLS_SERVER_HOST)")
@click.option("--port", "-P", type=int, default=None, help="Server port (default: KSTOOLS_SERVER_PORT)")
@click.option(
    "--keystore",
    "-k",
    type=click.Path(dir_okay=False),
    default=None,
    help="Client keystore (default: KSTOOLS_CLIENT_KEYSTORE_PATH)",
)
@click.option("--keystore-password", default=None, help="Client keystore password")
@click.option(
    "--truststore",
    "-t",
    type=click.Path(dir_okay=False),
    default=None,
    help="Trust store (default: KSTOOLS_TRUSTSTORE_PATH)",
)
@click.option("--truststore-password", default=None, help="Trust store password")
@click.option("--key-alias", "-a", default=None, help="Client key entry alias")
@click.option("--timeout", type=float, default=None, help="Connect timeout in seconds")
@click.option(
    "--check-hostname/--no-check-hostname",
    default=None,
    help="Verify the server certificate matches the host",
)
@click.option("--message", "-m", default=None, help="Send a message and print the reply")
@pass_context
@handle_errors
def connect_cmd(
    ctx: Context,
    host: str | None,
    port: int | None,
    keystore: str | None,
    keystore_password: str | None,
    truststore: str | None,
    truststore_password: str | None,
    key_alias: str | None,
    timeout: float | None,
    check_hostname: bool | None,
    message: str | None,
):
    """
    Open a mutual-TLS connection using keystore credentials.

    Options fall back to KSTOOLS_* settings.

    Example:
        kstools connect -H localhost -P 8800 -k alice.store \\
            --keystore-password secret123 -t trust.jks --truststore-password changeit
    """
    settings = ctx.settings
    keystore = keystore or settings.client_keystore_path
    truststore = truststore or settings.truststore_path
    if keystore is None or truststore is None:
        print_error("Both a client keystore and a trust store are required")
        raise click.Abort()

    config = ClientTLSConfig(
        host=host or settings.server_host,
        port=port or settings.server_port,
        keystore_path=keystore,
        keystore_password=keystore_password if keystore_password is not None else settings.client_keystore_password,
        truststore_path=truststore,
        truststore_password=truststore_password if truststore_password is not None else settings.truststore_password,
        keystore_format=settings.keystore_format,
        truststore_format=settings.truststore_format,
        key_alias=key_alias or settings.key_alias,
        timeout=timeout or settings.connect_timeout,
        check_hostname=settings.check_hostname if check_hostname is None else check_hostname,
    )

    result = create_socket(config)
    if not result.ok:
        print_error(f"{result.message} ({result.kind.value})")
        sys.exit(1)

    with result.value as sock:
        cipher = sock.cipher()
        info = {
            "endpoint": config.endpoint,
            "version": sock.version(),
            "cipher": cipher[0] if cipher else None,
            "peer": peer_subject(sock),
        }
        if message is not None:
            sock.sendall(message.encode("utf-8"))
            info["reply"] = sock.recv(RECV_SIZE).decode("utf-8", errors="replace")

    if ctx.output_format == OutputFormat.JSON:
        print_json(info)
        return

    print_success(f"Connected to {config.endpoint}")
    print_key_value("Protocol:", info["version"] or "-")
    print_key_value("Cipher:", info["cipher"] or "-")
    print_key_value("Server:", info["peer"] or "-")
    if "reply" in info:
        print_key_value("Reply:", info["reply"])


@click.command("serve")
@click.option("--host", "-H", default=None, help="Listen address (default: KSTOOLS_SERVER_HOST)")
@click.option("--port", "-P", type=int, default=None, help="Listen port (default: KSTOOLS_SERVER_PORT)")
@click.option(
    "--keystore",
    "-k",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Server keystore",
)
@click.option(
    "--password",
    "-p",
    prompt=True,
    hide_input=True,
    help="Server keystore password",
)
@click.option(
    "--truststore",
    "-t",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Trust store for client certificates; enables client authentication",
)
@click.option(
    "--truststore-password",
    default=None,
    help="Trust store password (prompted for when a trust store is given)",
)
@click.option("--key-alias", "-a", default=None, help="Server key entry alias")
@pass_context
@handle_errors
def serve_cmd(
    ctx: Context,
    host: str | None,
    port: int | None,
    keystore: str,
    password: str,
    truststore: str | None,
    truststore_password: str | None,
    key_alias: str | None,
):
    """
    Run a TLS echo server with a keystore identity.

    Example:
        kstools serve -k server.p12 -p changeit -t trust.jks --truststore-password changeit
    """
    settings = ctx.settings
    if truststore is not None and truststore_password is None:
        truststore_password = settings.truststore_password or click.prompt(
            "Trust store password", hide_input=True
        )

    config = ServerTLSConfig(
        host=host or settings.server_host,
        port=port or settings.server_port,
        keystore_path=keystore,
        keystore_password=password,
        truststore_path=truststore,
        truststore_password=truststore_password or "",
        key_alias=key_alias,
    )

    if is_port_in_use(config.port, config.host):
        print_error(f"Port {config.port} on {config.host} is already in use")
        raise click.Abort()

    server = TLSEchoServer(config)
    mode = "mutual TLS" if config.requires_client_auth else "TLS"
    console.print(f"[bold]Echo server[/bold] listening on {server.host}:{server.port} ({mode})")
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        print_info("Server stopped")
    finally:
        server.server_close()
