"""Mutual-TLS echo server for exercising client identities."""

from __future__ import annotations

import socket
import socketserver
import ssl
import threading
from dataclasses import dataclass
from pathlib import Path

from kstools.core.tls import load_identity, load_trust, peer_subject
from kstools.keystore import StoreFormat, load_keystore
from kstools.logging import AuditAction, get_audit_logger, get_logger

logger = get_logger("server")

RECV_SIZE = 4096


@dataclass
class ServerTLSConfig:
    """
    Listening address and identity of the echo server.

    When a trust store is configured, clients must present a certificate
    that chains to one of its certificates.
    """

    keystore_path: Path | str
    keystore_password: str
    host: str = "127.0.0.1"
    port: int = 8800
    truststore_path: Path | str | None = None
    truststore_password: str = ""
    keystore_format: StoreFormat | None = None
    truststore_format: StoreFormat | None = None
    key_alias: str | None = None
    minimum_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2

    @property
    def requires_client_auth(self) -> bool:
        return self.truststore_path is not None


def build_server_context(config: ServerTLSConfig) -> ssl.SSLContext:
    """
    Build a server context presenting the keystore identity.

    Raises:
        CredentialError: For unusable keystores or credentials
        KeystoreFormatError: If a store cannot be decoded
    """
    keystore = load_keystore(config.keystore_path, config.keystore_password, config.keystore_format)

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = config.minimum_version
    load_identity(context, keystore, config.keystore_password, config.key_alias)

    if config.requires_client_auth:
        truststore = load_keystore(
            config.truststore_path, config.truststore_password, config.truststore_format
        )
        load_trust(context, truststore)
        context.verify_mode = ssl.CERT_REQUIRED

    return context


class EchoHandler(socketserver.BaseRequestHandler):
    """Handshake with one client, then echo its messages back to it."""

    server: "TLSEchoServer"

    def handle(self) -> None:
        peer = f"{self.client_address[0]}:{self.client_address[1]}"
        try:
            conn = self.server.context.wrap_socket(self.request, server_side=True)
        except (ssl.SSLError, OSError) as e:
            logger.warning(f"TLS handshake with {peer} failed: {e}")
            return

        logger.info(
            f"Accepted TLS session from {peer}",
            fields={"subject": peer_subject(conn), "version": conn.version()},
        )
        self.server.register(conn)
        try:
            while True:
                data = conn.recv(RECV_SIZE)
                if not data:
                    break
                conn.sendall(data)
        except OSError as e:
            logger.info(f"Session with {peer} ended: {e}")
        finally:
            self.server.unregister(conn)
            conn.close()


class TLSEchoServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """
    Threaded echo server speaking TLS.

    Each message is sent back to its sender only. The handshake runs in the
    connection's own thread.
    """

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, config: ServerTLSConfig, context: ssl.SSLContext | None = None):
        self.config = config
        self.context = context or build_server_context(config)
        self._sessions: list[ssl.SSLSocket] = []
        self._lock = threading.Lock()
        super().__init__((config.host, config.port), EchoHandler)
        get_audit_logger().log(
            action=AuditAction.TLS_SERVE,
            resource=f"{self.host}:{self.port}",
            details={"client_auth": config.requires_client_auth},
        )

    @property
    def host(self) -> str:
        return self.server_address[0]

    @property
    def port(self) -> int:
        return self.server_address[1]

    @property
    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def register(self, conn: ssl.SSLSocket) -> None:
        with self._lock:
            self._sessions.append(conn)

    def unregister(self, conn: ssl.SSLSocket) -> None:
        with self._lock:
            if conn in self._sessions:
                self._sessions.remove(conn)


def is_port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """Return True if something is accepting connections on host:port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.settimeout(1.0)
        return sock.connect_ex((host, port)) == 0
