"""Mutual-TLS client sockets built from keystores."""

from __future__ import annotations

import os
import socket
import ssl
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from kstools.core.exceptions import (
    CredentialError,
    HandshakeError,
    KeystoreToolsError,
    TLSConnectError,
)
from kstools.core.result import Result
from kstools.keystore import Keystore, StoreFormat, load_keystore
from kstools.logging import get_audit_logger, get_logger
from kstools.metrics import record_error, record_tls_connection, track_connect_duration

logger = get_logger("tls")


@dataclass
class ClientTLSConfig:
    """Everything needed to open a mutual-TLS client connection."""

    host: str
    port: int
    keystore_path: Path | str
    keystore_password: str
    truststore_path: Path | str
    truststore_password: str
    keystore_format: StoreFormat | None = None
    truststore_format: StoreFormat | None = None
    key_alias: str | None = None
    timeout: float = 10.0
    check_hostname: bool = True
    server_hostname: str | None = None
    minimum_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"


def load_identity(
    context: ssl.SSLContext,
    store: Keystore,
    password: str,
    alias: str | None = None,
) -> str:
    """
    Install a key entry from store as the context's certificate and key.

    The key is unlocked with password, which also serves as the key entry
    password. ssl only loads identities from files, so the chain and the
    re-encrypted key pass through a private temporary directory.

    Args:
        context: Context to configure
        store: Keystore holding the identity
        password: Key entry password
        alias: Key entry to use; the first key entry when None

    Returns:
        Alias of the installed entry

    Raises:
        CredentialError: If no usable key entry exists
        EntryNotFoundError: If alias is not a key entry
        IncorrectPasswordError: If the key cannot be unlocked
    """
    if alias is None:
        key_aliases = store.key_aliases()
        if not key_aliases:
            raise CredentialError("Keystore holds no private key entries")
        alias = key_aliases[0]

    key = store.get_key(alias, password)
    chain = store.get_certificate_chain(alias)

    with tempfile.TemporaryDirectory(prefix="kstools-") as tmpdir:
        cert_path = Path(tmpdir) / "chain.pem"
        key_path = Path(tmpdir) / "key.pem"

        cert_path.write_bytes(
            b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in chain)
        )
        key_path.write_bytes(
            key.private_bytes(
                serialization.Encoding.PEM,
                serialization.PrivateFormat.PKCS8,
                serialization.BestAvailableEncryption(password.encode("utf-8")),
            )
        )
        os.chmod(key_path, 0o600)

        try:
            context.load_cert_chain(cert_path, key_path, password=password)
        except ssl.SSLError as e:
            raise CredentialError(f"Cannot use key entry '{alias}': {e}") from e

    return alias


def load_trust(context: ssl.SSLContext, store: Keystore) -> int:
    """
    Trust every certificate held by store.

    Returns:
        Number of certificates loaded

    Raises:
        CredentialError: If the store holds no certificates
    """
    certs = store.trusted_certificates()
    if not certs:
        raise CredentialError("Trust store holds no certificates")

    cadata = "".join(
        cert.public_bytes(serialization.Encoding.PEM).decode("ascii") for cert in certs
    )
    try:
        context.load_verify_locations(cadata=cadata)
    except ssl.SSLError as e:
        raise CredentialError(f"Cannot load trusted certificates: {e}") from e
    return len(certs)


def build_client_context(config: ClientTLSConfig) -> ssl.SSLContext:
    """
    Build a client context presenting the keystore identity.

    Raises:
        CredentialError: For unusable keystores or credentials
        KeystoreFormatError: If a store cannot be decoded
    """
    keystore = load_keystore(config.keystore_path, config.keystore_password, config.keystore_format)
    truststore = load_keystore(
        config.truststore_path, config.truststore_password, config.truststore_format
    )

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = config.minimum_version
    context.check_hostname = config.check_hostname
    context.verify_mode = ssl.CERT_REQUIRED

    load_trust(context, truststore)
    alias = load_identity(context, keystore, config.keystore_password, config.key_alias)
    logger.debug("Client context ready", fields={"alias": alias, "endpoint": config.endpoint})
    return context


def open_tls_socket(config: ClientTLSConfig) -> ssl.SSLSocket:
    """
    Connect to the configured endpoint and complete a TLS handshake.

    Raises:
        CredentialError: For unusable keystores or credentials
        KeystoreFormatError: If a store cannot be decoded
        TLSConnectError: If the endpoint cannot be reached
        HandshakeError: If the TLS handshake fails
    """
    context = build_client_context(config)

    try:
        raw = socket.create_connection((config.host, config.port), timeout=config.timeout)
    except OSError as e:
        raise TLSConnectError(f"Cannot connect to {config.endpoint}: {e}") from e

    try:
        return context.wrap_socket(raw, server_hostname=config.server_hostname or config.host)
    except ssl.SSLError as e:
        raw.close()
        raise HandshakeError(f"TLS handshake with {config.endpoint} failed: {e}") from e
    except OSError as e:
        raw.close()
        raise TLSConnectError(f"Connection to {config.endpoint} lost during handshake: {e}") from e


def peer_subject(sock: ssl.SSLSocket) -> str | None:
    """RFC 4514 subject of the peer certificate, if one was presented."""
    der = sock.getpeercert(binary_form=True)
    if not der:
        return None
    return x509.load_der_x509_certificate(der).subject.rfc4514_string()


def create_socket(config: ClientTLSConfig) -> Result[ssl.SSLSocket]:
    """
    Open a mutual-TLS socket, reporting failure as a Result.

    Configuration, format and network failures are logged and returned
    with their error kind; the socket is only present on success.
    """
    audit = get_audit_logger()
    try:
        with track_connect_duration():
            sock = open_tls_socket(config)
    except KeystoreToolsError as e:
        record_tls_connection(success=False)
        record_error(type(e).__name__, "tls_connect")
        audit.tls_connect_failed(config.endpoint, e.kind.value, str(e))
        logger.warning(
            f"TLS connection to {config.endpoint} failed: {e}",
            fields={"kind": e.kind.value},
        )
        return Result.failure(e)

    cipher = sock.cipher()
    record_tls_connection(success=True)
    audit.tls_connected(config.endpoint, peer_subject(sock), cipher[0] if cipher else None)
    return Result.success(sock)
