"""Integration tests for mutual-TLS connections against the echo server."""

import ssl
import threading
import time

import jks
import pytest

from helpers import STORE_PASSWORD, der, generate_key, make_certificate, pkcs8, write_jks
from kstools.core.converter import convert_keystore
from kstools.core.exceptions import ErrorKind
from kstools.core.server import ServerTLSConfig, TLSEchoServer, is_port_in_use
from kstools.core.tls import ClientTLSConfig, create_socket, peer_subject

RECV_SIZE = 4096


@pytest.fixture
def echo_server(server_store, trust_store):
    """Run a mutual-TLS echo server on an ephemeral port."""
    server = TLSEchoServer(
        ServerTLSConfig(
            host="127.0.0.1",
            port=0,
            keystore_path=server_store,
            keystore_password=STORE_PASSWORD,
            truststore_path=trust_store,
            truststore_password=STORE_PASSWORD,
        )
    )
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield server
    server.shutdown()
    server.server_close()
    thread.join(timeout=5)


def client_config(server, keystore, truststore, **kwargs) -> ClientTLSConfig:
    return ClientTLSConfig(
        host="127.0.0.1",
        port=server.port,
        keystore_path=keystore,
        keystore_password=STORE_PASSWORD,
        truststore_path=truststore,
        truststore_password=STORE_PASSWORD,
        timeout=5.0,
        **kwargs,
    )


def wait_for_sessions(server, count, timeout=5.0):
    deadline = time.monotonic() + timeout
    while server.session_count < count:
        if time.monotonic() > deadline:
            raise AssertionError(f"expected {count} sessions, have {server.session_count}")
        time.sleep(0.01)


class TestMutualTLS:
    """End-to-end handshakes with keystore identities."""

    def test_jks_client_round_trip(self, echo_server, alice_store, trust_store):
        """Test a JKS identity completes the handshake and gets its echo."""
        result = create_socket(client_config(echo_server, alice_store, trust_store))
        assert result.ok, result.message

        with result.value as sock:
            assert sock.version() in ("TLSv1.2", "TLSv1.3")
            assert peer_subject(sock) == "CN=localhost"
            sock.sendall(b"hello")
            assert sock.recv(RECV_SIZE) == b"hello"

    def test_converted_pkcs12_client(self, echo_server, alice_store, trust_store, temp_dir):
        """Test a keystore converted to PKCS#12 still authenticates."""
        p12 = temp_dir / "alice.p12"
        convert_keystore(alice_store, STORE_PASSWORD, p12)

        result = create_socket(client_config(echo_server, p12, trust_store))
        assert result.ok, result.message
        with result.value as sock:
            sock.sendall(b"ping")
            assert sock.recv(RECV_SIZE) == b"ping"

    def test_hostname_mismatch(self, echo_server, alice_store, trust_store):
        """Test a server name absent from the certificate fails the handshake."""
        result = create_socket(
            client_config(echo_server, alice_store, trust_store, server_hostname="other.example")
        )
        assert not result.ok
        assert result.kind == ErrorKind.NETWORK

    def test_untrusted_server(self, echo_server, alice_store, other_trust_store):
        """Test a server certificate outside the trust store is rejected."""
        result = create_socket(client_config(echo_server, alice_store, other_trust_store))
        assert not result.ok
        assert result.kind == ErrorKind.NETWORK
        assert "handshake" in result.message

    def test_untrusted_client(self, echo_server, trust_store, temp_dir, pki):
        """Test the server refuses a client certificate it does not trust."""
        key = generate_key()
        cert = make_certificate("mallory", key, pki.other_root_cert, pki.other_root_key)
        mallory = write_jks(
            temp_dir / "mallory.jks",
            [jks.PrivateKeyEntry.new("mallory", [der(cert), der(pki.other_root_cert)], pkcs8(key))],
        )

        result = create_socket(client_config(echo_server, mallory, trust_store))
        if not result.ok:
            assert result.kind == ErrorKind.NETWORK
            return

        # TLS 1.3 clients learn of the rejection on their first read.
        with result.value as sock:
            try:
                sock.sendall(b"hello")
                data = sock.recv(RECV_SIZE)
            except (ssl.SSLError, OSError):
                data = b""
        assert data == b""

    def test_messages_stay_with_sender(self, echo_server, alice_store, trust_store):
        """Test each session only receives the echo of its own messages."""
        config = client_config(echo_server, alice_store, trust_store)
        first = create_socket(config).unwrap()
        second = create_socket(config).unwrap()
        try:
            wait_for_sessions(echo_server, 2)
            second.sendall(b"from second")
            assert second.recv(RECV_SIZE) == b"from second"

            first.sendall(b"from first")
            assert first.recv(RECV_SIZE) == b"from first"

            second.settimeout(0.5)
            with pytest.raises(TimeoutError):
                second.recv(RECV_SIZE)
        finally:
            first.close()
            second.close()

    def test_port_in_use(self, echo_server):
        assert is_port_in_use(echo_server.port) is True
