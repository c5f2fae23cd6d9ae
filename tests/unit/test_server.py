"""Tests for kstools.core.server module."""

import socket
import ssl

import pytest

from helpers import STORE_PASSWORD
from kstools.core.exceptions import CredentialError, IncorrectPasswordError
from kstools.core.server import ServerTLSConfig, build_server_context, is_port_in_use


class TestServerTLSConfig:
    """Tests for ServerTLSConfig."""

    def test_defaults(self, server_store):
        config = ServerTLSConfig(keystore_path=server_store, keystore_password=STORE_PASSWORD)
        assert config.host == "127.0.0.1"
        assert config.port == 8800
        assert config.requires_client_auth is False

    def test_client_auth_with_truststore(self, server_store, trust_store):
        config = ServerTLSConfig(
            keystore_path=server_store,
            keystore_password=STORE_PASSWORD,
            truststore_path=trust_store,
        )
        assert config.requires_client_auth is True


class TestBuildServerContext:
    """Tests for build_server_context."""

    def test_without_client_auth(self, server_store):
        context = build_server_context(
            ServerTLSConfig(keystore_path=server_store, keystore_password=STORE_PASSWORD)
        )
        assert context.verify_mode == ssl.CERT_NONE
        assert context.minimum_version == ssl.TLSVersion.TLSv1_2

    def test_with_client_auth(self, server_store, trust_store):
        context = build_server_context(
            ServerTLSConfig(
                keystore_path=server_store,
                keystore_password=STORE_PASSWORD,
                truststore_path=trust_store,
                truststore_password=STORE_PASSWORD,
            )
        )
        assert context.verify_mode == ssl.CERT_REQUIRED
        assert len(context.get_ca_certs()) == 1

    def test_wrong_password(self, server_store):
        with pytest.raises(IncorrectPasswordError):
            build_server_context(ServerTLSConfig(keystore_path=server_store, keystore_password="wrong"))

    def test_trust_only_keystore(self, trust_store):
        """Test a keystore without keys cannot serve."""
        with pytest.raises(CredentialError):
            build_server_context(ServerTLSConfig(keystore_path=trust_store, keystore_password=STORE_PASSWORD))


class TestIsPortInUse:
    """Tests for is_port_in_use."""

    def test_listening_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.bind(("127.0.0.1", 0))
            listener.listen(1)
            assert is_port_in_use(listener.getsockname()[1]) is True

    def test_free_port(self):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        assert is_port_in_use(port) is False
