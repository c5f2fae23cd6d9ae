"""Pytest configuration and fixtures for kstools tests."""

import tempfile
from pathlib import Path

import jks
import pytest

from helpers import PKI, der, generate_key, make_certificate, pkcs8, write_jks


@pytest.fixture(scope="session")
def pki():
    """A root CA issuing a client and a server certificate, plus an unrelated root."""
    root_key = generate_key()
    root_cert = make_certificate("kstools test root", root_key, ca=True)
    client_key = generate_key()
    client_cert = make_certificate("alice", client_key, root_cert, root_key)
    server_key = generate_key()
    server_cert = make_certificate("localhost", server_key, root_cert, root_key)
    other_root_key = generate_key()
    other_root_cert = make_certificate("unrelated root", other_root_key, ca=True)
    return PKI(
        root_key=root_key,
        root_cert=root_cert,
        client_key=client_key,
        client_cert=client_cert,
        server_key=server_key,
        server_cert=server_cert,
        other_root_key=other_root_key,
        other_root_cert=other_root_cert,
    )


@pytest.fixture
def temp_dir():
    """Provide a temporary directory that's cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def alice_store(temp_dir, pki):
    """JKS with key entry 'client' (two-certificate chain) and trusted entry 'ca-root'."""
    return write_jks(
        temp_dir / "alice.store",
        [
            jks.PrivateKeyEntry.new("client", [der(c) for c in pki.client_chain], pkcs8(pki.client_key)),
            jks.TrustedCertEntry.new("ca-root", der(pki.root_cert)),
        ],
    )


@pytest.fixture
def server_store(temp_dir, pki):
    """JKS holding the server identity."""
    return write_jks(
        temp_dir / "server.jks",
        [jks.PrivateKeyEntry.new("server", [der(c) for c in pki.server_chain], pkcs8(pki.server_key))],
    )


@pytest.fixture
def trust_store(temp_dir, pki):
    """JKS trusting only the test root."""
    return write_jks(
        temp_dir / "trust.jks",
        [jks.TrustedCertEntry.new("ca-root", der(pki.root_cert))],
    )


@pytest.fixture
def other_trust_store(temp_dir, pki):
    """JKS trusting only an unrelated root."""
    return write_jks(
        temp_dir / "other-trust.jks",
        [jks.TrustedCertEntry.new("other-root", der(pki.other_root_cert))],
    )
