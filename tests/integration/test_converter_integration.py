"""Integration tests for keystore conversion."""

import jks
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from helpers import STORE_PASSWORD, der, pkcs8, write_jks
from kstools.core.converter import convert
from kstools.keystore import load_keystore


class TestAliceStore:
    """The alice.store scenario: JKS with one key entry and one trusted root."""

    def test_convert_to_pkcs12(self, alice_store, temp_dir, pki):
        """Test the PKCS#12 output holds only the key entry and its chain."""
        dest = temp_dir / "alice.p12"
        result = convert(alice_store, STORE_PASSWORD, dest)

        assert result.ok, result.message
        converted = load_keystore(dest, STORE_PASSWORD)
        assert converted.aliases() == ["client"]
        chain = converted.get_certificate_chain("client")
        assert [der(c) for c in chain] == [der(pki.client_cert), der(pki.root_cert)]

    def test_output_readable_by_cryptography(self, alice_store, temp_dir, pki):
        """Test the converted file opens with cryptography's PKCS#12 loader."""
        dest = temp_dir / "alice.p12"
        convert(alice_store, STORE_PASSWORD, dest).unwrap()

        p12 = pkcs12.load_pkcs12(dest.read_bytes(), STORE_PASSWORD.encode())
        assert p12.cert.friendly_name == b"client"
        assert p12.cert.certificate.public_bytes(serialization.Encoding.DER) == der(pki.client_cert)
        assert [c.certificate for c in p12.additional_certs] == [pki.root_cert]
        assert p12.key.private_numbers() == pki.client_key.private_numbers()


class TestMultipleEntries:
    """Stores with several key entries."""

    def test_every_key_alias_copied(self, temp_dir, pki):
        """Test each key entry appears with a byte-identical chain."""
        source = write_jks(
            temp_dir / "many.jks",
            [
                jks.PrivateKeyEntry.new("client", [der(c) for c in pki.client_chain], pkcs8(pki.client_key)),
                jks.TrustedCertEntry.new("ca-root", der(pki.root_cert)),
                jks.PrivateKeyEntry.new("server", [der(c) for c in pki.server_chain], pkcs8(pki.server_key)),
                jks.TrustedCertEntry.new("other-root", der(pki.other_root_cert)),
            ],
        )
        dest = temp_dir / "many.p12"

        report = convert(source, STORE_PASSWORD, dest).unwrap()

        assert sorted(report.copied) == ["client", "server"]
        assert sorted(report.skipped) == ["ca-root", "other-root"]

        src = load_keystore(source, STORE_PASSWORD)
        out = load_keystore(dest, STORE_PASSWORD)
        assert sorted(out.aliases()) == ["client", "server"]
        for alias in ("client", "server"):
            assert [der(c) for c in out.get_certificate_chain(alias)] == [
                der(c) for c in src.get_certificate_chain(alias)
            ]
        assert "ca-root" not in out
        assert "other-root" not in out

    def test_trust_only_store_converts_to_empty(self, trust_store, temp_dir):
        """Test a store without keys yields an empty destination."""
        dest = temp_dir / "empty.p12"
        report = convert(trust_store, STORE_PASSWORD, dest).unwrap()

        assert report.copied == []
        assert report.skipped == ["ca-root"]
        assert len(load_keystore(dest, STORE_PASSWORD)) == 0
