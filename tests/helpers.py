"""Certificate, key and keystore builders shared by the test suite."""

import datetime
import ipaddress
from dataclasses import dataclass
from pathlib import Path

import jks
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID
from pyasn1.codec.ber import decoder
from pyasn1.codec.der import encoder
from pyasn1.type import univ

from kstools.keystore import asn1

STORE_PASSWORD = "secret123"


def generate_key() -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(ec.SECP256R1())


def make_certificate(
    common_name: str,
    key,
    issuer_cert: x509.Certificate | None = None,
    issuer_key=None,
    ca: bool = False,
) -> x509.Certificate:
    """Issue a certificate; self-signed when no issuer is given."""
    now = datetime.datetime.now(datetime.timezone.utc)
    subject = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    issuer = issuer_cert.subject if issuer_cert is not None else subject
    signing_key = issuer_key if issuer_key is not None else key

    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=5))
        .not_valid_after(now + datetime.timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(signing_key.public_key()),
            critical=False,
        )
    )
    if ca:
        builder = builder.add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=False,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=True,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
    else:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([
                x509.DNSName("localhost"),
                x509.IPAddress(ipaddress.IPv4Address("127.0.0.1")),
            ]),
            critical=False,
        )
    return builder.sign(signing_key, hashes.SHA256())


def der(cert: x509.Certificate) -> bytes:
    return cert.public_bytes(serialization.Encoding.DER)


def pkcs8(key) -> bytes:
    return key.private_bytes(
        serialization.Encoding.DER,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )


def write_jks(path: Path, entries: list, password: str = STORE_PASSWORD) -> Path:
    """Write pyjks entries to a JKS file."""
    path.write_bytes(jks.KeyStore.new("jks", entries).saves(password))
    return path


@dataclass
class PKI:
    root_key: object
    root_cert: x509.Certificate
    client_key: object
    client_cert: x509.Certificate
    server_key: object
    server_cert: x509.Certificate
    other_root_key: object
    other_root_cert: x509.Certificate

    @property
    def client_chain(self) -> list[x509.Certificate]:
        return [self.client_cert, self.root_cert]

    @property
    def server_chain(self) -> list[x509.Certificate]:
        return [self.server_cert, self.root_cert]



def truncate_encrypted_contents(data: bytes, cut: int = 3) -> bytes:
    """Cut bytes off every EncryptedData payload of a PKCS#12 file and drop its MAC."""
    pfx, _ = decoder.decode(data, asn1Spec=asn1.PFX())
    auth_safe_der, _ = decoder.decode(pfx["authSafe"]["content"].asOctets(), asn1Spec=univ.OctetString())
    auth_safe, _ = decoder.decode(auth_safe_der.asOctets(), asn1Spec=asn1.AuthenticatedSafe())

    for content_info in auth_safe:
        if content_info["contentType"] != asn1.ID_ENCRYPTED_DATA:
            continue
        encrypted, _ = decoder.decode(content_info["content"].asOctets(), asn1Spec=asn1.EncryptedData())
        info = encrypted["encryptedContentInfo"]
        info["encryptedContent"] = info["encryptedContent"].asOctets()[:-cut]
        content_info["content"] = encoder.encode(encrypted)

    outer = asn1.ContentInfo()
    outer["contentType"] = asn1.ID_DATA
    outer["content"] = encoder.encode(univ.OctetString(encoder.encode(auth_safe)))

    rebuilt = asn1.PFX()
    rebuilt["version"] = 3
    rebuilt["authSafe"] = outer
    return encoder.encode(rebuilt)
