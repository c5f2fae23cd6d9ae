"""JKS and JCEKS keystores via pyjks."""

from __future__ import annotations

import jks
from jks.util import (
    DecryptionFailureException,
    KeystoreException,
    KeystoreSignatureException,
)
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from kstools.core.exceptions import (
    IncorrectPasswordError,
    KeystoreFormatError,
    UnsupportedFormatError,
)
from kstools.keystore.base import (
    KeyEntry,
    Keystore,
    KeystoreCodec,
    StoreFormat,
    TrustedCertificateEntry,
)


def _load_certificate(cert_type: str, der: bytes) -> x509.Certificate:
    if cert_type not in ("X.509", "X509"):
        raise UnsupportedFormatError(f"Unsupported certificate type: {cert_type}")
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise KeystoreFormatError(f"Invalid certificate data: {e}") from e


class JavaKeystoreCodec(KeystoreCodec):
    """
    Codec for the Java KeyStore (JKS) and JCEKS formats.

    Key entries are returned sealed; each is decrypted on unlock() with its
    entry password, which for keystores written by keytool is normally the
    store password.

    Only JKS can be written. Java keystores store aliases in lower case, so
    dump() lower-cases them.
    """

    def __init__(self, store_format: StoreFormat = StoreFormat.JKS):
        if store_format not in (StoreFormat.JKS, StoreFormat.JCEKS):
            raise UnsupportedFormatError(f"Not a Java keystore format: {store_format.value}")
        self.store_format = store_format

    def load(self, data: bytes, password: str) -> Keystore:
        try:
            raw = jks.KeyStore.loads(data, password, try_decrypt_keys=False)
        except KeystoreSignatureException as e:
            raise IncorrectPasswordError("Keystore integrity check failed; incorrect password?") from e
        except KeystoreException as e:
            raise KeystoreFormatError(f"Invalid {self.store_format.value.upper()} keystore: {e}") from e

        store = Keystore(StoreFormat(raw.store_type))
        for alias, item in raw.entries.items():
            if isinstance(item, jks.PrivateKeyEntry):
                chain = [_load_certificate(t, der) for t, der in item.cert_chain]
                store.add_entry(KeyEntry(
                    alias=alias,
                    certificate_chain=chain,
                    unlocker=self._unlocker(item),
                ))
            elif isinstance(item, jks.TrustedCertEntry):
                store.add_entry(TrustedCertificateEntry(
                    alias=alias,
                    certificate=_load_certificate(item.type, item.cert),
                ))
            # Secret key entries carry no certificate and are not modelled.
        return store

    @staticmethod
    def _unlocker(item: "jks.PrivateKeyEntry"):
        def unlock(password: str) -> PrivateKeyTypes:
            try:
                item.decrypt(password)
            except DecryptionFailureException as e:
                raise IncorrectPasswordError(
                    f"Cannot decrypt key entry '{item.alias}'; incorrect password?"
                ) from e
            except KeystoreException as e:
                raise KeystoreFormatError(f"Cannot decode key entry '{item.alias}': {e}") from e
            try:
                return serialization.load_der_private_key(item.pkey_pkcs8, password=None)
            except (ValueError, TypeError) as e:
                raise UnsupportedFormatError(
                    f"Unsupported private key in entry '{item.alias}': {e}"
                ) from e

        return unlock

    def dump(self, store: Keystore, password: str) -> bytes:
        if self.store_format != StoreFormat.JKS:
            raise UnsupportedFormatError("Writing JCEKS keystores is not supported; use jks or pkcs12")

        entries = []
        for entry in store:
            if isinstance(entry, KeyEntry):
                key = entry.unlock(password)
                pkcs8 = key.private_bytes(
                    serialization.Encoding.DER,
                    serialization.PrivateFormat.PKCS8,
                    serialization.NoEncryption(),
                )
                certs = [
                    cert.public_bytes(serialization.Encoding.DER)
                    for cert in entry.certificate_chain
                ]
                entries.append(jks.PrivateKeyEntry.new(entry.alias.lower(), certs, pkcs8))
            else:
                der = entry.certificate.public_bytes(serialization.Encoding.DER)
                entries.append(jks.TrustedCertEntry.new(entry.alias.lower(), der))

        try:
            return jks.KeyStore.new(self.store_format.value, entries).saves(password)
        except KeystoreException as e:
            raise KeystoreFormatError(f"Cannot encode {self.store_format.value.upper()} keystore: {e}") from e
