"""Keystore model and container format codecs."""

from kstools.keystore.base import (
    Entry,
    KeyEntry,
    Keystore,
    KeystoreCodec,
    StoreFormat,
    TrustedCertificateEntry,
)
from kstools.keystore.files import (
    detect_format,
    get_codec,
    load_keystore,
    save_keystore,
)
from kstools.keystore.jks import JavaKeystoreCodec
from kstools.keystore.pkcs12 import PKCS12Codec

__all__ = [
    "Entry",
    "KeyEntry",
    "Keystore",
    "KeystoreCodec",
    "StoreFormat",
    "TrustedCertificateEntry",
    "JavaKeystoreCodec",
    "PKCS12Codec",
    "detect_format",
    "get_codec",
    "load_keystore",
    "save_keystore",
]
