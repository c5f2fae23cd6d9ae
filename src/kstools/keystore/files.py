"""Reading and writing keystore files."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from kstools.core.exceptions import (
    CredentialError,
    EmptyCredentialError,
    KeystoreFormatError,
    KeystoreNotFoundError,
    KeystoreWriteError,
)
from kstools.keystore.base import Keystore, KeystoreCodec, StoreFormat
from kstools.keystore.jks import JavaKeystoreCodec
from kstools.keystore.pkcs12 import PKCS12Codec

JKS_MAGIC = b"\xfe\xed\xfe\xed"
JCEKS_MAGIC = b"\xce\xce\xce\xce"
DER_SEQUENCE = 0x30


def detect_format(data: bytes) -> StoreFormat:
    """
    Identify a keystore format from its leading bytes.

    Raises:
        KeystoreFormatError: If the data matches no known format
    """
    if data.startswith(JKS_MAGIC):
        return StoreFormat.JKS
    if data.startswith(JCEKS_MAGIC):
        return StoreFormat.JCEKS
    if data[:1] == bytes([DER_SEQUENCE]):
        return StoreFormat.PKCS12
    raise KeystoreFormatError("Unrecognized keystore format")


def get_codec(store_format: StoreFormat | str) -> KeystoreCodec:
    """Return the codec for a format or format name."""
    if isinstance(store_format, str) and not isinstance(store_format, StoreFormat):
        store_format = StoreFormat.from_name(store_format)
    if store_format == StoreFormat.PKCS12:
        return PKCS12Codec()
    return JavaKeystoreCodec(store_format)


def load_keystore(
    path: Path | str,
    password: str,
    store_format: StoreFormat | str | None = None,
) -> Keystore:
    """
    Load a keystore file.

    Args:
        path: Keystore file
        password: Store password
        store_format: Container format; detected from the file when None

    Returns:
        Decoded keystore

    Raises:
        EmptyCredentialError: If password is empty
        KeystoreNotFoundError: If the file does not exist
        IncorrectPasswordError: If the integrity check fails
        KeystoreFormatError: If the file is not a readable keystore
    """
    if not password:
        raise EmptyCredentialError("A keystore password is required")

    path = Path(path)
    try:
        data = path.read_bytes()
    except FileNotFoundError as e:
        raise KeystoreNotFoundError(f"Keystore not found: {path}") from e
    except OSError as e:
        raise CredentialError(f"Cannot read keystore {path}: {e}") from e

    if store_format is None:
        store_format = detect_format(data)
    return get_codec(store_format).load(data, password)


def save_keystore(
    store: Keystore,
    path: Path | str,
    password: str,
    store_format: StoreFormat | str | None = None,
) -> Path:
    """
    Write a keystore file atomically.

    The store is encoded in memory, written to a temporary file next to the
    destination and renamed over it; on failure no destination file appears.

    Args:
        store: Keystore to write
        path: Destination file
        password: Password protecting the store and its keys
        store_format: Container format; defaults to store.format

    Returns:
        Path of the written file

    Raises:
        EmptyCredentialError: If password is empty
        KeystoreWriteError: If the file cannot be written
    """
    if not password:
        raise EmptyCredentialError("A keystore password is required")

    path = Path(path)
    data = get_codec(store_format or store.format).dump(store, password)

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(
            dir=path.parent, prefix=f".{path.name}.", suffix=".tmp", delete=False
        ) as f:
            tmp_name = f.name
            os.chmod(tmp_name, 0o600)
            f.write(data)
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise KeystoreWriteError(f"Cannot write keystore {path}: {e}") from e

    return path
