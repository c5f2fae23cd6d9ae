"""Custom exceptions for kstools."""

from enum import Enum


class ErrorKind(str, Enum):
    """Category of a kstools failure."""

    CONFIGURATION = "configuration"
    FORMAT = "format"
    NETWORK = "network"
    PARTIAL_COPY = "partial_copy"


class KeystoreToolsError(Exception):
    """Base exception for all kstools errors."""

    kind: ErrorKind = ErrorKind.CONFIGURATION


class CredentialError(KeystoreToolsError):
    """Bad, missing or unusable credential or path."""

    kind = ErrorKind.CONFIGURATION


class EmptyCredentialError(CredentialError):
    """A password was required but an empty one was supplied."""

    pass


class IncorrectPasswordError(CredentialError):
    """Keystore integrity check or key decryption failed."""

    pass


class KeystoreNotFoundError(CredentialError):
    """Keystore file does not exist or cannot be read."""

    pass


class KeystoreWriteError(CredentialError):
    """Destination keystore could not be written."""

    pass


class EntryNotFoundError(CredentialError):
    """Requested alias is not present in the keystore."""

    pass


class KeystoreFormatError(KeystoreToolsError):
    """Malformed or corrupt keystore data."""

    kind = ErrorKind.FORMAT


class UnsupportedFormatError(KeystoreFormatError):
    """Keystore format or algorithm is not supported."""

    pass


class TLSConnectError(KeystoreToolsError):
    """Remote endpoint could not be reached."""

    kind = ErrorKind.NETWORK


class HandshakeError(TLSConnectError):
    """TLS handshake with the remote endpoint failed."""

    pass


class EntryCopyError(KeystoreToolsError):
    """A key entry could not be copied during conversion."""

    kind = ErrorKind.PARTIAL_COPY

    def __init__(self, alias: str, message: str):
        super().__init__(f"Failed to copy entry '{alias}': {message}")
        self.alias = alias
