"""Core business logic for kstools."""

from kstools.core.exceptions import (
    ErrorKind,
    KeystoreToolsError,
    CredentialError,
    EmptyCredentialError,
    IncorrectPasswordError,
    KeystoreNotFoundError,
    KeystoreWriteError,
    EntryNotFoundError,
    KeystoreFormatError,
    UnsupportedFormatError,
    TLSConnectError,
    HandshakeError,
    EntryCopyError,
)
from kstools.core.result import Result

__all__ = [
    "ErrorKind",
    "KeystoreToolsError",
    "CredentialError",
    "EmptyCredentialError",
    "IncorrectPasswordError",
    "KeystoreNotFoundError",
    "KeystoreWriteError",
    "EntryNotFoundError",
    "KeystoreFormatError",
    "UnsupportedFormatError",
    "TLSConnectError",
    "HandshakeError",
    "EntryCopyError",
    "Result",
]
