"""Keystore model and the abstract codec interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes

from kstools.core.exceptions import (
    EntryNotFoundError,
    IncorrectPasswordError,
    KeystoreFormatError,
    UnsupportedFormatError,
)


class StoreFormat(str, Enum):
    """Supported keystore container formats."""

    JKS = "jks"
    JCEKS = "jceks"
    PKCS12 = "pkcs12"

    @classmethod
    def from_name(cls, name: str) -> "StoreFormat":
        """Resolve a format name such as "JKS", "p12" or "pfx"."""
        normalized = name.strip().lower().replace("#", "").replace("-", "")
        aliases = {"p12": cls.PKCS12, "pfx": cls.PKCS12}
        if normalized in aliases:
            return aliases[normalized]
        try:
            return cls(normalized)
        except ValueError as e:
            raise UnsupportedFormatError(f"Unknown keystore format: {name}") from e


KeyUnlocker = Callable[[str], PrivateKeyTypes]


@dataclass
class KeyEntry:
    """
    A private key with its certificate chain.

    Keys read from disk stay sealed until unlock() is called with the entry
    password; keys created in memory are available immediately.
    """

    alias: str
    certificate_chain: list[x509.Certificate]
    private_key: PrivateKeyTypes | None = None
    unlocker: KeyUnlocker | None = field(default=None, repr=False)

    def unlock(self, password: str) -> PrivateKeyTypes:
        """
        Return the private key, decrypting it with password if still sealed.

        Raises:
            IncorrectPasswordError: If the key cannot be decrypted
        """
        if self.private_key is None:
            if self.unlocker is None:
                raise IncorrectPasswordError(f"Entry '{self.alias}' has no key material")
            self.private_key = self.unlocker(password)
        return self.private_key


@dataclass
class TrustedCertificateEntry:
    """A certificate without a private key."""

    alias: str
    certificate: x509.Certificate


Entry = KeyEntry | TrustedCertificateEntry


class Keystore:
    """
    An ordered, alias-addressed collection of key and certificate entries.

    Aliases are unique; setting an entry under an existing alias replaces it.
    """

    def __init__(self, store_format: StoreFormat, entries: list[Entry] | None = None):
        self.format = store_format
        self._entries: dict[str, Entry] = {}
        for entry in entries or []:
            self._entries[entry.alias] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[Entry]:
        return iter(list(self._entries.values()))

    def __repr__(self) -> str:
        return f"Keystore(format={self.format.value!r}, aliases={self.aliases()!r})"

    def aliases(self) -> list[str]:
        return list(self._entries)

    def key_aliases(self) -> list[str]:
        return [a for a, e in self._entries.items() if isinstance(e, KeyEntry)]

    def certificate_aliases(self) -> list[str]:
        return [a for a, e in self._entries.items() if isinstance(e, TrustedCertificateEntry)]

    def entry(self, alias: str) -> Entry:
        try:
            return self._entries[alias]
        except KeyError as e:
            raise EntryNotFoundError(f"No entry with alias '{alias}'") from e

    def is_key_entry(self, alias: str) -> bool:
        return isinstance(self._entries.get(alias), KeyEntry)

    def is_certificate_entry(self, alias: str) -> bool:
        return isinstance(self._entries.get(alias), TrustedCertificateEntry)

    def get_key(self, alias: str, password: str) -> PrivateKeyTypes:
        """
        Get the private key stored under alias.

        Raises:
            EntryNotFoundError: If alias is missing or is not a key entry
            IncorrectPasswordError: If the key cannot be decrypted
        """
        entry = self.entry(alias)
        if not isinstance(entry, KeyEntry):
            raise EntryNotFoundError(f"Entry '{alias}' is not a key entry")
        return entry.unlock(password)

    def get_certificate_chain(self, alias: str) -> list[x509.Certificate]:
        """Certificate chain of a key entry, leaf first; empty for other entries."""
        entry = self.entry(alias)
        if isinstance(entry, KeyEntry):
            return list(entry.certificate_chain)
        return []

    def get_certificate(self, alias: str) -> x509.Certificate | None:
        """Leaf certificate of a key entry, or the certificate of a trusted entry."""
        entry = self.entry(alias)
        if isinstance(entry, KeyEntry):
            return entry.certificate_chain[0] if entry.certificate_chain else None
        return entry.certificate

    def add_entry(self, entry: Entry) -> None:
        """
        Add a decoded entry, rejecting duplicate aliases.

        Raises:
            KeystoreFormatError: If the alias is already present
        """
        if entry.alias in self._entries:
            raise KeystoreFormatError(f"Duplicate alias '{entry.alias}'")
        self._entries[entry.alias] = entry

    def set_key_entry(
        self,
        alias: str,
        key: PrivateKeyTypes,
        chain: list[x509.Certificate],
    ) -> None:
        if not chain:
            raise ValueError(f"Key entry '{alias}' requires at least one certificate")
        self._entries[alias] = KeyEntry(alias=alias, certificate_chain=list(chain), private_key=key)

    def set_certificate_entry(self, alias: str, certificate: x509.Certificate) -> None:
        self._entries[alias] = TrustedCertificateEntry(alias=alias, certificate=certificate)

    def delete_entry(self, alias: str) -> None:
        self.entry(alias)
        del self._entries[alias]

    def trusted_certificates(self) -> list[x509.Certificate]:
        """
        Every certificate usable as a trust anchor.

        Includes trusted certificate entries and the leaf certificate of each
        key entry.
        """
        certs = []
        for entry in self._entries.values():
            if isinstance(entry, TrustedCertificateEntry):
                certs.append(entry.certificate)
            elif entry.certificate_chain:
                certs.append(entry.certificate_chain[0])
        return certs


class KeystoreCodec(ABC):
    """
    Abstract base class for keystore container formats.

    A codec turns raw file bytes into a Keystore and back. Encoding protects
    the store and every key entry with a single password.
    """

    store_format: StoreFormat

    @abstractmethod
    def load(self, data: bytes, password: str) -> Keystore:
        """
        Decode a keystore.

        Args:
            data: Raw keystore bytes
            password: Store password used for the integrity check

        Returns:
            Keystore whose key entries unlock with their entry password

        Raises:
            IncorrectPasswordError: If the integrity check fails
            KeystoreFormatError: If the data is malformed
        """
        pass

    @abstractmethod
    def dump(self, store: Keystore, password: str) -> bytes:
        """
        Encode a keystore.

        Args:
            store: Keystore with unlocked key entries
            password: Password protecting the store and its keys

        Returns:
            Raw keystore bytes
        """
        pass
