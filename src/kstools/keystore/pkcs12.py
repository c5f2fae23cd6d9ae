"""PKCS#12 keystores with any number of key entries."""

from __future__ import annotations

import hashlib
import hmac
import os
from dataclasses import dataclass, field

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.decrepit.ciphers.algorithms import TripleDES
from cryptography.hazmat.primitives import hashes, padding, serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pyasn1.codec.ber import decoder
from pyasn1.codec.der import encoder
from pyasn1.error import PyAsn1Error
from pyasn1.type import char, univ

from kstools.core.exceptions import (
    EmptyCredentialError,
    IncorrectPasswordError,
    KeystoreFormatError,
    UnsupportedFormatError,
)
from kstools.keystore import asn1
from kstools.keystore.base import (
    KeyEntry,
    Keystore,
    KeystoreCodec,
    StoreFormat,
    TrustedCertificateEntry,
)

# PKCS#12 appendix B.3 purpose identifiers
KDF_PURPOSE_KEY = 1
KDF_PURPOSE_IV = 2
KDF_PURPOSE_MAC = 3

MAC_ITERATIONS = 2048
MAC_SALT_SIZE = 16

_MAC_DIGESTS = {
    asn1.ID_SHA1: "sha1",
    asn1.ID_SHA224: "sha224",
    asn1.ID_SHA256: "sha256",
    asn1.ID_SHA384: "sha384",
    asn1.ID_SHA512: "sha512",
}

_PRF_HASHES = {
    asn1.ID_HMAC_WITH_SHA1: hashes.SHA1,
    asn1.ID_HMAC_WITH_SHA224: hashes.SHA224,
    asn1.ID_HMAC_WITH_SHA256: hashes.SHA256,
    asn1.ID_HMAC_WITH_SHA384: hashes.SHA384,
    asn1.ID_HMAC_WITH_SHA512: hashes.SHA512,
}

_AES_KEY_SIZES = {
    asn1.ID_AES128_CBC: 16,
    asn1.ID_AES192_CBC: 24,
    asn1.ID_AES256_CBC: 32,
}

_DER_NULL = encoder.encode(univ.Null(""))


def bmp_password(password: str) -> bytes:
    """Encode a password as a NUL-terminated BMPString, as PKCS#12 requires."""
    return (password + "\0").encode("utf-16-be")


def pkcs12_kdf(
    password: bytes,
    salt: bytes,
    purpose: int,
    iterations: int,
    length: int,
    hash_name: str = "sha256",
) -> bytes:
    """
    Derive key material with the PKCS#12 key derivation function.

    Implements RFC 7292 appendix B.2.

    Args:
        password: BMPString-encoded password (see bmp_password)
        salt: Salt bytes
        purpose: 1 for keys, 2 for IVs, 3 for MAC keys
        iterations: Iteration count
        length: Number of bytes to produce
        hash_name: hashlib digest name

    Returns:
        Derived bytes
    """
    u = hashlib.new(hash_name).digest_size
    v = hashlib.new(hash_name).block_size

    def fill(data: bytes) -> bytes:
        if not data:
            return b""
        size = v * ((len(data) + v - 1) // v)
        return (data * (size // len(data) + 1))[:size]

    diversifier = bytes([purpose]) * v
    block = bytearray(fill(salt) + fill(password))
    modulus = 1 << (8 * v)
    derived = b""

    while len(derived) < length:
        a = hashlib.new(hash_name, diversifier + bytes(block)).digest()
        for _ in range(iterations - 1):
            a = hashlib.new(hash_name, a).digest()
        derived += a

        b = int.from_bytes((a * (v // u + 1))[:v], "big") + 1
        for j in range(0, len(block), v):
            value = (int.from_bytes(block[j:j + v], "big") + b) % modulus
            block[j:j + v] = value.to_bytes(v, "big")

    return derived[:length]


def _octets(any_value) -> bytes:
    """Unwrap an OCTET STRING carried in an ASN.1 ANY."""
    value, _ = decoder.decode(any_value.asOctets(), asn1Spec=univ.OctetString())
    return value.asOctets()


def _cbc_decrypt(algorithm, iv: bytes, ciphertext: bytes) -> bytes:
    try:
        decryptor = Cipher(algorithm, modes.CBC(iv)).decryptor()
        padded = decryptor.update(ciphertext) + decryptor.finalize()
    except ValueError as e:
        raise KeystoreFormatError(f"Corrupt PKCS#12 encrypted contents: {e}") from e
    unpadder = padding.PKCS7(algorithm.block_size).unpadder()
    try:
        return unpadder.update(padded) + unpadder.finalize()
    except ValueError as e:
        raise IncorrectPasswordError("Cannot decrypt PKCS#12 contents; incorrect password?") from e


def _decrypt_contents(algorithm: asn1.AlgorithmIdentifier, ciphertext: bytes, password: str) -> bytes:
    """Decrypt an EncryptedData payload protected by PBES2 or PKCS#12 3DES."""
    oid = algorithm["algorithm"]
    params_der = algorithm["parameters"].asOctets()

    if oid == asn1.ID_PBES2:
        params, _ = decoder.decode(params_der, asn1Spec=asn1.PBES2Params())
        kdf = params["keyDerivationFunc"]
        if kdf["algorithm"] != asn1.ID_PBKDF2:
            raise UnsupportedFormatError(f"Unsupported PBES2 key derivation: {kdf['algorithm']}")
        kdf_params, _ = decoder.decode(kdf["parameters"].asOctets(), asn1Spec=asn1.PBKDF2Params())

        scheme = params["encryptionScheme"]
        key_size = _AES_KEY_SIZES.get(scheme["algorithm"])
        if key_size is None:
            raise UnsupportedFormatError(f"Unsupported PBES2 cipher: {scheme['algorithm']}")

        prf = kdf_params["prf"]
        prf_oid = prf["algorithm"] if prf.isValue else asn1.ID_HMAC_WITH_SHA1
        hash_cls = _PRF_HASHES.get(prf_oid)
        if hash_cls is None:
            raise UnsupportedFormatError(f"Unsupported PBKDF2 PRF: {prf_oid}")

        key = PBKDF2HMAC(
            algorithm=hash_cls(),
            length=key_size,
            salt=kdf_params["salt"].asOctets(),
            iterations=int(kdf_params["iterationCount"]),
        ).derive(password.encode("utf-8"))
        return _cbc_decrypt(algorithms.AES(key), _octets(scheme["parameters"]), ciphertext)

    if oid == asn1.ID_PBE_SHA1_3DES:
        params, _ = decoder.decode(params_der, asn1Spec=asn1.PBEParameter())
        salt = params["salt"].asOctets()
        iterations = int(params["iterations"])
        secret = bmp_password(password)
        key = pkcs12_kdf(secret, salt, KDF_PURPOSE_KEY, iterations, 24, "sha1")
        iv = pkcs12_kdf(secret, salt, KDF_PURPOSE_IV, iterations, 8, "sha1")
        return _cbc_decrypt(TripleDES(key), iv, ciphertext)

    if oid in (asn1.ID_PBE_SHA1_RC2_40, asn1.ID_PBE_SHA1_RC2_128):
        raise UnsupportedFormatError(
            "PKCS#12 contents use RC2 encryption; re-export the file with AES"
        )

    raise UnsupportedFormatError(f"Unsupported PKCS#12 encryption algorithm: {oid}")


@dataclass
class _BagInfo:
    friendly_name: str | None = None
    local_key_id: bytes | None = None
    trusted: bool = False


@dataclass
class _Contents:
    keys: list[tuple[_BagInfo, bytes, bool]] = field(default_factory=list)
    certs: list[tuple[_BagInfo, x509.Certificate]] = field(default_factory=list)


def _bag_info(bag: asn1.SafeBag) -> _BagInfo:
    info = _BagInfo()
    attributes = bag["bagAttributes"]
    if not attributes.isValue:
        return info

    for attribute in attributes:
        values = attribute["attrValues"]
        if not len(values):
            continue
        raw = values[0].asOctets()
        attr_id = attribute["attrId"]
        if attr_id == asn1.ID_FRIENDLY_NAME:
            name, _ = decoder.decode(raw, asn1Spec=char.BMPString())
            info.friendly_name = str(name)
        elif attr_id == asn1.ID_LOCAL_KEY_ID:
            key_id, _ = decoder.decode(raw, asn1Spec=univ.OctetString())
            info.local_key_id = key_id.asOctets()
        elif attr_id == asn1.ID_ORACLE_TRUSTED_KEY_USAGE:
            info.trusted = True
    return info


def _build_chain(leaf: x509.Certificate, pool: list[x509.Certificate]) -> list[x509.Certificate]:
    """Order certificates from leaf towards the root by issuer linkage."""
    chain = [leaf]
    current = leaf
    while current.issuer != current.subject:
        issuer = next(
            (c for c in pool if c.subject == current.issuer and c not in chain),
            None,
        )
        if issuer is None:
            break
        chain.append(issuer)
        current = issuer
    return chain


def _shrouded_unlocker(alias: str, der: bytes):
    def unlock(password: str) -> PrivateKeyTypes:
        try:
            return serialization.load_der_private_key(der, password=password.encode("utf-8"))
        except UnsupportedAlgorithm as e:
            raise UnsupportedFormatError(f"Unsupported key encryption for '{alias}': {e}") from e
        except (ValueError, TypeError) as e:
            raise IncorrectPasswordError(
                f"Cannot decrypt key entry '{alias}'; incorrect password?"
            ) from e

    return unlock


def _plain_unlocker(alias: str, der: bytes):
    def unlock(password: str) -> PrivateKeyTypes:
        try:
            return serialization.load_der_private_key(der, password=None)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise UnsupportedFormatError(f"Unsupported private key in '{alias}': {e}") from e

    return unlock


class PKCS12Codec(KeystoreCodec):
    """
    Codec for PKCS#12 (.p12 / .pfx) files.

    Each key entry becomes a shrouded key bag plus certificate bags for its
    chain, linked by a localKeyId attribute; the alias is stored as the
    friendlyName. Trusted certificate entries carry the Java trusted-usage
    attribute so Java's PKCS12 keystore also lists them.
    """

    store_format = StoreFormat.PKCS12

    def __init__(self, mac_iterations: int = MAC_ITERATIONS):
        self.mac_iterations = mac_iterations

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def dump(self, store: Keystore, password: str) -> bytes:
        if not password:
            raise EmptyCredentialError("PKCS#12 encoding requires a non-empty password")

        key_bags = asn1.SafeContents()
        cert_bags = asn1.SafeContents()

        for entry in store:
            if isinstance(entry, KeyEntry):
                key = entry.unlock(password)
                leaf = entry.certificate_chain[0]
                local_key_id = leaf.fingerprint(hashes.SHA1())
                shrouded = key.private_bytes(
                    serialization.Encoding.DER,
                    serialization.PrivateFormat.PKCS8,
                    serialization.BestAvailableEncryption(password.encode("utf-8")),
                )
                self._append(
                    key_bags,
                    self._safe_bag(asn1.ID_PKCS8_SHROUDED_KEY_BAG, shrouded, entry.alias, local_key_id),
                )
                self._append(
                    cert_bags,
                    self._safe_bag(asn1.ID_CERT_BAG, self._cert_bag(leaf), entry.alias, local_key_id),
                )
                for ca in entry.certificate_chain[1:]:
                    self._append(cert_bags, self._safe_bag(asn1.ID_CERT_BAG, self._cert_bag(ca)))
            else:
                self._append(
                    cert_bags,
                    self._safe_bag(
                        asn1.ID_CERT_BAG,
                        self._cert_bag(entry.certificate),
                        entry.alias,
                        trusted=True,
                    ),
                )

        # clear() makes an empty store encode as an empty SEQUENCE
        auth_safe = asn1.AuthenticatedSafe().clear()
        for contents in (key_bags, cert_bags):
            if len(contents):
                self._append(auth_safe, self._data_content(encoder.encode(contents)))
        auth_safe_der = encoder.encode(auth_safe)

        pfx = asn1.PFX()
        pfx["version"] = 3
        pfx["authSafe"] = self._data_content(auth_safe_der)
        pfx["macData"] = self._mac_data(auth_safe_der, password)
        return encoder.encode(pfx)

    @staticmethod
    def _append(sequence, component) -> None:
        sequence.setComponentByPosition(len(sequence), component)

    @staticmethod
    def _data_content(payload: bytes) -> asn1.ContentInfo:
        content = asn1.ContentInfo()
        content["contentType"] = asn1.ID_DATA
        content["content"] = encoder.encode(univ.OctetString(payload))
        return content

    @staticmethod
    def _cert_bag(certificate: x509.Certificate) -> bytes:
        bag = asn1.CertBag()
        bag["certId"] = asn1.ID_X509_CERTIFICATE
        bag["certValue"] = encoder.encode(
            univ.OctetString(certificate.public_bytes(serialization.Encoding.DER))
        )
        return encoder.encode(bag)

    @staticmethod
    def _attribute(attr_id: univ.ObjectIdentifier, value_der: bytes) -> asn1.PKCS12Attribute:
        values = asn1.AttributeValues()
        values.setComponentByPosition(0, value_der)
        attribute = asn1.PKCS12Attribute()
        attribute["attrId"] = attr_id
        attribute["attrValues"] = values
        return attribute

    def _safe_bag(
        self,
        bag_id: univ.ObjectIdentifier,
        value_der: bytes,
        friendly_name: str | None = None,
        local_key_id: bytes | None = None,
        trusted: bool = False,
    ) -> asn1.SafeBag:
        bag = asn1.SafeBag()
        bag["bagId"] = bag_id
        bag["bagValue"] = value_der

        attributes = []
        if friendly_name is not None:
            attributes.append(
                self._attribute(asn1.ID_FRIENDLY_NAME, encoder.encode(char.BMPString(friendly_name)))
            )
        if local_key_id is not None:
            attributes.append(
                self._attribute(asn1.ID_LOCAL_KEY_ID, encoder.encode(univ.OctetString(local_key_id)))
            )
        if trusted:
            attributes.append(
                self._attribute(
                    asn1.ID_ORACLE_TRUSTED_KEY_USAGE,
                    encoder.encode(asn1.ID_ANY_EXTENDED_KEY_USAGE),
                )
            )

        if attributes:
            bag_attributes = asn1.Attributes()
            for attribute in attributes:
                self._append(bag_attributes, attribute)
            bag["bagAttributes"] = bag_attributes
        return bag

    def _mac_data(self, auth_safe_der: bytes, password: str) -> asn1.MacData:
        salt = os.urandom(MAC_SALT_SIZE)
        key = pkcs12_kdf(
            bmp_password(password), salt, KDF_PURPOSE_MAC, self.mac_iterations, 32, "sha256"
        )

        algorithm = asn1.AlgorithmIdentifier()
        algorithm["algorithm"] = asn1.ID_SHA256
        algorithm["parameters"] = _DER_NULL

        digest = asn1.DigestInfo()
        digest["digestAlgorithm"] = algorithm
        digest["digest"] = hmac.new(key, auth_safe_der, "sha256").digest()

        mac_data = asn1.MacData()
        mac_data["mac"] = digest
        mac_data["macSalt"] = salt
        mac_data["iterations"] = self.mac_iterations
        return mac_data

    # ------------------------------------------------------------------
    # Decoding
    # ------------------------------------------------------------------

    def load(self, data: bytes, password: str) -> Keystore:
        try:
            pfx, _ = decoder.decode(data, asn1Spec=asn1.PFX())
            auth = pfx["authSafe"]
            if auth["contentType"] != asn1.ID_DATA:
                raise UnsupportedFormatError("PKCS#12 public-key integrity mode is not supported")
            auth_safe_der = _octets(auth["content"])

            mac_data = pfx["macData"]
            if mac_data.isValue:
                self._verify_mac(mac_data, auth_safe_der, password)

            contents = _Contents()
            auth_safe, _ = decoder.decode(auth_safe_der, asn1Spec=asn1.AuthenticatedSafe())
            for content_info in auth_safe:
                self._read_content_info(content_info, password, contents)
        except PyAsn1Error as e:
            raise KeystoreFormatError(f"Invalid PKCS#12 data: {e}") from e
        except ValueError as e:
            # cryptography rejects malformed parameters (IV, key length, iterations)
            raise KeystoreFormatError(f"Invalid PKCS#12 encryption parameters: {e}") from e

        return self._assemble(contents)

    @staticmethod
    def _verify_mac(mac_data: asn1.MacData, auth_safe_der: bytes, password: str) -> None:
        digest_oid = mac_data["mac"]["digestAlgorithm"]["algorithm"]
        hash_name = _MAC_DIGESTS.get(digest_oid)
        if hash_name is None:
            raise UnsupportedFormatError(f"Unsupported PKCS#12 MAC algorithm: {digest_oid}")

        key = pkcs12_kdf(
            bmp_password(password),
            mac_data["macSalt"].asOctets(),
            KDF_PURPOSE_MAC,
            int(mac_data["iterations"]),
            hashlib.new(hash_name).digest_size,
            hash_name,
        )
        expected = hmac.new(key, auth_safe_der, hash_name).digest()
        if not hmac.compare_digest(expected, mac_data["mac"]["digest"].asOctets()):
            raise IncorrectPasswordError("PKCS#12 MAC verification failed; incorrect password?")

    def _read_content_info(self, content_info: asn1.ContentInfo, password: str, contents: _Contents) -> None:
        content_type = content_info["contentType"]
        if content_type == asn1.ID_DATA:
            payload = _octets(content_info["content"])
        elif content_type == asn1.ID_ENCRYPTED_DATA:
            encrypted, _ = decoder.decode(
                content_info["content"].asOctets(), asn1Spec=asn1.EncryptedData()
            )
            info = encrypted["encryptedContentInfo"]
            payload = _decrypt_contents(
                info["contentEncryptionAlgorithm"],
                info["encryptedContent"].asOctets(),
                password,
            )
        else:
            raise UnsupportedFormatError(f"Unsupported PKCS#12 content type: {content_type}")

        safe_contents, _ = decoder.decode(payload, asn1Spec=asn1.SafeContents())
        self._read_safe_contents(safe_contents, contents)

    def _read_safe_contents(self, safe_contents: asn1.SafeContents, contents: _Contents) -> None:
        for bag in safe_contents:
            bag_id = bag["bagId"]
            value = bag["bagValue"].asOctets()
            if bag_id == asn1.ID_PKCS8_SHROUDED_KEY_BAG:
                contents.keys.append((_bag_info(bag), value, True))
            elif bag_id == asn1.ID_KEY_BAG:
                contents.keys.append((_bag_info(bag), value, False))
            elif bag_id == asn1.ID_CERT_BAG:
                cert_bag, _ = decoder.decode(value, asn1Spec=asn1.CertBag())
                if cert_bag["certId"] != asn1.ID_X509_CERTIFICATE:
                    continue
                try:
                    certificate = x509.load_der_x509_certificate(_octets(cert_bag["certValue"]))
                except ValueError as e:
                    raise KeystoreFormatError(f"Invalid certificate in PKCS#12 data: {e}") from e
                contents.certs.append((_bag_info(bag), certificate))
            elif bag_id == asn1.ID_SAFE_CONTENTS_BAG:
                nested, _ = decoder.decode(value, asn1Spec=asn1.SafeContents())
                self._read_safe_contents(nested, contents)
            # CRL and secret bags are not modelled.

    @staticmethod
    def _find_leaf(info: _BagInfo, contents: _Contents) -> x509.Certificate | None:
        for cert_info, cert in contents.certs:
            if info.local_key_id is not None:
                if cert_info.local_key_id == info.local_key_id:
                    return cert
            elif info.friendly_name is not None and cert_info.friendly_name == info.friendly_name:
                return cert
        if len(contents.keys) == 1 and contents.certs:
            return contents.certs[0][1]
        return None

    @classmethod
    def _assemble(cls, contents: _Contents) -> Keystore:
        """
        Pair keys with their certificates and rebuild each chain.

        PKCS#12 does not record where a chain ends, so chains are rebuilt by
        issuer linkage. Trusted certificate bags and the leaves of other keys
        never join a chain; any other certificate in the file may.
        """
        store = Keystore(StoreFormat.PKCS12)

        leaves = []
        for index, (info, _, _) in enumerate(contents.keys):
            leaf = cls._find_leaf(info, contents)
            if leaf is None:
                raise KeystoreFormatError(f"No certificate found for PKCS#12 key #{index + 1}")
            leaves.append(leaf)

        issuers = [
            cert for cert_info, cert in contents.certs
            if not cert_info.trusted and cert not in leaves
        ]
        used: list[x509.Certificate] = []

        for index, (info, der, shrouded) in enumerate(contents.keys):
            alias = info.friendly_name or f"key-{index + 1}"
            chain = _build_chain(leaves[index], issuers)
            used.extend(chain)
            unlocker = _shrouded_unlocker(alias, der) if shrouded else _plain_unlocker(alias, der)
            store.add_entry(KeyEntry(alias=alias, certificate_chain=chain, unlocker=unlocker))

        for index, (info, cert) in enumerate(contents.certs):
            if info.trusted or (info.local_key_id is None and cert not in used):
                alias = info.friendly_name or f"cert-{index + 1}"
                store.add_entry(TrustedCertificateEntry(alias=alias, certificate=cert))

        return store
