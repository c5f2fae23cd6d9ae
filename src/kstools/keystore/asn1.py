"""ASN.1 structures for PKCS#12 (RFC 7292) and the PKCS#5 schemes it uses."""

from pyasn1.type import namedtype, tag, univ

# Content types (RFC 5652)
ID_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.1")
ID_ENCRYPTED_DATA = univ.ObjectIdentifier("1.2.840.113549.1.7.6")

# Safe bag types
ID_KEY_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.1")
ID_PKCS8_SHROUDED_KEY_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.2")
ID_CERT_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.3")
ID_SAFE_CONTENTS_BAG = univ.ObjectIdentifier("1.2.840.113549.1.12.10.1.6")
ID_X509_CERTIFICATE = univ.ObjectIdentifier("1.2.840.113549.1.9.22.1")

# Bag attributes
ID_FRIENDLY_NAME = univ.ObjectIdentifier("1.2.840.113549.1.9.20")
ID_LOCAL_KEY_ID = univ.ObjectIdentifier("1.2.840.113549.1.9.21")
# Marks a certificate bag as a trusted entry for Java's PKCS12 keystore.
ID_ORACLE_TRUSTED_KEY_USAGE = univ.ObjectIdentifier("2.16.840.1.113894.746875.1.1")
ID_ANY_EXTENDED_KEY_USAGE = univ.ObjectIdentifier("2.5.29.37.0")

# Password-based encryption
ID_PBES2 = univ.ObjectIdentifier("1.2.840.113549.1.5.13")
ID_PBKDF2 = univ.ObjectIdentifier("1.2.840.113549.1.5.12")
ID_PBE_SHA1_3DES = univ.ObjectIdentifier("1.2.840.113549.1.12.1.3")
ID_PBE_SHA1_RC2_128 = univ.ObjectIdentifier("1.2.840.113549.1.12.1.5")
ID_PBE_SHA1_RC2_40 = univ.ObjectIdentifier("1.2.840.113549.1.12.1.6")

ID_HMAC_WITH_SHA1 = univ.ObjectIdentifier("1.2.840.113549.2.7")
ID_HMAC_WITH_SHA224 = univ.ObjectIdentifier("1.2.840.113549.2.8")
ID_HMAC_WITH_SHA256 = univ.ObjectIdentifier("1.2.840.113549.2.9")
ID_HMAC_WITH_SHA384 = univ.ObjectIdentifier("1.2.840.113549.2.10")
ID_HMAC_WITH_SHA512 = univ.ObjectIdentifier("1.2.840.113549.2.11")

ID_AES128_CBC = univ.ObjectIdentifier("2.16.840.1.101.3.4.1.2")
ID_AES192_CBC = univ.ObjectIdentifier("2.16.840.1.101.3.4.1.22")
ID_AES256_CBC = univ.ObjectIdentifier("2.16.840.1.101.3.4.1.42")

# Digests used by the PKCS#12 MAC
ID_SHA1 = univ.ObjectIdentifier("1.3.14.3.2.26")
ID_SHA224 = univ.ObjectIdentifier("2.16.840.1.101.3.4.2.4")
ID_SHA256 = univ.ObjectIdentifier("2.16.840.1.101.3.4.2.1")
ID_SHA384 = univ.ObjectIdentifier("2.16.840.1.101.3.4.2.2")
ID_SHA512 = univ.ObjectIdentifier("2.16.840.1.101.3.4.2.3")


def _explicit(n: int) -> tag.Tag:
    return tag.Tag(tag.tagClassContext, tag.tagFormatConstructed, n)


def _implicit(n: int) -> tag.Tag:
    return tag.Tag(tag.tagClassContext, tag.tagFormatSimple, n)


class AlgorithmIdentifier(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("algorithm", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType("parameters", univ.Any()),
    )


class ContentInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("contentType", univ.ObjectIdentifier()),
        namedtype.OptionalNamedType(
            "content", univ.Any().subtype(explicitTag=_explicit(0))
        ),
    )


class AuthenticatedSafe(univ.SequenceOf):
    componentType = ContentInfo()


class DigestInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("digestAlgorithm", AlgorithmIdentifier()),
        namedtype.NamedType("digest", univ.OctetString()),
    )


class MacData(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("mac", DigestInfo()),
        namedtype.NamedType("macSalt", univ.OctetString()),
        namedtype.DefaultedNamedType("iterations", univ.Integer(1)),
    )


class PFX(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("authSafe", ContentInfo()),
        namedtype.OptionalNamedType("macData", MacData()),
    )


class AttributeValues(univ.SetOf):
    componentType = univ.Any()


class PKCS12Attribute(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("attrId", univ.ObjectIdentifier()),
        namedtype.NamedType("attrValues", AttributeValues()),
    )


class Attributes(univ.SetOf):
    componentType = PKCS12Attribute()


class SafeBag(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("bagId", univ.ObjectIdentifier()),
        namedtype.NamedType(
            "bagValue", univ.Any().subtype(explicitTag=_explicit(0))
        ),
        namedtype.OptionalNamedType("bagAttributes", Attributes()),
    )


class SafeContents(univ.SequenceOf):
    componentType = SafeBag()


class CertBag(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("certId", univ.ObjectIdentifier()),
        namedtype.NamedType(
            "certValue", univ.Any().subtype(explicitTag=_explicit(0))
        ),
    )


class EncryptedContentInfo(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("contentType", univ.ObjectIdentifier()),
        namedtype.NamedType("contentEncryptionAlgorithm", AlgorithmIdentifier()),
        namedtype.OptionalNamedType(
            "encryptedContent", univ.OctetString().subtype(implicitTag=_implicit(0))
        ),
    )


class EncryptedData(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("version", univ.Integer()),
        namedtype.NamedType("encryptedContentInfo", EncryptedContentInfo()),
        namedtype.OptionalNamedType(
            "unprotectedAttrs",
            univ.SetOf(componentType=univ.Any()).subtype(
                implicitTag=tag.Tag(tag.tagClassContext, tag.tagFormatConstructed, 1)
            ),
        ),
    )


class PBEParameter(univ.Sequence):
    """PKCS#12 appendix C password-based encryption parameters."""

    componentType = namedtype.NamedTypes(
        namedtype.NamedType("salt", univ.OctetString()),
        namedtype.NamedType("iterations", univ.Integer()),
    )


class PBKDF2Params(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("salt", univ.OctetString()),
        namedtype.NamedType("iterationCount", univ.Integer()),
        namedtype.OptionalNamedType("keyLength", univ.Integer()),
        namedtype.OptionalNamedType("prf", AlgorithmIdentifier()),
    )


class PBES2Params(univ.Sequence):
    componentType = namedtype.NamedTypes(
        namedtype.NamedType("keyDerivationFunc", AlgorithmIdentifier()),
        namedtype.NamedType("encryptionScheme", AlgorithmIdentifier()),
    )
