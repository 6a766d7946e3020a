"""Algorithm identifiers for JWS signing and JWE key/content encryption.

Every signing algorithm resolves to exactly one family (HMAC, RSA, or EC)
carrying the concrete hash and curve parameters, so engines dispatch on the
family type instead of on identifier prefixes.
"""

from dataclasses import dataclass
from enum import StrEnum

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec

from jwtgen.core.errors import (
    UnsupportedAlgorithmError,
    UnsupportedContentEncryptionError,
    UnsupportedKeyManagementAlgorithmError,
)

RSA_MIN_KEY_BITS = 2048


class SigningAlgorithm(StrEnum):
    """JWS signing algorithm identifiers."""

    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"
    ES256 = "ES256"
    ES384 = "ES384"
    ES512 = "ES512"

    @property
    def family(self) -> "AlgorithmFamily":
        """Family parameters for this identifier."""
        return _FAMILIES[self]

    @property
    def is_symmetric(self) -> bool:
        return isinstance(self.family, HmacFamily)


class KeyManagementAlgorithm(StrEnum):
    """JWE key-management algorithm identifiers."""

    RSA_OAEP = "RSA-OAEP"
    RSA_OAEP_256 = "RSA-OAEP-256"
    A128KW = "A128KW"
    A192KW = "A192KW"
    A256KW = "A256KW"
    DIR = "dir"

    @property
    def is_rsa(self) -> bool:
        return self in (
            KeyManagementAlgorithm.RSA_OAEP,
            KeyManagementAlgorithm.RSA_OAEP_256,
        )

    @property
    def wrap_key_bytes(self) -> int | None:
        """Required AES key-wrap key length, or None for non-AES modes."""
        return _WRAP_KEY_BYTES.get(self)


class ContentEncryption(StrEnum):
    """JWE content-encryption algorithm identifiers."""

    A128GCM = "A128GCM"
    A192GCM = "A192GCM"
    A256GCM = "A256GCM"
    A128CBC_HS256 = "A128CBC-HS256"
    A192CBC_HS384 = "A192CBC-HS384"
    A256CBC_HS512 = "A256CBC-HS512"

    @property
    def params(self) -> "ContentEncryptionParams":
        return _CONTENT_PARAMS[self]


@dataclass(frozen=True)
class HmacFamily:
    """Symmetric HMAC signing; the secret must be at least the digest size."""

    hash_alg: type[hashes.HashAlgorithm]
    min_key_bytes: int


@dataclass(frozen=True)
class RsaFamily:
    """RSASSA-PKCS1-v1_5 signing."""

    hash_alg: type[hashes.HashAlgorithm]
    min_key_bits: int = RSA_MIN_KEY_BITS


@dataclass(frozen=True)
class EcFamily:
    """ECDSA signing over a named curve."""

    hash_alg: type[hashes.HashAlgorithm]
    curve: type[ec.EllipticCurve]
    curve_name: str


AlgorithmFamily = HmacFamily | RsaFamily | EcFamily


@dataclass(frozen=True)
class ContentEncryptionParams:
    """Key and IV sizes for a content-encryption algorithm.

    For CBC-HMAC modes the CEK is the MAC key followed by the AES key, each
    ``cek_bytes // 2`` long, and ``mac_hash`` selects the HMAC digest.
    """

    cek_bytes: int
    iv_bytes: int
    mac_hash: type[hashes.HashAlgorithm] | None = None

    @property
    def is_gcm(self) -> bool:
        return self.mac_hash is None


_FAMILIES: dict[SigningAlgorithm, AlgorithmFamily] = {
    SigningAlgorithm.HS256: HmacFamily(hashes.SHA256, 32),
    SigningAlgorithm.HS384: HmacFamily(hashes.SHA384, 48),
    SigningAlgorithm.HS512: HmacFamily(hashes.SHA512, 64),
    SigningAlgorithm.RS256: RsaFamily(hashes.SHA256),
    SigningAlgorithm.RS384: RsaFamily(hashes.SHA384),
    SigningAlgorithm.RS512: RsaFamily(hashes.SHA512),
    SigningAlgorithm.ES256: EcFamily(hashes.SHA256, ec.SECP256R1, "P-256"),
    SigningAlgorithm.ES384: EcFamily(hashes.SHA384, ec.SECP384R1, "P-384"),
    SigningAlgorithm.ES512: EcFamily(hashes.SHA512, ec.SECP521R1, "P-521"),
}

_WRAP_KEY_BYTES: dict[KeyManagementAlgorithm, int] = {
    KeyManagementAlgorithm.A128KW: 16,
    KeyManagementAlgorithm.A192KW: 24,
    KeyManagementAlgorithm.A256KW: 32,
}

_CONTENT_PARAMS: dict[ContentEncryption, ContentEncryptionParams] = {
    ContentEncryption.A128GCM: ContentEncryptionParams(16, 12),
    ContentEncryption.A192GCM: ContentEncryptionParams(24, 12),
    ContentEncryption.A256GCM: ContentEncryptionParams(32, 12),
    ContentEncryption.A128CBC_HS256: ContentEncryptionParams(32, 16, hashes.SHA256),
    ContentEncryption.A192CBC_HS384: ContentEncryptionParams(48, 16, hashes.SHA384),
    ContentEncryption.A256CBC_HS512: ContentEncryptionParams(64, 16, hashes.SHA512),
}


def parse_signing_algorithm(value: object) -> SigningAlgorithm:
    """Resolve a JWS identifier, rejecting anything unknown."""
    try:
        return SigningAlgorithm(value)
    except ValueError:
        raise UnsupportedAlgorithmError(
            f"Unsupported signing algorithm: {value!r}"
        ) from None


def parse_key_management(value: object) -> KeyManagementAlgorithm:
    """Resolve a JWE key-management identifier, rejecting anything unknown."""
    try:
        return KeyManagementAlgorithm(value)
    except ValueError:
        raise UnsupportedKeyManagementAlgorithmError(
            f"Unsupported key management algorithm: {value!r}"
        ) from None


def parse_content_encryption(value: object) -> ContentEncryption:
    """Resolve a JWE content-encryption identifier, rejecting anything unknown."""
    try:
        return ContentEncryption(value)
    except ValueError:
        raise UnsupportedContentEncryptionError(
            f"Unsupported content encryption: {value!r}"
        ) from None
