"""Symmetric secret and asymmetric keypair generation and loading."""

import logging
import secrets

import uuid_utils
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)

from jwtgen.core.errors import KeyMismatchError, UnsupportedAlgorithmError
from jwtgen.crypto.algorithms import (
    RSA_MIN_KEY_BITS,
    EcFamily,
    RsaFamily,
    parse_signing_algorithm,
)
from jwtgen.crypto.types import KeyPair

logger = logging.getLogger(__name__)

SYMMETRIC_SECRET_BYTES = 64
RSA_PUBLIC_EXPONENT = 65537
JWE_KEYPAIR_ALGORITHM = "RSA-OAEP-256"


def generate_symmetric_secret(num_bytes: int = SYMMETRIC_SECRET_BYTES) -> bytes:
    """Generate a random HMAC secret of at least 512 bits."""
    if num_bytes < SYMMETRIC_SECRET_BYTES:
        raise ValueError(
            f"Symmetric secrets must be at least {SYMMETRIC_SECRET_BYTES} bytes"
        )
    return secrets.token_bytes(num_bytes)


def _private_pem(private_key: PrivateKeyTypes) -> str:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


def _public_pem(public_key: PublicKeyTypes) -> str:
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()


def _rsa_private_key(key_size: int) -> rsa.RSAPrivateKey:
    if key_size < RSA_MIN_KEY_BITS:
        raise ValueError(f"RSA keys must be at least {RSA_MIN_KEY_BITS} bits")
    return rsa.generate_private_key(
        public_exponent=RSA_PUBLIC_EXPONENT,
        key_size=key_size,
    )


def _to_keypair(private_key: PrivateKeyTypes, algorithm: str) -> KeyPair:
    return KeyPair(
        kid=str(uuid_utils.uuid7()),
        algorithm=algorithm,
        private_key_pem=_private_pem(private_key),
        public_key_pem=_public_pem(private_key.public_key()),
    )


def generate_asymmetric_keypair(
    algorithm: str, rsa_key_size: int = RSA_MIN_KEY_BITS
) -> KeyPair:
    """Generate a PKCS8/SPKI PEM keypair for an RS* or ES* algorithm."""
    alg = parse_signing_algorithm(algorithm)
    family = alg.family
    if isinstance(family, RsaFamily):
        private_key: PrivateKeyTypes = _rsa_private_key(rsa_key_size)
    elif isinstance(family, EcFamily):
        private_key = ec.generate_private_key(family.curve())
    else:
        raise UnsupportedAlgorithmError(
            f"{alg} is symmetric; use generate_symmetric_secret()"
        )
    keypair = _to_keypair(private_key, alg.value)
    logger.debug("Generated %s keypair kid=%s", alg, keypair.kid)
    return keypair


def generate_encryption_keypair(rsa_key_size: int = RSA_MIN_KEY_BITS) -> KeyPair:
    """Generate an RSA keypair for RSA-OAEP key wrapping."""
    keypair = _to_keypair(_rsa_private_key(rsa_key_size), JWE_KEYPAIR_ALGORITHM)
    logger.debug("Generated encryption keypair kid=%s", keypair.kid)
    return keypair


def _as_bytes(pem: str | bytes) -> bytes:
    return pem.encode() if isinstance(pem, str) else pem


def load_private_key(pem: str | bytes) -> PrivateKeyTypes:
    """Load an unencrypted PEM private key."""
    try:
        return serialization.load_pem_private_key(_as_bytes(pem), password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyMismatchError("Could not parse PEM private key") from exc


def load_public_key(pem: str | bytes) -> PublicKeyTypes:
    """Load a PEM SPKI public key."""
    try:
        return serialization.load_pem_public_key(_as_bytes(pem))
    except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
        raise KeyMismatchError("Could not parse PEM public key") from exc


def public_key_pem(private_pem: str | bytes) -> str:
    """Derive the SPKI PEM public key from a PEM private key."""
    return _public_pem(load_private_key(private_pem).public_key())
