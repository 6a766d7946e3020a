"""Shared test fixtures for jwtgen."""

import pytest

from jwtgen.crypto.keys import (
    generate_asymmetric_keypair,
    generate_encryption_keypair,
    generate_symmetric_secret,
)
from jwtgen.crypto.types import KeyPair

FIXED_NOW = 1_700_000_000
SETTINGS_ENV = (
    "JWTGEN_ALGORITHM",
    "JWTGEN_KEY_MANAGEMENT",
    "JWTGEN_CONTENT_ENCRYPTION",
    "JWTGEN_TOKEN_TTL",
    "JWTGEN_LEEWAY",
)


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep host environment variables out of settings-driven tests."""
    for name in SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def now() -> int:
    """A fixed wall-clock timestamp."""
    return FIXED_NOW


@pytest.fixture
def hs_secret() -> bytes:
    """A fresh 512-bit HMAC secret."""
    return generate_symmetric_secret()


@pytest.fixture(scope="session")
def rsa_keypair() -> KeyPair:
    """An RS256 keypair shared across the session."""
    return generate_asymmetric_keypair("RS256")


@pytest.fixture(scope="session")
def other_rsa_keypair() -> KeyPair:
    """A second, unrelated RSA keypair."""
    return generate_asymmetric_keypair("RS256")


@pytest.fixture(scope="session")
def ec_keypairs() -> dict[str, KeyPair]:
    """One EC keypair per ES* algorithm."""
    return {
        alg: generate_asymmetric_keypair(alg)
        for alg in ("ES256", "ES384", "ES512")
    }


@pytest.fixture(scope="session")
def encryption_keypair() -> KeyPair:
    """An RSA keypair for RSA-OAEP key wrapping."""
    return generate_encryption_keypair()
