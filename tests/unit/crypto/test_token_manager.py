"""Tests for claim stamping and the token manager."""

import os
import uuid

import pytest

from jwtgen.core.config_record import parse_config_record
from jwtgen.core.errors import (
    AlgorithmMismatchError,
    KeyMismatchError,
    MalformedTokenError,
    TokenExpiredError,
)
from jwtgen.core.settings import TOKEN_TTL_DEFAULT, TokenSettings
from jwtgen.crypto.encoding import TokenType
from jwtgen.crypto.token_manager import TokenManager, issue_claims, new_jti
from jwtgen.crypto.types import KeyPair


class TestIssueClaims:
    """Tests for stamped claim construction."""

    def test_stamps_times(self, now: int) -> None:
        claims = issue_claims(ttl_seconds=600, now=now, sub="user-1")
        assert claims.iat == now
        assert claims.nbf == now
        assert claims.exp == now + 600
        assert claims.sub == "user-1"

    def test_jti_is_uuid4(self, now: int) -> None:
        claims = issue_claims(now=now)
        assert claims.jti is not None
        assert uuid.UUID(claims.jti).version == 4

    def test_unique_jti(self) -> None:
        assert len({new_jti() for _ in range(100)}) == 100

    def test_explicit_fields_win(self, now: int) -> None:
        claims = issue_claims(now=now, exp=now + 5, jti="fixed")
        assert claims.exp == now + 5
        assert claims.jti == "fixed"

    def test_default_ttl_matches_settings(self, now: int) -> None:
        assert issue_claims(now=now).exp == now + TOKEN_TTL_DEFAULT

    def test_custom_fields(self, now: int) -> None:
        claims = issue_claims(now=now, scope="read write")
        assert claims.custom == {"scope": "read write"}


class TestSigningManager:
    """JWS managers."""

    def test_hs256_roundtrip(self, hs_secret: bytes, now: int) -> None:
        manager = TokenManager.for_signing("HS256", hs_secret)
        token = manager.issue_token(now=now, sub="user-1")
        assert manager.token_type == TokenType.JWS
        assert manager.validate_token(token, now=now).sub == "user-1"

    def test_rs256_roundtrip(self, rsa_keypair: KeyPair, now: int) -> None:
        manager = TokenManager.for_signing(
            "RS256",
            rsa_keypair.private_key_pem,
            rsa_keypair.public_key_pem,
            kid=rsa_keypair.kid,
        )
        token = manager.issue_token(now=now)
        assert manager.inspect(token).header.kid == rsa_keypair.kid
        assert manager.validate_token(token, now=now).iat == now

    def test_verification_only(self, rsa_keypair: KeyPair, now: int) -> None:
        issuer = TokenManager.for_signing("RS256", rsa_keypair.private_key_pem)
        verifier = TokenManager.for_signing("RS256", None, rsa_keypair.public_key_pem)
        token = issuer.create_token({"sub": "1"})
        assert verifier.validate_token(token, now=now).sub == "1"
        with pytest.raises(KeyMismatchError):
            verifier.create_token({"sub": "1"})

    def test_asymmetric_without_verification_key(self, rsa_keypair: KeyPair) -> None:
        manager = TokenManager.for_signing("RS256", rsa_keypair.private_key_pem)
        token = manager.create_token({"sub": "1"})
        with pytest.raises(KeyMismatchError):
            manager.validate_token(token)

    def test_expiry_uses_ttl(self, hs_secret: bytes, now: int) -> None:
        manager = TokenManager.for_signing("HS256", hs_secret, ttl_seconds=60)
        token = manager.issue_token(now=now)
        assert manager.validate_token(token, now=now + 59).exp == now + 60
        with pytest.raises(TokenExpiredError):
            manager.validate_token(token, now=now + 60)

    def test_leeway(self, hs_secret: bytes, now: int) -> None:
        manager = TokenManager.for_signing("HS256", hs_secret, ttl_seconds=60, leeway=30)
        token = manager.issue_token(now=now)
        assert manager.validate_token(token, now=now + 89).sub is None

    def test_pinned_algorithm(self, hs_secret: bytes, now: int) -> None:
        issuer = TokenManager.for_signing("HS512", hs_secret)
        verifier = TokenManager.for_signing("HS256", hs_secret)
        with pytest.raises(AlgorithmMismatchError):
            verifier.validate_token(issuer.issue_token(now=now), now=now)

    def test_rejects_jwe(self, hs_secret: bytes, encryption_keypair: KeyPair) -> None:
        jwe_manager = TokenManager.for_encryption(
            "RSA-OAEP-256", "A256GCM", encryption_keypair.public_key_pem
        )
        token = jwe_manager.create_token({"sub": "1"})
        with pytest.raises(MalformedTokenError):
            TokenManager.for_signing("HS256", hs_secret).validate_token(token)

    def test_rejects_garbage(self, hs_secret: bytes) -> None:
        with pytest.raises(MalformedTokenError):
            TokenManager.for_signing("HS256", hs_secret).validate_token("not-a-token")


class TestEncryptionManager:
    """JWE managers."""

    def test_rsa_roundtrip(self, encryption_keypair: KeyPair, now: int) -> None:
        manager = TokenManager.for_encryption(
            "RSA-OAEP-256",
            "A256GCM",
            encryption_keypair.public_key_pem,
            encryption_keypair.private_key_pem,
        )
        token = manager.issue_token(now=now, sub="user-1", role="admin")
        assert manager.token_type == TokenType.JWE
        assert token.count(".") == 4
        claims = manager.validate_token(token, now=now)
        assert claims.sub == "user-1"
        assert claims.custom == {"role": "admin"}

    def test_key_wrap_reuses_shared_key(self, now: int) -> None:
        manager = TokenManager.for_encryption("A128KW", "A128CBC-HS256", os.urandom(16))
        token = manager.issue_token(now=now)
        assert manager.validate_token(token, now=now).iat == now

    def test_pinned_encryption(self, now: int) -> None:
        key = os.urandom(32)
        issuer = TokenManager.for_encryption("A256KW", "A256GCM", key)
        verifier = TokenManager.for_encryption("A256KW", "A128GCM", key)
        with pytest.raises(AlgorithmMismatchError):
            verifier.validate_token(issuer.issue_token(now=now), now=now)

    def test_rejects_jws(self, hs_secret: bytes, encryption_keypair: KeyPair) -> None:
        token = TokenManager.for_signing("HS256", hs_secret).create_token({"sub": "1"})
        manager = TokenManager.for_encryption(
            "RSA-OAEP-256",
            "A256GCM",
            encryption_keypair.public_key_pem,
            encryption_keypair.private_key_pem,
        )
        with pytest.raises(MalformedTokenError):
            manager.validate_token(token)


class TestFromConfigRecord:
    """Managers built from persisted configuration records."""

    def test_jws_record(self, hs_secret: bytes, now: int) -> None:
        record = parse_config_record(
            '{"header": {"alg": "HS384", "kid": "k1"}, "payload": {"sub": "svc"}}'
        )
        manager = TokenManager.from_config_record(record, hs_secret)
        token = manager.create_token(record.to_claims())
        assert manager.header.kid == "k1"
        assert manager.validate_token(token, now=now).sub == "svc"

    def test_jwe_record(self, encryption_keypair: KeyPair, now: int) -> None:
        record = parse_config_record(
            '{"header": {"alg": "RSA-OAEP"}, "useJWE": true,'
            ' "contentEncryption": "A128CBC-HS256"}'
        )
        manager = TokenManager.from_config_record(
            record,
            encryption_keypair.public_key_pem,
            encryption_keypair.private_key_pem,
        )
        assert manager.header.enc == "A128CBC-HS256"
        token = manager.issue_token(now=now)
        assert manager.validate_token(token, now=now).iat == now


class TestFromSettings:
    """Managers built from environment-driven settings."""

    def test_defaults(self, rsa_keypair: KeyPair, now: int) -> None:
        manager = TokenManager.from_settings(
            TokenSettings(), rsa_keypair.private_key_pem, rsa_keypair.public_key_pem
        )
        assert manager.header.alg == "RS256"
        token = manager.issue_token(now=now)
        assert manager.validate_token(token, now=now).exp == now + 1800

    def test_env_overrides(
        self, monkeypatch: pytest.MonkeyPatch, hs_secret: bytes, now: int
    ) -> None:
        monkeypatch.setenv("JWTGEN_ALGORITHM", "HS512")
        monkeypatch.setenv("JWTGEN_TOKEN_TTL", "60")
        manager = TokenManager.from_settings(TokenSettings(), hs_secret)
        token = manager.issue_token(now=now)
        assert manager.header.alg == "HS512"
        assert manager.validate_token(token, now=now).exp == now + 60

    def test_jwe_settings(
        self, monkeypatch: pytest.MonkeyPatch, encryption_keypair: KeyPair, now: int
    ) -> None:
        monkeypatch.setenv("JWTGEN_CONTENT_ENCRYPTION", "A192GCM")
        manager = TokenManager.from_settings(
            TokenSettings(),
            encryption_keypair.public_key_pem,
            encryption_keypair.private_key_pem,
            use_jwe=True,
        )
        assert manager.header.alg == "RSA-OAEP-256"
        assert manager.header.enc == "A192GCM"
        assert manager.validate_token(manager.issue_token(now=now), now=now).iat == now
