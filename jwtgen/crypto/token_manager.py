"""Token creation and validation with pinned algorithms and key material."""

from collections.abc import Mapping
from typing import Any

import uuid_utils

from jwtgen.core.config_record import ConfigRecord
from jwtgen.core.errors import KeyMismatchError, MalformedTokenError
from jwtgen.core.settings import TOKEN_TTL_DEFAULT, TokenSettings
from jwtgen.crypto import jwe, jws
from jwtgen.crypto.algorithms import KeyManagementAlgorithm, SigningAlgorithm
from jwtgen.crypto.encoding import TokenType, detect_token_type
from jwtgen.crypto.time_policy import current_timestamp
from jwtgen.crypto.types import (
    Claims,
    Header,
    UnverifiedToken,
    build_claims,
    build_header,
)


def new_jti() -> str:
    """Random UUIDv4 token identifier."""
    return str(uuid_utils.uuid4())


def issue_claims(
    ttl_seconds: int = TOKEN_TTL_DEFAULT,
    now: int | None = None,
    **fields: Any,
) -> Claims:
    """Build claims stamped with ``iat``/``nbf``/``exp`` and a random ``jti``.

    Explicit ``fields`` override the stamped values.
    """
    issued_at = current_timestamp() if now is None else now
    payload: dict[str, Any] = {
        "iat": issued_at,
        "nbf": issued_at,
        "exp": issued_at + ttl_seconds,
        "jti": new_jti(),
    }
    payload.update(fields)
    return build_claims(payload)


class TokenManager:
    """Creates and validates JWS or JWE tokens for one configured header.

    For JWS the issuing key signs and the validation key verifies. For JWE
    the issuing key is the recipient public key and the validation key is
    the matching private key (or the shared key for AES key wrap / dir).
    """

    def __init__(
        self,
        header: Header,
        issuing_key: Any = None,
        validation_key: Any = None,
        leeway: int = 0,
        ttl_seconds: int = TOKEN_TTL_DEFAULT,
    ) -> None:
        self._header = header
        self._issuing_key = issuing_key
        self._validation_key = validation_key
        self._leeway = leeway
        self._ttl_seconds = ttl_seconds

    @property
    def header(self) -> Header:
        return self._header

    @property
    def token_type(self) -> TokenType:
        return TokenType.JWE if self._header.is_encrypted else TokenType.JWS

    @classmethod
    def for_signing(
        cls,
        algorithm: SigningAlgorithm | str,
        signing_key: Any,
        verification_key: Any = None,
        kid: str | None = None,
        leeway: int = 0,
        ttl_seconds: int = TOKEN_TTL_DEFAULT,
    ) -> "TokenManager":
        """JWS manager; symmetric algorithms verify with the signing secret."""
        header = build_header(algorithm, kid=kid)
        assert isinstance(header.alg, SigningAlgorithm)
        if verification_key is None and header.alg.is_symmetric:
            verification_key = signing_key
        return cls(header, signing_key, verification_key, leeway, ttl_seconds)

    @classmethod
    def for_encryption(
        cls,
        key_management: KeyManagementAlgorithm | str,
        content_encryption: str,
        public_key: Any,
        private_key: Any = None,
        kid: str | None = None,
        leeway: int = 0,
        ttl_seconds: int = TOKEN_TTL_DEFAULT,
    ) -> "TokenManager":
        """JWE manager; AES key wrap and dir reuse the shared key for decryption."""
        header = build_header(
            key_management,
            is_encrypted=True,
            content_encryption=content_encryption,
            kid=kid,
        )
        assert isinstance(header.alg, KeyManagementAlgorithm)
        if private_key is None and not header.alg.is_rsa:
            private_key = public_key
        return cls(header, public_key, private_key, leeway, ttl_seconds)

    @classmethod
    def from_config_record(
        cls,
        record: ConfigRecord,
        issuing_key: Any,
        validation_key: Any = None,
        leeway: int = 0,
    ) -> "TokenManager":
        """Manager matching a persisted configuration record."""
        header = record.to_header()
        if header.is_encrypted:
            assert header.enc is not None
            return cls.for_encryption(
                header.alg, header.enc, issuing_key, validation_key, header.kid, leeway
            )
        return cls.for_signing(
            header.alg, issuing_key, validation_key, header.kid, leeway
        )

    @classmethod
    def from_settings(
        cls,
        settings: TokenSettings,
        issuing_key: Any,
        validation_key: Any = None,
        use_jwe: bool = False,
    ) -> "TokenManager":
        """Manager using the algorithms, leeway, and TTL from settings."""
        if use_jwe:
            return cls.for_encryption(
                settings.key_management,
                settings.content_encryption,
                issuing_key,
                validation_key,
                leeway=settings.leeway,
                ttl_seconds=settings.token_ttl,
            )
        return cls.for_signing(
            settings.algorithm,
            issuing_key,
            validation_key,
            leeway=settings.leeway,
            ttl_seconds=settings.token_ttl,
        )

    def issue_token(self, now: int | None = None, **fields: Any) -> str:
        """Create a token with stamped times, a random jti, and the configured TTL."""
        return self.create_token(
            issue_claims(self._ttl_seconds, now=now, **fields)
        )

    def create_token(self, claims: Claims | Mapping[str, Any]) -> str:
        """Sign (JWS) or encrypt (JWE) the claims."""
        if self._issuing_key is None:
            raise KeyMismatchError("No issuing key configured")
        if self._header.is_encrypted:
            return jwe.encrypt_claims(self._header, claims, self._issuing_key)
        return jws.sign(self._header, claims, self._issuing_key)

    def validate_token(self, token: str, now: int | None = None) -> Claims:
        """Verify or decrypt a token and apply the time policy."""
        if self._validation_key is None:
            raise KeyMismatchError("No validation key configured")
        kind = detect_token_type(token)
        if kind != self.token_type:
            raise MalformedTokenError(
                f"Expected a {self.token_type} token, got {kind}"
            )
        if kind == TokenType.JWE:
            assert isinstance(self._header.alg, KeyManagementAlgorithm)
            return jwe.decrypt_claims(
                token,
                self._validation_key,
                expected_algorithm=self._header.alg,
                expected_encryption=self._header.enc,
                now=now,
                leeway=self._leeway,
            )
        return jws.verify(
            token,
            self._validation_key,
            expected_algorithm=self._header.alg,
            now=now,
            leeway=self._leeway,
        )

    def inspect(self, token: str) -> UnverifiedToken:
        """Decode a JWS without verification, for display only."""
        return jws.decode(token)
