"""Type definitions for token headers, claims, and key material."""

import copy
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from jwtgen.core.errors import (
    InvalidAlgorithmError,
    InvalidClaimTypeError,
    MalformedTokenError,
    MissingContentEncryptionError,
    UnsupportedAlgorithmError,
)
from jwtgen.crypto.algorithms import (
    ContentEncryption,
    KeyManagementAlgorithm,
    SigningAlgorithm,
    parse_content_encryption,
    parse_key_management,
    parse_signing_algorithm,
)

TOKEN_TYPE = "JWT"
TIME_CLAIMS = ("iat", "nbf", "exp")
STRING_CLAIMS = ("iss", "sub", "jti")
RESERVED_CLAIMS = ("iss", "sub", "aud", "exp", "nbf", "iat", "jti")


class KeyPair(BaseModel):
    """An asymmetric keypair as PEM text."""

    kid: str
    algorithm: str
    private_key_pem: str
    public_key_pem: str


class Header(BaseModel):
    """Protected token header."""

    model_config = ConfigDict(frozen=True)

    alg: SigningAlgorithm | KeyManagementAlgorithm
    typ: str = TOKEN_TYPE
    enc: ContentEncryption | None = None
    kid: str | None = None

    @property
    def is_encrypted(self) -> bool:
        return self.enc is not None

    def to_dict(self) -> dict[str, Any]:
        """Wire mapping without absent fields."""
        return self.model_dump(mode="json", exclude_none=True)


class Claims(BaseModel):
    """Token payload: reserved claims plus an explicit custom-claim map."""

    model_config = ConfigDict(frozen=True, strict=True)

    iss: str | None = None
    sub: str | None = None
    aud: str | list[str] | None = None
    exp: int | None = Field(default=None, ge=0)
    nbf: int | None = Field(default=None, ge=0)
    iat: int | None = Field(default=None, ge=0)
    jti: str | None = None
    # Held as a read-only copy of the caller's mapping.
    custom: dict[str, Any] = Field(default_factory=dict, validate_default=True)

    @field_validator("custom")
    @classmethod
    def _freeze_custom(cls, value: dict[str, Any]) -> Mapping[str, Any]:
        shadowed = sorted(set(value) & set(RESERVED_CLAIMS))
        if shadowed:
            raise ValueError(f"Custom claims shadow reserved names: {shadowed}")
        return MappingProxyType(copy.deepcopy(value))

    @field_serializer("custom")
    def _plain_custom(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    def to_payload(self) -> dict[str, Any]:
        """Flatten into the wire payload mapping."""
        payload: dict[str, Any] = {
            name: getattr(self, name)
            for name in RESERVED_CLAIMS
            if getattr(self, name) is not None
        }
        payload.update(self.custom)
        return payload

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Claims":
        """Split a wire payload mapping into reserved and custom claims."""
        return build_claims(payload)


class UnverifiedToken(BaseModel):
    """Decoded JWS contents whose signature and times were NOT checked.

    ``header`` is None when the token names an algorithm outside the
    supported set; ``raw_header`` always holds the header as sent.
    """

    model_config = ConfigDict(frozen=True)

    header: Header | None
    raw_header: dict[str, Any]
    claims: Claims


class DecryptedToken(BaseModel):
    """Recovered JWE plaintext and its protected header."""

    model_config = ConfigDict(frozen=True)

    plaintext: bytes
    header: Header


def _check_reserved(name: str, value: Any) -> None:
    if name in TIME_CLAIMS:
        if isinstance(value, bool) or not isinstance(value, int) or value < 0:
            raise InvalidClaimTypeError(name, value)
    elif name in STRING_CLAIMS:
        if not isinstance(value, str):
            raise InvalidClaimTypeError(name, value)
    elif name == "aud":
        if isinstance(value, list):
            if not all(isinstance(item, str) for item in value):
                raise InvalidClaimTypeError(name, value)
        elif not isinstance(value, str):
            raise InvalidClaimTypeError(name, value)


def build_claims(fields: Mapping[str, Any]) -> Claims:
    """Build claims from an open mapping without injecting defaults.

    Unknown keys are carried as custom claims. ``None`` values for reserved
    claims are treated as absent.
    """
    reserved: dict[str, Any] = {}
    custom: dict[str, Any] = {}
    for name, value in fields.items():
        if not isinstance(name, str):
            raise InvalidClaimTypeError(repr(name), name)
        if name in RESERVED_CLAIMS:
            if value is None:
                continue
            _check_reserved(name, value)
            reserved[name] = list(value) if isinstance(value, list) else value
        else:
            custom[name] = value
    return Claims(**reserved, custom=custom)


def build_header(
    algorithm: str,
    is_encrypted: bool = False,
    content_encryption: str | None = None,
    kid: str | None = None,
) -> Header:
    """Build a JWS header, or a JWE header when ``is_encrypted`` is set.

    For JWE headers ``algorithm`` names the key-management algorithm.
    """
    try:
        alg: SigningAlgorithm | KeyManagementAlgorithm = (
            parse_key_management(algorithm)
            if is_encrypted
            else parse_signing_algorithm(algorithm)
        )
    except UnsupportedAlgorithmError as exc:
        raise InvalidAlgorithmError(str(exc)) from exc

    enc = None
    if is_encrypted:
        if content_encryption is None:
            raise MissingContentEncryptionError(
                "Encrypted header requires a content encryption algorithm"
            )
        enc = parse_content_encryption(content_encryption)
    return Header(alg=alg, enc=enc, kid=kid)


def header_from_mapping(data: Mapping[str, Any], encrypted: bool) -> Header:
    """Parse a decoded protected header, rejecting unknown algorithms."""
    if "alg" not in data:
        raise MalformedTokenError("Header is missing 'alg'")
    if "crit" in data:
        raise MalformedTokenError("Critical header parameters are not supported")
    typ = data.get("typ", TOKEN_TYPE)
    kid = data.get("kid")
    if not isinstance(typ, str) or (kid is not None and not isinstance(kid, str)):
        raise MalformedTokenError("Header 'typ' and 'kid' must be strings")

    if encrypted:
        if "enc" not in data:
            raise MalformedTokenError("Header is missing 'enc'")
        return Header(
            alg=parse_key_management(data["alg"]),
            typ=typ,
            enc=parse_content_encryption(data["enc"]),
            kid=kid,
        )
    return Header(alg=parse_signing_algorithm(data["alg"]), typ=typ, kid=kid)
