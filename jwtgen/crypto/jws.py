"""JWS compact signing and verification for HS*, RS*, and ES* algorithms.

Signature primitives come from PyJWT's algorithm objects; this module owns
the compact serialization, key/family checks, and algorithm pinning.
"""

import logging
from collections.abc import Mapping
from typing import Any

from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)
from jwt.algorithms import Algorithm, get_default_algorithms
from jwt.exceptions import InvalidKeyError

from jwtgen.core.errors import (
    AlgorithmMismatchError,
    InvalidSignatureError,
    KeyMismatchError,
    MalformedTokenError,
    UnsupportedAlgorithmError,
)
from jwtgen.crypto.algorithms import (
    AlgorithmFamily,
    EcFamily,
    HmacFamily,
    RsaFamily,
    SigningAlgorithm,
    parse_signing_algorithm,
)
from jwtgen.crypto.encoding import (
    JWS_SEGMENTS,
    b64url_decode,
    b64url_encode,
    decode_json_segment,
    json_bytes,
    split_token,
)
from jwtgen.crypto.keys import load_private_key, load_public_key
from jwtgen.crypto.time_policy import check_time_claims, current_timestamp
from jwtgen.crypto.types import (
    Claims,
    Header,
    UnverifiedToken,
    build_claims,
    header_from_mapping,
)

logger = logging.getLogger(__name__)

SigningKey = str | bytes | PrivateKeyTypes
VerificationKey = str | bytes | PublicKeyTypes | PrivateKeyTypes

_PRIMITIVES: dict[str, Algorithm] = get_default_algorithms()


def _hmac_secret(
    key: Any, alg: SigningAlgorithm, family: HmacFamily
) -> bytes:
    if not isinstance(key, (str, bytes)):
        raise KeyMismatchError(f"{alg} requires a symmetric secret")
    try:
        secret = _PRIMITIVES[alg.value].prepare_key(key)
    except InvalidKeyError as exc:
        raise KeyMismatchError(
            f"{alg} secret looks like an asymmetric key"
        ) from exc
    if len(secret) < family.min_key_bytes:
        raise KeyMismatchError(
            f"{alg} requires a secret of at least {family.min_key_bytes} bytes"
        )
    return secret


def _check_asymmetric(
    key: PrivateKeyTypes | PublicKeyTypes,
    alg: SigningAlgorithm,
    family: AlgorithmFamily,
) -> None:
    if isinstance(family, RsaFamily):
        if not isinstance(key, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
            raise KeyMismatchError(f"{alg} requires an RSA key")
        if key.key_size < family.min_key_bits:
            raise KeyMismatchError(
                f"{alg} requires an RSA key of at least {family.min_key_bits} bits"
            )
    elif isinstance(family, EcFamily):
        if not isinstance(key, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
            raise KeyMismatchError(f"{alg} requires an EC key")
        if not isinstance(key.curve, family.curve):
            raise KeyMismatchError(
                f"{alg} requires curve {family.curve_name}, got {key.curve.name}"
            )


def _signing_key(key: SigningKey, alg: SigningAlgorithm) -> Any:
    family = alg.family
    if isinstance(family, HmacFamily):
        return _hmac_secret(key, alg, family)
    if isinstance(key, (str, bytes)):
        key = load_private_key(key)
    if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        raise KeyMismatchError(f"{alg} signing requires a private key")
    _check_asymmetric(key, alg, family)
    return key


def _verification_key(key: VerificationKey, alg: SigningAlgorithm) -> Any:
    family = alg.family
    if isinstance(family, HmacFamily):
        return _hmac_secret(key, alg, family)
    if isinstance(key, (str, bytes)):
        try:
            key = load_public_key(key)
        except KeyMismatchError:
            key = load_private_key(key)
    if isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey)):
        key = key.public_key()
    _check_asymmetric(key, alg, family)
    return key


def _signing_algorithm(header: Header) -> SigningAlgorithm:
    if not isinstance(header.alg, SigningAlgorithm) or header.is_encrypted:
        raise UnsupportedAlgorithmError(
            f"{header.alg} is not a JWS signing algorithm"
        )
    return header.alg


def sign(
    header: Header,
    claims: Claims | Mapping[str, Any],
    key: SigningKey,
) -> str:
    """Produce a compact JWS over the header and claims."""
    alg = _signing_algorithm(header)
    if not isinstance(claims, Claims):
        claims = build_claims(claims)
    prepared = _signing_key(key, alg)

    header_b64 = b64url_encode(json_bytes(header.to_dict()))
    payload_b64 = b64url_encode(json_bytes(claims.to_payload()))
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    signature = _PRIMITIVES[alg.value].sign(signing_input, prepared)

    logger.debug("Signed %s token jti=%s", alg, claims.jti)
    return f"{header_b64}.{payload_b64}.{b64url_encode(signature)}"


def verify(
    token: str,
    key: VerificationKey,
    expected_algorithm: SigningAlgorithm | str,
    now: int | None = None,
    leeway: int = 0,
) -> Claims:
    """Verify a compact JWS pinned to ``expected_algorithm`` and return its claims.

    The token's own ``alg`` is only compared against the caller's
    expectation, never used to choose the verification primitive.
    """
    expected = parse_signing_algorithm(expected_algorithm)
    header_b64, payload_b64, signature_b64 = split_token(token, JWS_SEGMENTS)

    header_data = decode_json_segment(header_b64)
    if "alg" not in header_data:
        raise MalformedTokenError("Header is missing 'alg'")
    if header_data["alg"] != expected.value:
        logger.warning(
            "Rejected token: alg %r does not match expected %s",
            header_data["alg"],
            expected,
        )
        raise AlgorithmMismatchError(
            f"Token algorithm {header_data['alg']!r} does not match {expected}"
        )
    header_from_mapping(header_data, encrypted=False)

    signature = b64url_decode(signature_b64)
    prepared = _verification_key(key, expected)
    signing_input = f"{header_b64}.{payload_b64}".encode("ascii")
    if not _PRIMITIVES[expected.value].verify(signing_input, prepared, signature):
        logger.warning("Rejected token: %s signature mismatch", expected)
        raise InvalidSignatureError("Signature verification failed")

    claims = build_claims(decode_json_segment(payload_b64))
    check_time_claims(
        claims, current_timestamp() if now is None else now, leeway
    )
    return claims


def decode(token: str) -> UnverifiedToken:
    """Parse a compact JWS WITHOUT checking its signature or validity times.

    For introspection only; never base trust decisions on the result.
    """
    header_b64, payload_b64, signature_b64 = split_token(token, JWS_SEGMENTS)
    raw_header = decode_json_segment(header_b64)
    try:
        header = header_from_mapping(raw_header, encrypted=False)
    except UnsupportedAlgorithmError:
        header = None
    claims = build_claims(decode_json_segment(payload_b64))
    b64url_decode(signature_b64)
    return UnverifiedToken(header=header, raw_header=raw_header, claims=claims)
