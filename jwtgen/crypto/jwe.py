"""JWE compact encryption and decryption (RFC 7516 / RFC 7518).

Key management: RSA-OAEP, RSA-OAEP-256, A128KW/A192KW/A256KW, dir.
Content encryption: A128GCM/A192GCM/A256GCM and the AES-CBC + HMAC-SHA2
composites A128CBC-HS256/A192CBC-HS384/A256CBC-HS512.
"""

import json
import logging
import os
import struct
from collections.abc import Mapping
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import constant_time, hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.types import (
    PrivateKeyTypes,
    PublicKeyTypes,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.keywrap import (
    InvalidUnwrap,
    aes_key_unwrap,
    aes_key_wrap,
)

from jwtgen.core.errors import (
    AlgorithmMismatchError,
    DecryptionFailedError,
    KeyMismatchError,
    MalformedTokenError,
    MissingContentEncryptionError,
    UnsupportedKeyManagementAlgorithmError,
)
from jwtgen.crypto.algorithms import (
    RSA_MIN_KEY_BITS,
    ContentEncryption,
    ContentEncryptionParams,
    KeyManagementAlgorithm,
    parse_content_encryption,
    parse_key_management,
)
from jwtgen.crypto.encoding import (
    JWE_SEGMENTS,
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
    DecryptedToken,
    Header,
    build_claims,
    header_from_mapping,
)

logger = logging.getLogger(__name__)

GCM_TAG_BYTES = 16
AES_BLOCK_BITS = 128
DEFAULT_KEY_MANAGEMENT = KeyManagementAlgorithm.RSA_OAEP_256

EncryptionKey = str | bytes | PublicKeyTypes
DecryptionKey = str | bytes | PrivateKeyTypes

_DECRYPTION_FAILED = "JWE decryption failed"


def _oaep(alg: KeyManagementAlgorithm) -> padding.OAEP:
    hash_alg: hashes.HashAlgorithm = (
        hashes.SHA256() if alg == KeyManagementAlgorithm.RSA_OAEP_256 else hashes.SHA1()
    )
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hash_alg),
        algorithm=hash_alg,
        label=None,
    )


def _check_rsa_size(key: rsa.RSAPublicKey | rsa.RSAPrivateKey) -> None:
    if key.key_size < RSA_MIN_KEY_BITS:
        raise KeyMismatchError(
            f"RSA key wrapping requires at least {RSA_MIN_KEY_BITS} bits"
        )


def _symmetric_key(
    key: Any, alg: KeyManagementAlgorithm, params: ContentEncryptionParams
) -> bytes:
    if not isinstance(key, bytes):
        raise KeyMismatchError(f"{alg} requires a raw symmetric key")
    expected = params.cek_bytes if alg == KeyManagementAlgorithm.DIR else alg.wrap_key_bytes
    if len(key) != expected:
        raise KeyMismatchError(f"{alg} requires a {expected}-byte key")
    return key


def _rsa_public_key(key: EncryptionKey) -> rsa.RSAPublicKey:
    if isinstance(key, (str, bytes)):
        try:
            key = load_public_key(key)
        except KeyMismatchError:
            key = load_private_key(key)
    if isinstance(key, rsa.RSAPrivateKey):
        key = key.public_key()
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyMismatchError("RSA-OAEP requires an RSA public key")
    _check_rsa_size(key)
    return key


def _rsa_private_key(key: DecryptionKey) -> rsa.RSAPrivateKey:
    if isinstance(key, (str, bytes)):
        key = load_private_key(key)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyMismatchError("RSA-OAEP requires an RSA private key")
    _check_rsa_size(key)
    return key


def _cbc_mac(
    mac_key: bytes,
    params: ContentEncryptionParams,
    aad: bytes,
    iv: bytes,
    ciphertext: bytes,
) -> bytes:
    assert params.mac_hash is not None
    mac = crypto_hmac.HMAC(mac_key, params.mac_hash())
    mac.update(aad + iv + ciphertext + struct.pack(">Q", len(aad) * 8))
    return mac.finalize()[: len(mac_key)]


def _encrypt_content(
    params: ContentEncryptionParams,
    cek: bytes,
    iv: bytes,
    plaintext: bytes,
    aad: bytes,
) -> tuple[bytes, bytes]:
    if params.is_gcm:
        sealed = AESGCM(cek).encrypt(iv, plaintext, aad)
        return sealed[:-GCM_TAG_BYTES], sealed[-GCM_TAG_BYTES:]

    half = len(cek) // 2
    mac_key, enc_key = cek[:half], cek[half:]
    padder = sym_padding.PKCS7(AES_BLOCK_BITS).padder()
    padded = padder.update(plaintext) + padder.finalize()
    encryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return ciphertext, _cbc_mac(mac_key, params, aad, iv, ciphertext)


def _decrypt_content(
    params: ContentEncryptionParams,
    cek: bytes,
    iv: bytes,
    ciphertext: bytes,
    tag: bytes,
    aad: bytes,
) -> bytes:
    if len(iv) != params.iv_bytes:
        raise InvalidTag()
    if params.is_gcm:
        if len(tag) != GCM_TAG_BYTES:
            raise InvalidTag()
        return AESGCM(cek).decrypt(iv, ciphertext + tag, aad)

    half = len(cek) // 2
    mac_key, enc_key = cek[:half], cek[half:]
    expected_tag = _cbc_mac(mac_key, params, aad, iv, ciphertext)
    if not constant_time.bytes_eq(tag, expected_tag):
        raise InvalidTag()
    decryptor = Cipher(algorithms.AES(enc_key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = sym_padding.PKCS7(AES_BLOCK_BITS).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def encrypt(header: Header, plaintext: bytes, key: EncryptionKey) -> str:
    """Encrypt ``plaintext`` into a compact JWE for the recipient key.

    A fresh CEK (except for ``dir``) and IV are drawn for every call.
    """
    if not isinstance(header.alg, KeyManagementAlgorithm):
        raise UnsupportedKeyManagementAlgorithmError(
            f"{header.alg} is not a JWE key management algorithm"
        )
    if header.enc is None:
        raise MissingContentEncryptionError("JWE header requires 'enc'")
    alg = header.alg
    params = header.enc.params

    if alg.is_rsa:
        public_key = _rsa_public_key(key)
        cek = os.urandom(params.cek_bytes)
        encrypted_key = public_key.encrypt(cek, _oaep(alg))
    elif alg == KeyManagementAlgorithm.DIR:
        cek = _symmetric_key(key, alg, params)
        encrypted_key = b""
    else:
        wrap_key = _symmetric_key(key, alg, params)
        cek = os.urandom(params.cek_bytes)
        encrypted_key = aes_key_wrap(wrap_key, cek)

    header_b64 = b64url_encode(json_bytes(header.to_dict()))
    iv = os.urandom(params.iv_bytes)
    ciphertext, tag = _encrypt_content(
        params, cek, iv, plaintext, header_b64.encode("ascii")
    )

    logger.debug("Encrypted JWE alg=%s enc=%s", alg, header.enc)
    return ".".join(
        [
            header_b64,
            b64url_encode(encrypted_key),
            b64url_encode(iv),
            b64url_encode(ciphertext),
            b64url_encode(tag),
        ]
    )


def _unwrap_cek(
    alg: KeyManagementAlgorithm,
    params: ContentEncryptionParams,
    key: DecryptionKey,
    encrypted_key: bytes,
) -> bytes | None:
    """Recover the CEK, or None when unwrapping fails."""
    if alg.is_rsa:
        private_key = _rsa_private_key(key)
        try:
            cek = private_key.decrypt(encrypted_key, _oaep(alg))
        except ValueError:
            return None
    elif alg == KeyManagementAlgorithm.DIR:
        # The CEK length comes from the untrusted "enc" header, so a length
        # mismatch is an unwrap failure rather than a key error.
        if not isinstance(key, bytes):
            raise KeyMismatchError(f"{alg} requires a raw symmetric key")
        if encrypted_key:
            return None
        cek = key
    else:
        wrap_key = _symmetric_key(key, alg, params)
        try:
            cek = aes_key_unwrap(wrap_key, encrypted_key)
        except (InvalidUnwrap, ValueError):
            return None
    if len(cek) != params.cek_bytes:
        return None
    return cek


def decrypt(
    token: str,
    key: DecryptionKey,
    expected_algorithm: KeyManagementAlgorithm | str = DEFAULT_KEY_MANAGEMENT,
    expected_encryption: ContentEncryption | str | None = None,
) -> DecryptedToken:
    """Decrypt a compact JWE and return the plaintext and protected header.

    The header's ``alg`` must equal ``expected_algorithm``. Every
    cryptographic failure, unwrap or authentication, raises the same
    ``DecryptionFailedError``.
    """
    expected = parse_key_management(expected_algorithm)
    header_b64, encrypted_key_b64, iv_b64, ciphertext_b64, tag_b64 = split_token(
        token, JWE_SEGMENTS
    )

    header_data = decode_json_segment(header_b64)
    if "alg" not in header_data:
        raise MalformedTokenError("Header is missing 'alg'")
    if header_data["alg"] != expected.value:
        logger.warning(
            "Rejected JWE: alg %r does not match expected %s",
            header_data["alg"],
            expected,
        )
        raise AlgorithmMismatchError(
            f"Token algorithm {header_data['alg']!r} does not match {expected}"
        )
    header = header_from_mapping(header_data, encrypted=True)
    assert header.enc is not None
    if expected_encryption is not None and header.enc != parse_content_encryption(
        expected_encryption
    ):
        raise AlgorithmMismatchError(
            f"Token encryption {header.enc} does not match {expected_encryption}"
        )

    encrypted_key = b64url_decode(encrypted_key_b64)
    iv = b64url_decode(iv_b64)
    ciphertext = b64url_decode(ciphertext_b64)
    tag = b64url_decode(tag_b64)
    params = header.enc.params

    cek = _unwrap_cek(expected, params, key, encrypted_key)
    unwrapped = cek is not None
    if cek is None:
        cek = os.urandom(params.cek_bytes)

    try:
        plaintext = _decrypt_content(
            params, cek, iv, ciphertext, tag, header_b64.encode("ascii")
        )
    except (InvalidTag, ValueError) as exc:
        logger.warning("Rejected JWE: %s", _DECRYPTION_FAILED)
        raise DecryptionFailedError(_DECRYPTION_FAILED) from exc
    if not unwrapped:
        logger.warning("Rejected JWE: %s", _DECRYPTION_FAILED)
        raise DecryptionFailedError(_DECRYPTION_FAILED)

    return DecryptedToken(plaintext=plaintext, header=header)


def encrypt_claims(
    header: Header, claims: Claims | Mapping[str, Any], key: EncryptionKey
) -> str:
    """Encrypt claims serialized as compact JSON."""
    if not isinstance(claims, Claims):
        claims = build_claims(claims)
    return encrypt(header, json_bytes(claims.to_payload()), key)


def decrypt_claims(
    token: str,
    key: DecryptionKey,
    expected_algorithm: KeyManagementAlgorithm | str = DEFAULT_KEY_MANAGEMENT,
    expected_encryption: ContentEncryption | str | None = None,
    now: int | None = None,
    leeway: int = 0,
) -> Claims:
    """Decrypt a JWE carrying JSON claims and apply the time policy."""
    result = decrypt(token, key, expected_algorithm, expected_encryption)
    try:
        payload = json.loads(result.plaintext)
    except ValueError as exc:
        raise MalformedTokenError("Decrypted payload is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedTokenError("Decrypted payload is not a JSON object")
    claims = build_claims(payload)
    check_time_claims(
        claims, current_timestamp() if now is None else now, leeway
    )
    return claims
