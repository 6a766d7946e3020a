"""Compact serialization helpers shared by the JWS and JWE engines."""

import json
import re
from enum import StrEnum
from typing import Any

from jwt.utils import base64url_decode, base64url_encode

from jwtgen.core.errors import MalformedTokenError

JWS_SEGMENTS = 3
JWE_SEGMENTS = 5

_SEGMENT_ALPHABET = re.compile(r"[A-Za-z0-9_-]*")


class TokenType(StrEnum):
    """Compact token kind, told apart by segment count alone."""

    JWS = "JWS"
    JWE = "JWE"


def b64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64url_encode(data).decode("ascii")


def b64url_decode(segment: str) -> bytes:
    """Base64url decode a token segment, restoring padding.

    Only the canonical unpadded encoding is accepted: no characters outside
    the url-safe alphabet, and no stray bits in the final character.
    """
    if not _SEGMENT_ALPHABET.fullmatch(segment) or len(segment) % 4 == 1:
        raise MalformedTokenError("Segment is not valid base64url")
    try:
        decoded = base64url_decode(segment)
    except ValueError as exc:
        raise MalformedTokenError("Segment is not valid base64url") from exc
    if b64url_encode(decoded) != segment:
        raise MalformedTokenError("Segment is not canonical base64url")
    return decoded


def json_bytes(data: dict[str, Any]) -> bytes:
    """Serialize a mapping to compact UTF-8 JSON."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode()


def decode_json_segment(segment: str) -> dict[str, Any]:
    """Decode a base64url segment holding a JSON object."""
    raw = b64url_decode(segment)
    try:
        loaded = json.loads(raw)
    except ValueError as exc:
        raise MalformedTokenError("Segment is not valid JSON") from exc
    if not isinstance(loaded, dict):
        raise MalformedTokenError("Segment JSON is not an object")
    return loaded


def split_token(token: str, expected: int) -> list[str]:
    """Split a compact token, requiring exactly ``expected`` segments."""
    if not isinstance(token, str) or not token.isascii():
        raise MalformedTokenError("Token must be an ASCII string")
    parts = token.split(".")
    if len(parts) != expected:
        raise MalformedTokenError(
            f"Expected {expected} segments, got {len(parts)}"
        )
    return parts


def detect_token_type(token: str) -> TokenType:
    """Classify a compact token as JWS (3 segments) or JWE (5 segments)."""
    if not isinstance(token, str):
        raise MalformedTokenError("Token must be a string")
    count = token.count(".") + 1
    if count == JWS_SEGMENTS:
        return TokenType.JWS
    if count == JWE_SEGMENTS:
        return TokenType.JWE
    raise MalformedTokenError(f"Unrecognized token with {count} segments")
