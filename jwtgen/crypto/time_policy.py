"""Time-based claim validation shared by the JWS and JWE paths."""

from datetime import UTC, datetime

from jwtgen.core.errors import TokenExpiredError, TokenNotYetValidError
from jwtgen.crypto.types import Claims


def current_timestamp() -> int:
    """Wall-clock seconds since the epoch."""
    return int(datetime.now(UTC).timestamp())


def check_time_claims(claims: Claims, now: int, leeway: int = 0) -> None:
    """Reject claims outside their ``[nbf, exp)`` window.

    ``iat`` is informational and never gates validity. ``leeway`` widens the
    window on both sides to absorb clock skew between issuer and verifier.
    """
    if claims.exp is not None and now - leeway >= claims.exp:
        raise TokenExpiredError(claims.exp, now)
    if claims.nbf is not None and now + leeway < claims.nbf:
        raise TokenNotYetValidError(claims.nbf, now)
