"""Exception taxonomy for token signing, encryption, and validation."""


class TokenError(Exception):
    """Base class for every failure raised by the token core."""


class MalformedTokenError(TokenError):
    """Wrong segment count or undecodable base64url/JSON."""


class UnsupportedAlgorithmError(TokenError):
    """Signing algorithm identifier outside the supported set."""


class InvalidAlgorithmError(UnsupportedAlgorithmError):
    """Unknown algorithm supplied while building a header."""


class UnsupportedKeyManagementAlgorithmError(UnsupportedAlgorithmError):
    """JWE key-management identifier outside the supported set."""


class UnsupportedContentEncryptionError(UnsupportedAlgorithmError):
    """JWE content-encryption identifier outside the supported set."""


class MissingContentEncryptionError(TokenError):
    """Encrypted header requested without a content-encryption algorithm."""


class KeyMismatchError(TokenError):
    """Key type, size, or curve incompatible with the requested algorithm."""


class AlgorithmMismatchError(TokenError):
    """Token header algorithm differs from the caller's expected algorithm."""


class InvalidSignatureError(TokenError):
    """Signature verification failed."""


class DecryptionFailedError(TokenError):
    """Key unwrap or content authentication failed."""


class ClaimValidationError(TokenError):
    """A claim is badly typed or outside its validity window."""


class TokenExpiredError(ClaimValidationError):
    """Current time is at or past the ``exp`` claim."""

    def __init__(self, exp: int, now: int) -> None:
        super().__init__(f"Token expired at {exp} (now {now})")
        self.exp = exp
        self.now = now


class TokenNotYetValidError(ClaimValidationError):
    """Current time is before the ``nbf`` claim."""

    def __init__(self, nbf: int, now: int) -> None:
        super().__init__(f"Token not valid before {nbf} (now {now})")
        self.nbf = nbf
        self.now = now


class InvalidClaimTypeError(ClaimValidationError):
    """A reserved claim carries a value of the wrong type."""

    def __init__(self, claim: str, value: object) -> None:
        super().__init__(
            f"Claim '{claim}' has invalid type {type(value).__name__}"
        )
        self.claim = claim
