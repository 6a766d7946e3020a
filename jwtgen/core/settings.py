"""Token defaults loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict

TOKEN_TTL_DEFAULT = 1800


class TokenSettings(BaseSettings):
    """Algorithm choices and validation tolerances for token callers."""

    model_config = SettingsConfigDict(env_prefix="JWTGEN_")

    algorithm: str = "RS256"
    key_management: str = "RSA-OAEP-256"
    content_encryption: str = "A256GCM"
    token_ttl: int = TOKEN_TTL_DEFAULT
    leeway: int = 0
