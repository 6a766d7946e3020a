"""Pydantic model for the persisted token configuration record."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from jwtgen.core.errors import InvalidAlgorithmError
from jwtgen.crypto.types import Claims, Header, build_claims, build_header


def _to_camel(name: str) -> str:
    """Convert snake_case to camelCase for JSON serialization."""
    parts = name.split("_")
    return parts[0] + "".join(p.capitalize() for p in parts[1:])


class HeaderTemplate(BaseModel):
    """Header section of the record, as plain data."""

    alg: str
    typ: str = "JWT"
    enc: str | None = None
    kid: str | None = None


class ConfigRecord(BaseModel):
    """Header/claims templates plus the JWS-or-JWE mode flag."""

    model_config = ConfigDict(
        alias_generator=_to_camel,
        populate_by_name=True,
    )

    header: HeaderTemplate
    payload: dict[str, Any] = Field(default_factory=dict)
    use_jwe: bool = Field(default=False, alias="useJWE")
    algorithm: str | None = None
    content_encryption: str | None = None

    def to_header(self) -> Header:
        """Validated core header for this record.

        The top-level ``algorithm`` choice, when present, must agree with the
        header template.
        """
        if self.algorithm is not None and self.algorithm != self.header.alg:
            raise InvalidAlgorithmError(
                f"Record algorithm {self.algorithm!r} conflicts with header "
                f"alg {self.header.alg!r}"
            )
        enc = self.header.enc or self.content_encryption
        return build_header(
            self.header.alg,
            is_encrypted=self.use_jwe,
            content_encryption=enc if self.use_jwe else None,
            kid=self.header.kid,
        )

    def to_claims(self) -> Claims:
        """Validated core claims for this record's payload template."""
        return build_claims(self.payload)

    @classmethod
    def from_models(cls, header: Header, claims: Claims) -> "ConfigRecord":
        """Record describing an existing header and claims."""
        data = header.to_dict()
        return cls(
            header=HeaderTemplate.model_validate(data),
            payload=claims.to_payload(),
            use_jwe=header.is_encrypted,
            algorithm=data["alg"],
            content_encryption=data.get("enc"),
        )


def parse_config_record(text: str | bytes) -> ConfigRecord:
    """Parse a JSON configuration record."""
    return ConfigRecord.model_validate_json(text)


def dump_config_record(record: ConfigRecord) -> str:
    """Serialize a configuration record to indented JSON."""
    return record.model_dump_json(by_alias=True, exclude_none=True, indent=2)
