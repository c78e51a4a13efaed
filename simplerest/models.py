"""Internal data models for simplerest.

All models use Pydantic v2.
"""

from __future__ import annotations

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# Request Payload Models
# =============================================================================


class FormFile(BaseModel):
    """One uploadable file part of a multipart body.

    Supplied by the caller and never modified by the encoder.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    filename: str = Field(description="File name sent in the Content-Disposition line")
    content_type: str = Field(
        default="application/octet-stream", description="Content-Type of the part"
    )
    content: bytes = Field(description="Raw file payload")

    @field_validator("filename")
    @classmethod
    def check_filename(cls, v: str) -> str:
        # A quote or line break would terminate the header early
        if any(ch in v for ch in ('"', "\r", "\n")):
            raise ValueError("filename must not contain quotes or line breaks")
        return v


# =============================================================================
# Client Configuration Models
# =============================================================================


class ClientConfig(BaseModel):
    """Settings fixed for the lifetime of an HttpClient.

    wait_millis of 0 disables rate limiting entirely. Any positive value
    serializes all requests and spaces their starts at least that far apart.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    cache_results: bool = Field(default=False, description="Cache successful GET responses")
    wait_millis: int = Field(
        default=0, ge=0, description="Minimum milliseconds between request starts (0 = unrestricted)"
    )
    read_timeout: float = Field(default=30.0, gt=0, description="Read timeout in seconds")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request (supports ${ENV_VAR} substitution)",
    )


class RateLimitConfig(BaseModel):
    """Rate limiting section of a config file."""

    model_config = ConfigDict(extra="forbid")

    wait_millis: int = Field(ge=0, description="Minimum milliseconds between request starts")


class ConfigFile(BaseModel):
    """Top-level structure of a YAML configuration file."""

    model_config = ConfigDict(extra="forbid")

    client: ClientConfig = Field(default_factory=ClientConfig, description="Client settings")
    rate_limit: RateLimitConfig | None = Field(default=None, description="Rate limiting settings")

    @model_validator(mode="after")
    def check_wait_not_duplicated(self) -> Self:
        if self.rate_limit is not None and "wait_millis" in self.client.model_fields_set:
            raise ValueError("wait_millis set in both 'client' and 'rate_limit'")
        return self

    def to_client_config(self) -> ClientConfig:
        """Merge the rate_limit section into the client settings."""
        if self.rate_limit is None:
            return self.client
        return self.client.model_copy(update={"wait_millis": self.rate_limit.wait_millis})
