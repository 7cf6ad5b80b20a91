"""
Provider and credential models for MockLoop.

A provider is an external text-generation backend identified by endpoint
and model. Credentials are the API keys usable against it.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class RequestShape(str, Enum):
    """Wire format spoken by a provider."""

    OPENAI_CHAT = "openai_chat"  # OpenRouter, Groq
    GEMINI = "gemini"  # generativelanguage generateContent


class Credential(BaseModel):
    """One API key usable against a provider."""

    provider_id: str
    secret: str = Field(..., repr=False)
    index: int = Field(default=0, description="Position within the provider's key list")
    failed: bool = Field(
        default=False,
        description="Marked by the router after a transient failure; cleared on epoch reset"
    )

    @property
    def label(self) -> str:
        """Loggable identifier that never exposes the secret."""
        return f"{self.provider_id}#{self.index + 1}"


class ProviderConfig(BaseModel):
    """Static configuration for one provider in the chain."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    endpoint: str
    model: str
    request_shape: RequestShape = RequestShape.OPENAI_CHAT
    extra_headers: dict[str, str] = Field(default_factory=dict)


class ProviderChain(BaseModel):
    """Ordered, immutable list of providers to try."""

    model_config = ConfigDict(frozen=True)

    providers: tuple[ProviderConfig, ...]

    @property
    def provider_ids(self) -> list[str]:
        return [p.provider_id for p in self.providers]


class AttemptRecord(BaseModel):
    """Outcome of a single credential attempt, kept for diagnostics."""

    provider_id: str
    credential: str
    ok: bool
    error: str | None = None
