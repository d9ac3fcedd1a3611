from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, Field, field_validator

FinishReason = Literal["stop", "max_tokens", "error"]


class CompletionRequest(BaseModel):
    """Caller-facing request. One system/user pair, no conversation state."""

    prompt: str
    service: str | None = None
    model: str | None = None
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    # Only honoured by the openai adapter (response_format).
    json_mode: bool = False

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if not (0.0 <= v <= 1.0):
            raise ValueError("temperature must be between 0 and 1.")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _validate_max_tokens(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v <= 0:
            raise ValueError("max_tokens must be > 0.")
        return v


class TokenUsage(BaseModel):
    input: int = Field(default=0, ge=0)
    output: int = Field(default=0, ge=0)


class CompletionResult(BaseModel):
    text: str
    model: str
    provider: str
    tokens: TokenUsage
    finish_reason: FinishReason
    duration_ms: int = Field(ge=0)
    cost: float | None = None


@dataclass(frozen=True)
class AdapterRequest:
    base_url: str
    api_key: str | None
    model: str
    prompt: str
    system_prompt: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    json_mode: bool = False


@dataclass(frozen=True)
class AdapterResponse:
    text: str
    model: str
    tokens_input: int
    tokens_output: int
    finish_reason: FinishReason
