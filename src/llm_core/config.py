from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


def _parse_int_csv(value: str | None) -> list[int]:
    if not value:
        return []
    return [int(v.strip()) for v in value.split(",") if v.strip()]


def _default_config_dir() -> str:
    return os.getenv("LLM_CORE_CONFIG_DIR", str(Path.home() / ".config" / "llm-core"))


class LLMCoreConfig(BaseModel):
    # File locations; unset paths live inside config_dir
    config_dir: str = Field(default_factory=_default_config_dir)
    services_path: str | None = Field(default_factory=lambda: os.getenv("LLM_CORE_SERVICES_PATH"))
    pricing_path: str | None = Field(default_factory=lambda: os.getenv("LLM_CORE_PRICING_PATH"))
    credentials_path: str | None = Field(default_factory=lambda: os.getenv("LLM_CORE_CREDENTIALS_PATH"))

    # Encryption
    fernet_key: str | None = Field(default_factory=lambda: os.getenv("LLM_CORE_FERNET_KEY"))

    # Upstream behavior
    upstream_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("LLM_CORE_TIMEOUT_SECONDS", "60"))
    )
    retry_max_attempts: int = Field(default_factory=lambda: int(os.getenv("LLM_CORE_RETRY_MAX_ATTEMPTS", "3")))
    retry_delays_ms: list[int] = Field(
        default_factory=lambda: _parse_int_csv(os.getenv("LLM_CORE_RETRY_DELAYS_MS", "1000,2000,4000"))
    )

    # Observability
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))
    enable_metrics: bool = Field(
        default_factory=lambda: os.getenv("ENABLE_METRICS", "false").lower() == "true"
    )
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))

    @field_validator("retry_max_attempts")
    @classmethod
    def _validate_max_attempts(cls, v: int) -> int:
        if v < 1:
            raise ValueError("retry_max_attempts must be >= 1.")
        return v

    @field_validator("retry_delays_ms")
    @classmethod
    def _validate_delays(cls, v: list[int]) -> list[int]:
        if any(d < 0 for d in v):
            raise ValueError("retry delays must be non-negative.")
        return v

    def services_file(self) -> Path:
        return Path(self.services_path) if self.services_path else Path(self.config_dir) / "services.toml"

    def pricing_file(self) -> Path:
        return Path(self.pricing_path) if self.pricing_path else Path(self.config_dir) / "pricing.toml"

    def credentials_file(self) -> Path:
        if self.credentials_path:
            return Path(self.credentials_path)
        return Path(self.config_dir) / "credentials.enc"
