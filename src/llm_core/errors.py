from __future__ import annotations

from pathlib import Path


class LLMCoreError(Exception):
    """Base error for llm-core failures."""


class ConfigurationError(LLMCoreError):
    """Malformed or invalid configuration text. Always names the file."""

    def __init__(self, message: str, *, path: str | Path | None = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class ResolutionError(LLMCoreError):
    pass


class ServiceNotFoundError(ResolutionError):
    def __init__(self, name: str, available: list[str]):
        super().__init__(f'Unknown service: "{name}". Available: [{", ".join(available)}]')
        self.name = name
        self.available = available


class UnknownAdapterError(ResolutionError):
    def __init__(self, kind: str, available: list[str]):
        super().__init__(f'Unknown adapter: "{kind}". Available: {", ".join(available)}')
        self.kind = kind
        self.available = available


class ModelRequiredError(ResolutionError):
    pass


class CredentialError(LLMCoreError):
    """Credential could not be obtained. The message says how to fix it."""


class KeyNotFoundError(LLMCoreError):
    """Raised by a credential provider when the key name is absent."""

    def __init__(self, key_name: str, available: list[str]):
        super().__init__(f'Key "{key_name}" not found')
        self.key_name = key_name
        self.available = available


class CredentialStoreNotFoundError(LLMCoreError):
    """Raised by a credential provider when its backing store does not exist."""

    def __init__(self, path: str | Path):
        super().__init__(f"Credential store not found: {path}")
        self.path = str(path)


class ProviderError(LLMCoreError):
    """Base error for provider/transport failures."""


class UpstreamHTTPError(ProviderError):
    """Non-success HTTP status from a provider.

    The message always carries the status in parentheses, e.g. ``(503)``.
    """

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(UpstreamHTTPError):
    def __init__(self, message: str, *, retry_after_seconds: int | None = None):
        super().__init__(429, message)
        self.retry_after_seconds = retry_after_seconds


class UpstreamProtocolError(ProviderError):
    """Unexpected upstream response shape / contract mismatch."""
