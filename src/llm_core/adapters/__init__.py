from __future__ import annotations

import httpx

from ..errors import UnknownAdapterError
from .anthropic import AnthropicAdapter
from .base import ProviderAdapter
from .ollama import OllamaAdapter
from .openai import OpenAIAdapter

ADAPTERS: dict[str, type[ProviderAdapter]] = {
    AnthropicAdapter.kind: AnthropicAdapter,
    OpenAIAdapter.kind: OpenAIAdapter,
    OllamaAdapter.kind: OllamaAdapter,
}


def get_adapter(kind: str, client: httpx.AsyncClient | None = None) -> ProviderAdapter:
    adapter_cls = ADAPTERS.get(kind)
    if adapter_cls is None:
        raise UnknownAdapterError(kind, list(ADAPTERS))
    return adapter_cls(client)


__all__ = [
    "ADAPTERS",
    "AnthropicAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "get_adapter",
]
