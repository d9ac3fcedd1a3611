"""llm-core: one `complete()` call routed to Anthropic, OpenAI-style or Ollama services."""

from .config import LLMCoreConfig
from .contracts import AdapterRequest, AdapterResponse, CompletionRequest, CompletionResult, TokenUsage
from .core import LLMCore, complete, get_default_core, reset_default_core
from .credentials import CredentialProvider, EncryptedCredentialStore, load_api_key
from .helpers import extract_json, is_truncated
from .pricing import ModelRates, PriceTable, estimate_cost
from .retry import RetryPolicy, is_transient, with_retry
from .services import (
    ServiceConfig,
    ServiceMap,
    ServiceRegistry,
    get_service_registry,
    list_services,
    reset_service_registry,
    resolve_service,
)

__version__ = "0.1.0"

__all__ = [
    "AdapterRequest",
    "AdapterResponse",
    "CompletionRequest",
    "CompletionResult",
    "CredentialProvider",
    "EncryptedCredentialStore",
    "LLMCore",
    "LLMCoreConfig",
    "ModelRates",
    "PriceTable",
    "RetryPolicy",
    "ServiceConfig",
    "ServiceMap",
    "ServiceRegistry",
    "TokenUsage",
    "complete",
    "estimate_cost",
    "extract_json",
    "get_default_core",
    "get_service_registry",
    "is_transient",
    "is_truncated",
    "list_services",
    "load_api_key",
    "reset_default_core",
    "reset_service_registry",
    "resolve_service",
    "with_retry",
]
