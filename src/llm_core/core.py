from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import httpx
import structlog

from .adapters import get_adapter
from .config import LLMCoreConfig
from .contracts import AdapterRequest, AdapterResponse, CompletionRequest, CompletionResult, TokenUsage
from .credentials import CredentialProvider, EncryptedCredentialStore, load_api_key
from .errors import ModelRequiredError
from .metrics import completion_latency_seconds, completions_total, estimated_cost_usd_total, tokens_total
from .pricing import PriceTable, estimate_cost
from .retry import RetryPolicy, with_retry
from .services import ServiceRegistry, get_service_registry, reset_service_registry

log = structlog.get_logger()


class LLMCore:
    """
    Single entry point: complete a prompt against a named service.

    Every collaborator can be injected; anything left out is built from `cfg`.
    Instances hold no per-request state and may serve concurrent calls.
    """

    def __init__(
        self,
        cfg: LLMCoreConfig | None = None,
        *,
        registry: ServiceRegistry | None = None,
        credentials: CredentialProvider | None = None,
        client: httpx.AsyncClient | None = None,
        prices: PriceTable | None = None,
        retry_policy: RetryPolicy | None = None,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
    ):
        self.cfg = cfg or LLMCoreConfig()
        if registry is None:
            # an explicit cfg gets its own registry; only the bare default shares one
            registry = get_service_registry() if cfg is None else ServiceRegistry(self.cfg.services_file())
        self.registry = registry
        self.credentials = credentials or EncryptedCredentialStore(
            self.cfg.credentials_file(), self.cfg.fernet_key
        )
        self._client = client or httpx.AsyncClient(timeout=self.cfg.upstream_timeout_seconds)
        self._prices = prices
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=self.cfg.retry_max_attempts, delays_ms=tuple(self.cfg.retry_delays_ms)
        )
        self._sleep = sleeper

    async def close(self) -> None:
        await self._client.aclose()

    @property
    def prices(self) -> PriceTable:
        if self._prices is None:
            self._prices = PriceTable.load(self.cfg.pricing_file())
        return self._prices

    def list_services(self) -> list[str]:
        return self.registry.list_names()

    def _estimate(self, response: AdapterResponse, requested_model: str) -> float | None:
        cost = estimate_cost(response.model, response.tokens_input, response.tokens_output, self.prices)
        if cost is None and response.model != requested_model:
            cost = estimate_cost(requested_model, response.tokens_input, response.tokens_output, self.prices)
        return cost

    async def complete(self, request: CompletionRequest) -> CompletionResult:
        start = time.monotonic()
        service = self.registry.resolve(request.service)
        provider = service.adapter
        log_ctx = log.bind(service=service.name, provider=provider)
        try:
            api_key = load_api_key(service, self.credentials)
            adapter = get_adapter(service.adapter, self._client)

            model = request.model or service.default_model
            if not model:
                raise ModelRequiredError(
                    "Model name required: pass model in the request "
                    f'or set default_model for service "{service.name}" in services.toml'
                )

            adapter_request = AdapterRequest(
                base_url=service.base_url,
                api_key=api_key,
                model=model,
                prompt=request.prompt,
                system_prompt=request.system_prompt,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
                json_mode=request.json_mode,
            )
            response = await with_retry(
                lambda: adapter.complete(adapter_request), self.retry_policy, sleeper=self._sleep
            )
            cost = self._estimate(response, model)
        except Exception as e:
            completions_total.labels(provider=provider, status="error").inc()
            log_ctx.warning("completion_failed", error_type=type(e).__name__, error=str(e))
            raise

        elapsed = time.monotonic() - start
        completions_total.labels(provider=provider, status="success").inc()
        completion_latency_seconds.labels(provider=provider).observe(elapsed)
        tokens_total.labels(provider=provider, direction="input").inc(response.tokens_input)
        tokens_total.labels(provider=provider, direction="output").inc(response.tokens_output)
        if cost is not None and cost > 0:
            estimated_cost_usd_total.labels(provider=provider).inc(cost)
        log_ctx.info(
            "completion_ok",
            model=response.model,
            tokens_input=response.tokens_input,
            tokens_output=response.tokens_output,
            finish_reason=response.finish_reason,
            cost=cost,
        )

        return CompletionResult(
            text=response.text,
            model=response.model,
            provider=provider,
            tokens=TokenUsage(input=response.tokens_input, output=response.tokens_output),
            finish_reason=response.finish_reason,
            duration_ms=max(0, int(elapsed * 1000)),
            cost=cost,
        )


_default_core: LLMCore | None = None


def get_default_core() -> LLMCore:
    global _default_core
    if _default_core is None:
        _default_core = LLMCore()
    return _default_core


async def reset_default_core() -> None:
    """Close and drop the process-wide core and the shared service registry."""
    global _default_core
    core, _default_core = _default_core, None
    reset_service_registry()
    if core is not None:
        await core.close()


async def complete(request: CompletionRequest) -> CompletionResult:
    return await get_default_core().complete(request)
