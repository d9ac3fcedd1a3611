from __future__ import annotations

import os
from contextlib import asynccontextmanager

from .config import LLMCoreConfig
from .contracts import CompletionRequest, CompletionResult
from .core import LLMCore
from .errors import (
    ConfigurationError,
    CredentialError,
    LLMCoreError,
    ModelRequiredError,
    ProviderError,
    RateLimitError,
    ServiceNotFoundError,
    UnknownAdapterError,
)
from .logging import configure_logging
from .metrics import maybe_start_metrics


def error_body(message: str, type: str) -> dict[str, dict[str, str]]:
    return {"error": {"message": message, "type": type}}


def create_app(cfg: LLMCoreConfig | None = None, core: LLMCore | None = None):
    try:
        from fastapi import FastAPI
        from fastapi.responses import JSONResponse
    except ImportError as e:  # pragma: no cover
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    cfg = cfg or LLMCoreConfig()
    configure_logging(
        level=cfg.log_level,
        fmt=cfg.log_format,
        secrets=[s for s in (cfg.fernet_key,) if s],
    )
    core = core or LLMCore(cfg)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        maybe_start_metrics(enable=cfg.enable_metrics, bind=cfg.metrics_bind, port=cfg.metrics_port)
        try:
            yield
        finally:
            await core.close()

    app = FastAPI(title="llm-core", version="0.1.0", lifespan=lifespan)

    def _error(status_code: int, exc: Exception, type: str, headers: dict[str, str] | None = None):
        return JSONResponse(status_code=status_code, content=error_body(str(exc), type), headers=headers)

    @app.exception_handler(ServiceNotFoundError)
    async def _service_not_found_handler(_request, exc: ServiceNotFoundError):
        return _error(404, exc, "not_found_error")

    @app.exception_handler(ModelRequiredError)
    async def _model_required_handler(_request, exc: ModelRequiredError):
        return _error(400, exc, "invalid_request_error")

    @app.exception_handler(UnknownAdapterError)
    async def _unknown_adapter_handler(_request, exc: UnknownAdapterError):
        return _error(500, exc, "configuration_error")

    @app.exception_handler(ConfigurationError)
    async def _config_error_handler(_request, exc: ConfigurationError):
        return _error(500, exc, "configuration_error")

    @app.exception_handler(CredentialError)
    async def _credential_error_handler(_request, exc: CredentialError):
        return _error(500, exc, "credential_error")

    @app.exception_handler(RateLimitError)
    async def _rate_limit_error_handler(_request, exc: RateLimitError):
        headers = {}
        if exc.retry_after_seconds is not None:
            headers["Retry-After"] = str(exc.retry_after_seconds)
        return _error(429, exc, "rate_limit_error", headers)

    @app.exception_handler(ProviderError)
    async def _provider_error_handler(_request, exc: ProviderError):
        return _error(502, exc, "upstream_error")

    @app.exception_handler(LLMCoreError)
    async def _core_error_handler(_request, exc: LLMCoreError):
        return _error(500, exc, "api_error")

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/v1/services")
    async def services() -> dict[str, list[str]]:
        return {"services": core.list_services()}

    @app.post("/v1/complete", response_model=CompletionResult)
    async def complete(req: CompletionRequest) -> CompletionResult:
        return await core.complete(req)

    return app


def main() -> None:  # pragma: no cover
    try:
        import uvicorn
    except ImportError as e:
        raise RuntimeError('Install the "server" extra: pip install -e ".[server]"') from e

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(create_app(), host=host, port=port)


if __name__ == "__main__":  # pragma: no cover
    main()
