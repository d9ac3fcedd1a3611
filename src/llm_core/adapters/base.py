from __future__ import annotations

import math
from typing import Any, ClassVar

import httpx
import structlog

from ..contracts import AdapterRequest, AdapterResponse, FinishReason
from ..errors import RateLimitError, UpstreamHTTPError, UpstreamProtocolError

log = structlog.get_logger()

DEFAULT_TIMEOUT_SECONDS = 60.0


def token_count(value: Any) -> int:
    """Normalize a provider token count; anything unusable becomes 0."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    if isinstance(value, float) and not math.isfinite(value):
        return 0
    return max(0, int(value))


def _retry_after_seconds(resp: httpx.Response) -> int | None:
    retry_after = resp.headers.get("retry-after")
    return int(retry_after) if retry_after and retry_after.isdigit() else None


class ProviderAdapter:
    """
    Translator between the canonical request/response and one wire protocol.

    Subclasses implement `build_request` and `parse_response`; `complete`
    issues exactly one POST and never retries.
    """

    kind: ClassVar[str]
    label: ClassVar[str]
    path: ClassVar[str]
    # provider-native finish signal -> normalized reason; unmapped values are "stop"
    finish_reasons: ClassVar[dict[str, FinishReason]] = {}

    def __init__(self, client: httpx.AsyncClient | None = None, *, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def close(self) -> None:
        await self._client.aclose()

    def url(self, req: AdapterRequest) -> str:
        return f"{req.base_url.rstrip('/')}{self.path}"

    def headers(self, req: AdapterRequest) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def build_request(self, req: AdapterRequest) -> tuple[str, dict[str, str], dict[str, Any]]:
        return self.url(req), self.headers(req), self.build_body(req)

    def build_body(self, req: AdapterRequest) -> dict[str, Any]:
        raise NotImplementedError

    def parse_response(self, data: dict[str, Any], req: AdapterRequest) -> AdapterResponse:
        raise NotImplementedError

    def normalize_finish_reason(self, value: Any) -> FinishReason:
        if isinstance(value, str):
            return self.finish_reasons.get(value, "stop")
        return "stop"

    def reported_model(self, data: dict[str, Any], req: AdapterRequest) -> str:
        model = data.get("model")
        return model if isinstance(model, str) and model else req.model

    async def complete(self, req: AdapterRequest) -> AdapterResponse:
        url, headers, body = self.build_request(req)
        resp = await self._client.post(url, headers=headers, json=body)

        if resp.status_code == 429:
            raise RateLimitError(
                f"{self.label} API error (429): {resp.text}",
                retry_after_seconds=_retry_after_seconds(resp),
            )
        if not resp.is_success:
            log.warning(
                "provider_http_error",
                adapter=self.kind,
                status_code=resp.status_code,
                body=resp.text[:500],
            )
            raise UpstreamHTTPError(resp.status_code, f"{self.label} API error ({resp.status_code}): {resp.text}")

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamProtocolError(f"{self.label} returned a non-JSON response.") from e
        if not isinstance(data, dict):
            raise UpstreamProtocolError(f"{self.label} response must be a JSON object.")

        out = self.parse_response(data, req)
        log.debug(
            "provider_complete_ok",
            adapter=self.kind,
            model=out.model,
            tokens_input=out.tokens_input,
            tokens_output=out.tokens_output,
            finish_reason=out.finish_reason,
        )
        return out
