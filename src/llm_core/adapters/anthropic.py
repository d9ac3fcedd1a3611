from __future__ import annotations

from typing import Any

from ..contracts import AdapterRequest, AdapterResponse
from ..errors import UpstreamProtocolError
from .base import ProviderAdapter, token_count

ANTHROPIC_VERSION = "2023-06-01"
# The messages API rejects requests without max_tokens.
DEFAULT_MAX_TOKENS = 4096


class AnthropicAdapter(ProviderAdapter):
    """Anthropic Messages API (`POST {base_url}/messages`)."""

    kind = "anthropic"
    label = "Anthropic"
    path = "/messages"
    finish_reasons = {"end_turn": "stop", "stop_sequence": "stop", "max_tokens": "max_tokens"}

    def headers(self, req: AdapterRequest) -> dict[str, str]:
        headers = super().headers(req)
        headers["anthropic-version"] = ANTHROPIC_VERSION
        if req.api_key:
            headers["x-api-key"] = req.api_key
        return headers

    def build_body(self, req: AdapterRequest) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": req.model,
            "max_tokens": req.max_tokens or DEFAULT_MAX_TOKENS,
            "messages": [{"role": "user", "content": req.prompt}],
        }
        if req.system_prompt:
            body["system"] = req.system_prompt
        if req.temperature is not None:
            body["temperature"] = req.temperature
        return body

    def parse_response(self, data: dict[str, Any], req: AdapterRequest) -> AdapterResponse:
        content = data.get("content")
        if not isinstance(content, list):
            raise UpstreamProtocolError("Missing content in Anthropic response.")

        text = next(
            (
                block["text"]
                for block in content
                if isinstance(block, dict) and block.get("type", "text") == "text" and isinstance(block.get("text"), str)
            ),
            None,
        )
        if text is None:
            raise UpstreamProtocolError("Missing text block in Anthropic response.")

        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return AdapterResponse(
            text=text,
            model=self.reported_model(data, req),
            tokens_input=token_count(usage.get("input_tokens")),
            tokens_output=token_count(usage.get("output_tokens")),
            finish_reason=self.normalize_finish_reason(data.get("stop_reason")),
        )
