from __future__ import annotations

from typing import Any

from ..contracts import AdapterRequest, AdapterResponse
from ..errors import UpstreamProtocolError
from .base import ProviderAdapter, token_count


class OpenAIAdapter(ProviderAdapter):
    """OpenAI-style Chat Completions (`POST {base_url}/chat/completions`)."""

    kind = "openai"
    label = "OpenAI"
    path = "/chat/completions"
    finish_reasons = {"stop": "stop", "length": "max_tokens"}

    def headers(self, req: AdapterRequest) -> dict[str, str]:
        headers = super().headers(req)
        if req.api_key:
            headers["Authorization"] = f"Bearer {req.api_key}"
        return headers

    def build_body(self, req: AdapterRequest) -> dict[str, Any]:
        messages: list[dict[str, str]] = []
        if req.system_prompt:
            messages.append({"role": "system", "content": req.system_prompt})
        messages.append({"role": "user", "content": req.prompt})

        body: dict[str, Any] = {"model": req.model, "messages": messages}
        if req.max_tokens is not None:
            body["max_tokens"] = req.max_tokens
        if req.temperature is not None:
            body["temperature"] = req.temperature
        if req.json_mode:
            body["response_format"] = {"type": "json_object"}
        return body

    def parse_response(self, data: dict[str, Any], req: AdapterRequest) -> AdapterResponse:
        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise UpstreamProtocolError("Missing choices in OpenAI response.")

        choice = choices[0]
        message = choice.get("message")
        if not isinstance(message, dict):
            raise UpstreamProtocolError("Missing message in OpenAI response.")

        text = message.get("content")
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing message content in OpenAI response.")

        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}
        return AdapterResponse(
            text=text,
            model=self.reported_model(data, req),
            tokens_input=token_count(usage.get("prompt_tokens")),
            tokens_output=token_count(usage.get("completion_tokens")),
            finish_reason=self.normalize_finish_reason(choice.get("finish_reason")),
        )
