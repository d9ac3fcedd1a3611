from __future__ import annotations

from typing import Any

from ..contracts import AdapterRequest, AdapterResponse
from ..errors import UpstreamProtocolError
from .base import ProviderAdapter, token_count


class OllamaAdapter(ProviderAdapter):
    """
    Ollama generate API (`POST {base_url}/api/generate`).

    Uses /api/generate rather than /api/chat: its prompt + system fields map
    one-to-one onto the canonical request. No auth header is sent.
    """

    kind = "ollama"
    label = "Ollama"
    path = "/api/generate"
    finish_reasons = {"stop": "stop", "length": "max_tokens"}

    def build_body(self, req: AdapterRequest) -> dict[str, Any]:
        body: dict[str, Any] = {"model": req.model, "prompt": req.prompt, "stream": False}
        if req.system_prompt:
            body["system"] = req.system_prompt

        options: dict[str, Any] = {}
        if req.temperature is not None:
            options["temperature"] = req.temperature
        if req.max_tokens is not None:
            options["num_predict"] = req.max_tokens
        if options:
            body["options"] = options
        return body

    def parse_response(self, data: dict[str, Any], req: AdapterRequest) -> AdapterResponse:
        text = data.get("response")
        if not isinstance(text, str):
            raise UpstreamProtocolError("Missing response text in Ollama response.")

        return AdapterResponse(
            text=text,
            model=self.reported_model(data, req),
            tokens_input=token_count(data.get("prompt_eval_count")),
            tokens_output=token_count(data.get("eval_count")),
            finish_reason=self.normalize_finish_reason(data.get("done_reason")),
        )
