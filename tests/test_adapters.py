import json

import httpx
import pytest

from llm_core.adapters import AnthropicAdapter, OllamaAdapter, OpenAIAdapter, get_adapter
from llm_core.contracts import AdapterRequest
from llm_core.errors import RateLimitError, UnknownAdapterError, UpstreamHTTPError, UpstreamProtocolError


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _request(**kwargs):
    fields = {"base_url": "https://example.test/v1", "api_key": "sk-test", "model": "m", "prompt": "hi"}
    fields.update(kwargs)
    return AdapterRequest(**fields)


def test_get_adapter_unknown_kind_lists_known_kinds():
    with pytest.raises(UnknownAdapterError) as exc:
        get_adapter("gemini")
    for kind in ("anthropic", "openai", "ollama"):
        assert kind in str(exc.value)


@pytest.mark.asyncio
async def test_anthropic_request_shape_and_response_mapping():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == "https://example.test/v1/messages"
        assert request.headers["x-api-key"] == "sk-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        body = json.loads(request.content)
        assert body == {
            "model": "claude-x",
            "max_tokens": 4096,
            "messages": [{"role": "user", "content": "hi"}],
            "system": "be brief",
            "temperature": 0.3,
        }
        return httpx.Response(
            200,
            json={
                "model": "claude-x-20250101",
                "content": [{"type": "text", "text": "  hello\n"}],
                "stop_reason": "max_tokens",
                "usage": {"input_tokens": 100, "output_tokens": 200},
            },
        )

    adapter = AnthropicAdapter(_client(handler))
    try:
        out = await adapter.complete(_request(model="claude-x", system_prompt="be brief", temperature=0.3))
    finally:
        await adapter.close()

    assert out.text == "  hello\n"
    assert out.model == "claude-x-20250101"
    assert (out.tokens_input, out.tokens_output) == (100, 200)
    assert out.finish_reason == "max_tokens"


@pytest.mark.asyncio
async def test_anthropic_omits_unset_fields_and_defaults_unknown_stop_reason():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert "system" not in body
        assert "temperature" not in body
        assert body["max_tokens"] == 50
        return httpx.Response(
            200, json={"content": [{"type": "text", "text": "ok"}], "stop_reason": "refusal", "usage": {}}
        )

    adapter = AnthropicAdapter(_client(handler))
    out = await adapter.complete(_request(max_tokens=50))
    assert out.finish_reason == "stop"
    assert out.model == "m"
    assert (out.tokens_input, out.tokens_output) == (0, 0)


@pytest.mark.asyncio
async def test_anthropic_missing_text_raises_protocol_error():
    adapter = AnthropicAdapter(_client(lambda _: httpx.Response(200, json={"content": []})))
    with pytest.raises(UpstreamProtocolError):
        await adapter.complete(_request())


@pytest.mark.asyncio
async def test_openai_request_shape_and_response_mapping():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == "https://example.test/v1/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-test"
        body = json.loads(request.content)
        assert body == {
            "model": "gpt-x",
            "messages": [{"role": "system", "content": "sys"}, {"role": "user", "content": "hi"}],
            "max_tokens": 10,
            "temperature": 0.0,
            "response_format": {"type": "json_object"},
        }
        return httpx.Response(
            200,
            json={
                "model": "gpt-x-0613",
                "choices": [{"message": {"role": "assistant", "content": '{"a": 1}'}, "finish_reason": "length"}],
                "usage": {"prompt_tokens": 7, "completion_tokens": 3},
            },
        )

    adapter = OpenAIAdapter(_client(handler))
    out = await adapter.complete(
        _request(model="gpt-x", system_prompt="sys", max_tokens=10, temperature=0.0, json_mode=True)
    )
    assert out.text == '{"a": 1}'
    assert out.model == "gpt-x-0613"
    assert (out.tokens_input, out.tokens_output) == (7, 3)
    assert out.finish_reason == "max_tokens"


@pytest.mark.asyncio
async def test_openai_minimal_body_and_unknown_finish_reason():
    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content) == {"model": "m", "messages": [{"role": "user", "content": "hi"}]}
        return httpx.Response(
            200, json={"choices": [{"message": {"content": "x"}, "finish_reason": "content_filter"}]}
        )

    out = await OpenAIAdapter(_client(handler)).complete(_request())
    assert out.finish_reason == "stop"
    assert (out.tokens_input, out.tokens_output) == (0, 0)


@pytest.mark.asyncio
async def test_openai_null_content_raises_protocol_error():
    payload = {"choices": [{"message": {"content": None}, "finish_reason": "stop"}]}
    adapter = OpenAIAdapter(_client(lambda _: httpx.Response(200, json=payload)))
    with pytest.raises(UpstreamProtocolError):
        await adapter.complete(_request())


@pytest.mark.asyncio
async def test_ollama_request_shape_and_response_mapping():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url == "http://localhost:11434/api/generate"
        assert "authorization" not in request.headers
        assert "x-api-key" not in request.headers
        body = json.loads(request.content)
        assert body == {
            "model": "llama3.2",
            "prompt": "hi",
            "stream": False,
            "system": "sys",
            "options": {"temperature": 0.5, "num_predict": 64},
        }
        return httpx.Response(
            200,
            json={
                "model": "llama3.2:instruct",
                "response": "\nhey ",
                "done_reason": "length",
                "prompt_eval_count": 11,
                "eval_count": 22,
            },
        )

    adapter = OllamaAdapter(_client(handler))
    out = await adapter.complete(
        _request(
            base_url="http://localhost:11434/",
            api_key=None,
            model="llama3.2",
            system_prompt="sys",
            temperature=0.5,
            max_tokens=64,
        )
    )
    assert out.text == "\nhey "
    assert out.model == "llama3.2:instruct"
    assert (out.tokens_input, out.tokens_output) == (11, 22)
    assert out.finish_reason == "max_tokens"


@pytest.mark.asyncio
async def test_ollama_omits_empty_options_and_ignores_json_hint():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        assert "options" not in body
        assert "format" not in body
        return httpx.Response(200, json={"response": "ok", "done_reason": "stop"})

    out = await OllamaAdapter(_client(handler)).complete(_request(api_key=None, json_mode=True))
    assert out.finish_reason == "stop"
    assert (out.tokens_input, out.tokens_output) == (0, 0)


@pytest.mark.asyncio
async def test_non_success_status_embeds_code():
    adapter = OpenAIAdapter(_client(lambda _: httpx.Response(503, text="overloaded")))
    with pytest.raises(UpstreamHTTPError) as exc:
        await adapter.complete(_request())
    assert exc.value.status_code == 503
    assert "(503)" in str(exc.value)
    assert "overloaded" in str(exc.value)


@pytest.mark.asyncio
async def test_429_raises_rate_limit_error_with_retry_after():
    adapter = AnthropicAdapter(_client(lambda _: httpx.Response(429, headers={"retry-after": "12"}, text="slow")))
    with pytest.raises(RateLimitError) as exc:
        await adapter.complete(_request())
    assert exc.value.status_code == 429
    assert exc.value.retry_after_seconds == 12
    assert "(429)" in str(exc.value)


@pytest.mark.asyncio
async def test_non_json_success_body_raises_protocol_error():
    adapter = OllamaAdapter(_client(lambda _: httpx.Response(200, text="<html>")))
    with pytest.raises(UpstreamProtocolError):
        await adapter.complete(_request())
