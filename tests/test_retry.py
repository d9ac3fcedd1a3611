import asyncio

import httpx
import pytest

from llm_core.errors import RateLimitError, UpstreamHTTPError, UpstreamProtocolError
from llm_core.retry import DEFAULT_RETRY_POLICY, RetryPolicy, is_transient, with_retry


class Recorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _failing_then(results):
    calls = {"n": 0}

    async def operation():
        item = results[min(calls["n"], len(results) - 1)]
        calls["n"] += 1
        if isinstance(item, BaseException):
            raise item
        return item

    return operation, calls


def test_default_policy():
    assert DEFAULT_RETRY_POLICY.max_attempts == 3
    assert DEFAULT_RETRY_POLICY.delays_ms == (1000, 2000, 4000)


@pytest.mark.parametrize("code", [429, 500, 502, 503, 504])
def test_transient_status_codes(code):
    assert is_transient(UpstreamHTTPError(code, f"API error ({code}): x"))


@pytest.mark.parametrize("code", [400, 401, 403, 404])
def test_permanent_status_codes(code):
    assert not is_transient(UpstreamHTTPError(code, f"API error ({code}): x"))


def test_network_failures_are_transient_and_shape_errors_are_not():
    request = httpx.Request("POST", "https://example.test")
    assert is_transient(httpx.ConnectError("refused", request=request))
    assert is_transient(httpx.ReadTimeout("slow", request=request))
    assert not is_transient(UpstreamProtocolError("Missing text"))
    assert not is_transient(ValueError("(503) in a message is not a status"))


def test_httpx_status_errors_use_response_code():
    request = httpx.Request("POST", "https://example.test")
    busy = httpx.HTTPStatusError("busy", request=request, response=httpx.Response(503, request=request))
    denied = httpx.HTTPStatusError("denied", request=request, response=httpx.Response(403, request=request))
    assert is_transient(busy)
    assert not is_transient(denied)


@pytest.mark.asyncio
async def test_rate_limit_then_success_retries_once():
    operation, calls = _failing_then([RateLimitError("API error (429): slow down"), "ok"])
    sleeper = Recorder()

    assert await with_retry(operation, sleeper=sleeper) == "ok"
    assert calls["n"] == 2
    assert sleeper.delays == [1.0]


@pytest.mark.asyncio
async def test_permanent_failure_is_not_retried():
    error = UpstreamHTTPError(401, "API error (401): bad key")
    operation, calls = _failing_then([error])
    sleeper = Recorder()

    with pytest.raises(UpstreamHTTPError) as exc:
        await with_retry(operation, sleeper=sleeper)
    assert exc.value is error
    assert calls["n"] == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_exhausted_attempts_reraise_last_failure_unchanged():
    first = UpstreamHTTPError(502, "API error (502): a")
    last = UpstreamHTTPError(503, "API error (503): b")
    operation, calls = _failing_then([first, first, last])
    sleeper = Recorder()

    with pytest.raises(UpstreamHTTPError) as exc:
        await with_retry(operation, sleeper=sleeper)
    assert exc.value is last
    assert calls["n"] == 3
    # no delay after the final attempt
    assert sleeper.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_delay_clamps_to_last_value():
    error = UpstreamHTTPError(500, "API error (500): x")
    operation, calls = _failing_then([error])
    sleeper = Recorder()

    with pytest.raises(UpstreamHTTPError):
        await with_retry(operation, RetryPolicy(max_attempts=5, delays_ms=(10, 20)), sleeper=sleeper)
    assert calls["n"] == 5
    assert sleeper.delays == [0.01, 0.02, 0.02, 0.02]


@pytest.mark.asyncio
async def test_single_attempt_policy_never_sleeps():
    operation, calls = _failing_then([UpstreamHTTPError(503, "API error (503): x")])
    sleeper = Recorder()

    with pytest.raises(UpstreamHTTPError):
        await with_retry(operation, RetryPolicy(max_attempts=1), sleeper=sleeper)
    assert calls["n"] == 1
    assert sleeper.delays == []


@pytest.mark.asyncio
async def test_concurrent_invocations_are_independent():
    async def no_sleep(_: float) -> None:
        return None

    op_a, calls_a = _failing_then([UpstreamHTTPError(503, "(503)"), "a"])
    op_b, calls_b = _failing_then(["b"])

    results = await asyncio.gather(with_retry(op_a, sleeper=no_sleep), with_retry(op_b, sleeper=no_sleep))
    assert results == ["a", "b"]
    assert (calls_a["n"], calls_b["n"]) == (2, 1)


def test_policy_validation():
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(delays_ms=(100, -1))
