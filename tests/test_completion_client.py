"""Tests for the completion client: request shapes, pacing, 429 retries, error mapping."""

import httpx
import pytest

from sarif_fixer.errors import (
    AccessDenied,
    CompletionFailed,
    InvalidCredential,
    RateLimited,
    RequestTimeout,
)
from sarif_fixer.llm import CompletionClient, DeploymentRoutedConfig, DirectEndpointConfig
from sarif_fixer.llm.prompt import SYSTEM_PROMPT

from .fakes import CANNED_REPLY, FakeCompletionService, chat_response

DIRECT = DirectEndpointConfig(api_key="sk-test", model="gpt-test")
DEPLOYMENT = DeploymentRoutedConfig(
    api_key="azure-key",
    endpoint="https://myres.openai.azure.com/",
    deployment="fixer",
    api_version="2024-02-15-preview",
)


def _client(service, sleep, config=DIRECT, **kwargs) -> CompletionClient:
    return CompletionClient(config, transport=service.transport, sleep=sleep, **kwargs)


def _rate_limited(retry_after: str | None = None) -> httpx.Response:
    headers = {"Retry-After": retry_after} if retry_after is not None else {}
    return httpx.Response(429, json={"error": "slow down"}, headers=headers)


class TestRequestShape:
    """Provider kind picks the URL, auth header and payload shape."""

    @pytest.mark.asyncio
    async def test_direct_endpoint(self, recording_sleep):
        service = FakeCompletionService(chat_response("ok"))
        await _client(service, recording_sleep).complete("fix this")

        request = service.requests[0]
        assert request.url.host == "api.openai.com"
        assert request.url.path == "/v1/chat/completions"
        assert not request.url.params
        assert request.headers["Authorization"] == "Bearer sk-test"
        assert "api-key" not in request.headers
        body = service.body()
        assert body["model"] == "gpt-test"
        assert body["messages"] == [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": "fix this"},
        ]
        assert body["max_tokens"] == 1000
        assert body["temperature"] == 0.1

    @pytest.mark.asyncio
    async def test_deployment_routed(self, recording_sleep):
        service = FakeCompletionService(chat_response("ok"))
        await _client(service, recording_sleep, config=DEPLOYMENT).complete("fix this")

        request = service.requests[0]
        assert request.url.host == "myres.openai.azure.com"
        assert request.url.path == "/openai/deployments/fixer/chat/completions"
        assert request.url.params["api-version"] == "2024-02-15-preview"
        assert request.headers["api-key"] == "azure-key"
        assert "Authorization" not in request.headers
        assert "model" not in service.body()


class TestPacingAndRetry:
    """Pacing precedes every attempt; only 429 is retried, at most twice."""

    @pytest.mark.asyncio
    async def test_pacing_before_first_attempt(self, recording_sleep):
        service = FakeCompletionService(chat_response("ok"))
        await _client(service, recording_sleep).complete("p")
        assert recording_sleep.calls == [2.0]

    @pytest.mark.asyncio
    async def test_persistent_429_gives_up_after_two_retries(self, recording_sleep):
        service = FakeCompletionService(_rate_limited(), _rate_limited(), _rate_limited())
        client = _client(service, recording_sleep)

        with pytest.raises(RateLimited) as exc_info:
            await client.complete("p")

        assert len(service.requests) == 3
        assert client.attempts == 3
        assert recording_sleep.calls == [2.0, 120.0, 2.0, 240.0, 2.0]
        assert exc_info.value.retry_after == 60.0

    @pytest.mark.asyncio
    async def test_429_then_success(self, recording_sleep):
        service = FakeCompletionService(_rate_limited(), chat_response("ok"))
        reply = await _client(service, recording_sleep).complete("p")
        assert reply.content == "ok"
        assert len(service.requests) == 2

    @pytest.mark.asyncio
    async def test_retry_after_header_is_honoured(self, recording_sleep):
        service = FakeCompletionService(_rate_limited("7"), chat_response("ok"))
        await _client(service, recording_sleep).complete("p")
        assert recording_sleep.calls == [2.0, 7.0, 2.0]

    @pytest.mark.asyncio
    async def test_rate_limited_reports_last_hint(self, recording_sleep):
        service = FakeCompletionService(_rate_limited("5"), _rate_limited("9"), _rate_limited())
        with pytest.raises(RateLimited) as exc_info:
            await _client(service, recording_sleep).complete("p")
        assert exc_info.value.retry_after == 9.0

    @pytest.mark.asyncio
    async def test_backoff_base_is_configurable(self, recording_sleep):
        service = FakeCompletionService(_rate_limited(), chat_response("ok"))
        await _client(service, recording_sleep, backoff_base=0.5, pacing_delay=0).complete("p")
        assert recording_sleep.calls == [0, 1.0, 0]

    @pytest.mark.asyncio
    async def test_zero_retries(self, recording_sleep):
        service = FakeCompletionService(_rate_limited())
        with pytest.raises(RateLimited):
            await _client(service, recording_sleep, max_retries=0).complete("p")
        assert len(service.requests) == 1


class TestErrorMapping:
    """Non-429 failures are raised immediately, without retry."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error",
        [(401, InvalidCredential), (403, AccessDenied), (500, CompletionFailed), (400, CompletionFailed)],
    )
    async def test_status_codes(self, recording_sleep, status, error):
        service = FakeCompletionService(httpx.Response(status, text="upstream said no"))
        with pytest.raises(error):
            await _client(service, recording_sleep).complete("p")
        assert len(service.requests) == 1

    @pytest.mark.asyncio
    async def test_server_error_carries_detail(self, recording_sleep):
        service = FakeCompletionService(httpx.Response(502, text="bad gateway"))
        with pytest.raises(CompletionFailed) as exc_info:
            await _client(service, recording_sleep).complete("p")
        assert exc_info.value.detail == "bad gateway"
        assert "502" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, recording_sleep):
        service = FakeCompletionService(httpx.ReadTimeout("timed out"))
        with pytest.raises(RequestTimeout):
            await _client(service, recording_sleep).complete("p")
        assert len(service.requests) == 1

    @pytest.mark.asyncio
    async def test_connection_error(self, recording_sleep):
        service = FakeCompletionService(httpx.ConnectError("refused"))
        with pytest.raises(CompletionFailed):
            await _client(service, recording_sleep).complete("p")

    @pytest.mark.asyncio
    async def test_malformed_body(self, recording_sleep):
        service = FakeCompletionService(httpx.Response(200, json={"choices": []}))
        with pytest.raises(CompletionFailed, match="malformed"):
            await _client(service, recording_sleep).complete("p")

    @pytest.mark.asyncio
    async def test_credential_not_in_error_messages(self, recording_sleep):
        service = FakeCompletionService(httpx.Response(401))
        with pytest.raises(InvalidCredential) as exc_info:
            await _client(service, recording_sleep).complete("p")
        assert "sk-test" not in str(exc_info.value)


class TestGenerateFix:
    @pytest.mark.asyncio
    async def test_reply_parsed_into_suggestion(self, recording_sleep):
        service = FakeCompletionService(chat_response(CANNED_REPLY))
        fix = await _client(service, recording_sleep).generate_fix(
            "p", original_code="if (a > b) {", rule_id="MISRA2012-10.1"
        )
        assert fix.fixed_code.startswith("if (a > (uint32_t)b)")
        assert fix.original_code == "if (a > b) {"
        assert fix.rule_id == "MISRA2012-10.1"

    @pytest.mark.asyncio
    async def test_usage_accumulates(self, recording_sleep):
        service = FakeCompletionService(chat_response("a"), chat_response("b"))
        client = _client(service, recording_sleep)
        await client.complete("p")
        await client.complete("p")
        assert client.total_usage.total_tokens == 240
        assert client.total_usage.prompt_tokens == 200
