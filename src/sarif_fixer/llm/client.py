"""
Completion client -- submits a fix prompt to a chat-completion service.

Features:
  - Two routing shapes (direct endpoint / deployment-routed), picked by config.kind
  - Fixed pacing delay before every attempt, including the first
  - Retry on HTTP 429 only, honouring Retry-After, else exponential backoff
  - Non-retryable failures mapped onto the error taxonomy (401, 403, timeout, other)
  - Token usage tracking across calls
  - Security: credentials never logged, prompts sanitized upstream

The transport is injectable (httpx.AsyncBaseTransport) and so is the sleep
coroutine, so tests run against httpx.MockTransport without real delays:

    client = CompletionClient(config, transport=httpx.MockTransport(handler), sleep=fake_sleep)
    fix = await client.generate_fix(prompt, original_code=snippet, rule_id="10.1")
"""

import asyncio
import email.utils
import logging
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from ..errors import (
    AccessDenied,
    CompletionFailed,
    InvalidCredential,
    RateLimited,
    RequestTimeout,
)
from ..models import CompletionReply, FixSuggestion, TokenUsage
from .config import DeploymentRoutedConfig, DirectEndpointConfig
from .prompt import SYSTEM_PROMPT
from .reply import parse_fix_reply

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
DEFAULT_MAX_RETRIES = 2
DEFAULT_PACING_DELAY = 2.0
DEFAULT_BACKOFF_BASE = 60.0
DEFAULT_RATE_LIMIT_WAIT = 60.0
DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.1

SleepFn = Callable[[float], Awaitable[Any]]


class CompletionClient:
    """
    Chat-completion client with pacing and bounded 429 retries.

    Usage:
        client = CompletionClient(resolve_completion_config(ConfigStore()))
        fix = await client.generate_fix(prompt, original_code, rule_id)
    """

    def __init__(
        self,
        config: DirectEndpointConfig | DeploymentRoutedConfig,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        pacing_delay: float = DEFAULT_PACING_DELAY,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        temperature: float = DEFAULT_TEMPERATURE,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._config = config
        self._timeout = timeout
        self._max_retries = max_retries
        self._pacing_delay = pacing_delay
        self._backoff_base = backoff_base
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._transport = transport
        self._sleep = sleep
        self._total_usage = TokenUsage()
        self._attempts = 0

        logger.info(
            f"[LLM] Initialized completion client ({config.describe()}, "
            f"timeout={timeout}s, max_retries={max_retries})"
        )

    # =========================================================================
    # REQUEST SHAPE
    # =========================================================================

    def build_request(self, prompt: str) -> tuple[str, dict[str, str], dict[str, Any], dict[str, str]]:
        """Return (url, headers, json payload, query params) for the configured provider."""
        payload: dict[str, Any] = {
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": self._max_tokens,
            "temperature": self._temperature,
        }
        headers = {"Content-Type": "application/json"}
        config = self._config

        if config.kind == "deployment":
            url = (
                f"{config.endpoint.rstrip('/')}/openai/deployments/"
                f"{config.deployment}/chat/completions"
            )
            headers["api-key"] = config.api_key
            return url, headers, payload, {"api-version": config.api_version}

        payload = {"model": config.model, **payload}
        headers["Authorization"] = f"Bearer {config.api_key}"
        return config.endpoint, headers, payload, {}

    # =========================================================================
    # CALLS
    # =========================================================================

    async def generate_fix(self, prompt: str, original_code: str, rule_id: str) -> FixSuggestion:
        """Submit `prompt` and parse the reply into a FixSuggestion."""
        reply = await self.complete(prompt)
        suggestion = parse_fix_reply(reply.content, original_code, rule_id)
        if not suggestion.is_usable:
            logger.warning(f"[LLM] Reply for {rule_id} contained no FIXED_CODE block")
        return suggestion

    async def complete(self, prompt: str) -> CompletionReply:
        """
        Submit a prompt and return the completion text.

        Raises:
            RateLimited: 429 persisted through max_retries retries.
            InvalidCredential: 401.
            AccessDenied: 403.
            RequestTimeout: The request exceeded the timeout.
            CompletionFailed: Any other transport or response failure.
        """
        url, headers, payload, params = self.build_request(prompt)
        retries = 0
        last_hint: float | None = None

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as http:
            while True:
                await self._sleep(self._pacing_delay)
                self._attempts += 1
                start = time.time()
                logger.debug(
                    f"[LLM] POST {url} (attempt {retries + 1}/{self._max_retries + 1}, "
                    f"prompt {len(prompt)} chars, key present: {bool(self._config.api_key)})"
                )

                try:
                    response = await http.post(url, json=payload, headers=headers, params=params)
                except httpx.TimeoutException as e:
                    logger.error(f"[LLM] Timeout after {self._timeout}s: {type(e).__name__}")
                    raise RequestTimeout(
                        "Request timeout. The AI service took too long to respond. Please try again."
                    ) from e
                except httpx.HTTPError as e:
                    logger.error(f"[LLM] Transport error: {type(e).__name__}: {e}")
                    raise CompletionFailed(f"Failed to generate AI fix: {e}", detail=str(e)) from e

                status = response.status_code
                if status == 429:
                    hint = _retry_after_seconds(response)
                    if hint is not None:
                        last_hint = hint
                    if retries < self._max_retries:
                        delay = hint if hint is not None else (2 ** (retries + 1)) * self._backoff_base
                        retries += 1
                        logger.warning(
                            f"[LLM] Rate limit hit. Retrying in {delay:g}s "
                            f"({retries}/{self._max_retries})"
                        )
                        await self._sleep(delay)
                        continue
                    wait = last_hint if last_hint is not None else DEFAULT_RATE_LIMIT_WAIT
                    logger.error(f"[LLM] Rate limit persisted after {self._max_retries} retries")
                    raise RateLimited(
                        f"Rate limit exceeded after {self._max_retries} retries. "
                        f"Please wait {wait:g} seconds before trying again.",
                        retry_after=wait,
                    )

                if status == 401:
                    raise InvalidCredential("Invalid API key. Please check your completion service API key.")
                if status == 403:
                    raise AccessDenied(
                        "Access denied. Your API key may not have access to the configured model or deployment."
                    )
                if response.is_error:
                    detail = response.text[:500]
                    logger.error(f"[LLM] HTTP {status} from {url}: {detail[:200]}")
                    raise CompletionFailed(
                        f"Failed to generate AI fix: HTTP {status}", detail=detail
                    )

                reply = self._parse_response(response)
                reply.latency_ms = (time.time() - start) * 1000
                self._total_usage.add(reply.usage)
                logger.debug(
                    f"[LLM] {reply.model or self._config.kind}: "
                    f"{reply.usage.prompt_tokens}in + {reply.usage.completion_tokens}out "
                    f"({reply.latency_ms:.0f}ms)"
                )
                return reply

    def _parse_response(self, response: httpx.Response) -> CompletionReply:
        """Extract the single completion's text and usage from a chat response."""
        try:
            data = response.json()
            content = data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise CompletionFailed(
                "Failed to generate AI fix: malformed response from completion service",
                detail=f"{type(e).__name__}: {e}",
            ) from e

        usage_data = data.get("usage") or {}
        return CompletionReply(
            content=str(content),
            usage=TokenUsage(
                prompt_tokens=int(usage_data.get("prompt_tokens", 0) or 0),
                completion_tokens=int(usage_data.get("completion_tokens", 0) or 0),
                total_tokens=int(usage_data.get("total_tokens", 0) or 0),
            ),
            model=str(data.get("model", "")),
        )

    @property
    def total_usage(self) -> TokenUsage:
        """Cumulative token usage across all calls in this client's lifetime."""
        return self._total_usage

    @property
    def attempts(self) -> int:
        """Number of HTTP attempts made so far."""
        return self._attempts

    @property
    def config(self) -> DirectEndpointConfig | DeploymentRoutedConfig:
        return self._config


def _retry_after_seconds(response: httpx.Response) -> float | None:
    """Parse Retry-After as delta-seconds or an HTTP date; None if absent/invalid."""
    value = response.headers.get("retry-after")
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())
