"""
Provider-agnostic completion client used by the default producer stages.

Stable prompt parts (stage instructions, output schema) are sent so the
provider can cache them; the wrapped stage projection never is. Usage is
tracked per stage. Transient provider errors are retried with backoff.

    response = await client.call(prompt, stage="design", temperature=0.4)
    data = await client.complete_json(prompt, stage="specification")

A call that cannot produce text raises CompletionError. CompletionStage
turns that into a failed StageResult.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any

from ..errors import CompletionError
from ..security.prompt_guard import sanitize_for_prompt
from .json_parser import extract_json

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 120
DEFAULT_MAX_RETRIES = 2
DEFAULT_MAX_TOKENS = 8192
DEFAULT_MAX_PROMPT_LENGTH = 200_000
RETRY_BASE_DELAY = 1.0
RETRY_MAX_DELAY = 30.0

PROVIDERS = ("anthropic", "openai", "google")

DEFAULT_MODELS = {
    "anthropic": "claude-sonnet-4-20250514",
    "openai": "gpt-4o",
    "google": "gemini-2.0-flash",
}

# USD per million tokens: (uncached input, cached input, output)
PRICING = {
    "anthropic": (3.0, 0.3, 15.0),
    "openai": (5.0, 2.5, 15.0),
    "google": (0.0, 0.0, 0.0),
}
# Providers whose reported input token count already includes cache reads
CACHE_READS_IN_INPUT = {"openai"}

RETRYABLE_ERRORS = {
    "RateLimitError",
    "APITimeoutError",
    "InternalServerError",
    "ServiceUnavailableError",
    "APIConnectionError",
    "ResourceExhausted",
    "DeadlineExceeded",
    "Timeout",
    "ConnectError",
}


@dataclass
class CacheablePrompt:
    """A prompt split into cacheable instructions and the per-request message."""

    system: str = ""
    context: str = ""
    user_message: str = ""

    @property
    def stable_parts(self) -> list[str]:
        return [text for text in (self.system, self.context) if text]


@dataclass
class TokenUsage:
    """Token usage for one call, or accumulated across calls."""

    input_tokens: int = 0
    output_tokens: int = 0
    cached_input_tokens: int = 0
    total_tokens: int = 0
    estimated_cost_usd: float = 0.0
    calls: int = 0

    def __post_init__(self):
        self.total_tokens = self.input_tokens + self.output_tokens

    @classmethod
    def priced(cls, provider: str, input_tokens: int, output_tokens: int, cached: int = 0) -> "TokenUsage":
        rate_in, rate_cached, rate_out = PRICING[provider]
        uncached = input_tokens - cached if provider in CACHE_READS_IN_INPUT else input_tokens
        cost = (uncached * rate_in + cached * rate_cached + output_tokens * rate_out) / 1_000_000
        return cls(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cached_input_tokens=cached,
            estimated_cost_usd=round(cost, 6),
        )

    def add(self, other: "TokenUsage") -> None:
        self.input_tokens += other.input_tokens
        self.output_tokens += other.output_tokens
        self.cached_input_tokens += other.cached_input_tokens
        self.total_tokens += other.total_tokens
        self.estimated_cost_usd = round(self.estimated_cost_usd + other.estimated_cost_usd, 6)
        self.calls += 1


@dataclass
class LLMResponse:
    content: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    provider: str = ""

    @property
    def cached(self) -> bool:
        return self.usage.cached_input_tokens > 0


class LLMClient:
    """
    Completion client with prompt caching, retries and token tracking.

    Pass ``sdk_client`` to reuse an existing provider SDK object (or a mock);
    otherwise one is built from the provider's *_API_KEY variable.
    """

    def __init__(
        self,
        provider: str = "anthropic",
        model: str | None = None,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH,
        sdk_client: Any = None,
    ):
        self.provider = provider.lower()
        if self.provider not in PROVIDERS:
            raise ValueError(f"Unsupported provider: {provider} (expected one of {PROVIDERS})")
        self.model = model or DEFAULT_MODELS[self.provider]
        self.timeout = timeout
        self.max_retries = max_retries
        self.part_limit = max_prompt_length // 3
        self.total_usage = TokenUsage()
        self._stage_usage: dict[str, TokenUsage] = {}
        self._sdk = sdk_client if sdk_client is not None else self._build_sdk(api_key)
        logger.info(f"[LLM] Initialized {self.provider} client (model={self.model}, timeout={timeout}s)")

    @property
    def stage_usage(self) -> dict[str, TokenUsage]:
        return dict(self._stage_usage)

    def _build_sdk(self, api_key: str | None) -> Any:
        env_var = f"{self.provider.upper()}_API_KEY"
        api_key = api_key or os.environ.get(env_var, "")
        if not api_key:
            logger.warning(f"[LLM] {env_var} not set -- calls will fail")
        try:
            if self.provider == "anthropic":
                import anthropic

                return anthropic.AsyncAnthropic(api_key=api_key, timeout=self.timeout)
            if self.provider == "openai":
                import openai

                return openai.AsyncOpenAI(api_key=api_key, timeout=self.timeout)
            import google.generativeai as genai

            genai.configure(api_key=api_key)
            return genai.GenerativeModel(self.model)
        except ImportError:
            logger.error(f"[LLM] {self.provider} SDK missing: pip install 'pagesmith[{self.provider}]'")
            return None

    async def call(
        self,
        prompt: str | CacheablePrompt,
        stage: str = "default",
        temperature: float = 0.5,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> LLMResponse:
        """Complete ``prompt``; ``stage`` only labels logs and usage.

        Raises:
            CompletionError: SDK missing, retries exhausted, or empty response.
        """
        if self._sdk is None:
            raise CompletionError(f"{stage}: {self.provider} SDK is not available")
        if isinstance(prompt, str):
            prompt = CacheablePrompt(user_message=prompt)
        prompt = CacheablePrompt(
            system=sanitize_for_prompt(prompt.system, max_length=self.part_limit),
            context=sanitize_for_prompt(prompt.context, max_length=self.part_limit),
            user_message=sanitize_for_prompt(prompt.user_message, max_length=self.part_limit),
        )
        send = getattr(self, f"_send_{self.provider}")
        start = time.perf_counter()

        attempt = 0
        while True:
            try:
                response = await send(prompt, temperature, max_tokens)
                break
            except Exception as e:
                if type(e).__name__ not in RETRYABLE_ERRORS or attempt >= self.max_retries:
                    logger.error(f"[LLM] {stage} failed after {attempt + 1} attempt(s): {type(e).__name__}")
                    raise CompletionError(f"{stage}: {self.provider} call failed ({type(e).__name__})") from e
                delay = min(RETRY_BASE_DELAY * 2**attempt, RETRY_MAX_DELAY)
                attempt += 1
                logger.warning(f"[LLM] {type(e).__name__} on {stage}, retry {attempt} in {delay:.1f}s")
                await asyncio.sleep(delay)

        usage = response.usage
        self.total_usage.add(usage)
        self._stage_usage.setdefault(stage, TokenUsage()).add(usage)
        logger.debug(
            f"[LLM] {self.provider}/{stage}: {usage.total_tokens}tok "
            f"({usage.cached_input_tokens} cached) ${usage.estimated_cost_usd:.4f} "
            f"in {(time.perf_counter() - start) * 1000:.0f}ms"
        )
        if not response.content.strip():
            raise CompletionError(f"{stage}: empty response from {self.provider}")
        return response

    async def complete_json(
        self,
        prompt: str | CacheablePrompt,
        stage: str = "default",
        temperature: float = 0.3,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> dict | list:
        """Call and parse the response as JSON. Raises CompletionError if none is found."""
        response = await self.call(prompt, stage=stage, temperature=temperature, max_tokens=max_tokens)
        data = extract_json(response.content)
        if data is None:
            raise CompletionError(f"{stage}: response contained no JSON")
        return data

    async def _send_anthropic(self, prompt: CacheablePrompt, temperature: float, max_tokens: int) -> LLMResponse:
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt.user_message}],
        }
        if prompt.stable_parts:
            kwargs["system"] = [
                {"type": "text", "text": text, "cache_control": {"type": "ephemeral"}}
                for text in prompt.stable_parts
            ]
        response = await self._sdk.messages.create(**kwargs)
        usage = response.usage
        return LLMResponse(
            content="".join(getattr(b, "text", "") for b in response.content if getattr(b, "type", "text") == "text"),
            usage=TokenUsage.priced(
                "anthropic",
                input_tokens=getattr(usage, "input_tokens", 0) or 0,
                output_tokens=getattr(usage, "output_tokens", 0) or 0,
                cached=getattr(usage, "cache_read_input_tokens", 0) or 0,
            ),
            model=self.model,
            provider=self.provider,
        )

    async def _send_openai(self, prompt: CacheablePrompt, temperature: float, max_tokens: int) -> LLMResponse:
        messages = [{"role": "system", "content": text} for text in prompt.stable_parts]
        messages.append({"role": "user", "content": prompt.user_message})
        response = await self._sdk.chat.completions.create(
            model=self.model, messages=messages, temperature=temperature, max_tokens=max_tokens
        )
        usage = response.usage
        details = getattr(usage, "prompt_tokens_details", None)
        cached = getattr(details, "cached_tokens", 0) or 0
        return LLMResponse(
            content=response.choices[0].message.content or "",
            usage=TokenUsage.priced(
                "openai",
                input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
                output_tokens=getattr(usage, "completion_tokens", 0) or 0,
                cached=cached,
            ),
            model=self.model,
            provider=self.provider,
        )

    async def _send_google(self, prompt: CacheablePrompt, temperature: float, max_tokens: int) -> LLMResponse:
        # Gemini has no per-request cache control; send one flat prompt.
        response = await self._sdk.generate_content_async(
            "\n\n".join(prompt.stable_parts + [prompt.user_message]),
            generation_config={"temperature": temperature, "max_output_tokens": max_tokens},
        )
        metadata = getattr(response, "usage_metadata", None)
        return LLMResponse(
            content=response.text or "",
            usage=TokenUsage.priced(
                "google",
                input_tokens=getattr(metadata, "prompt_token_count", 0) or 0,
                output_tokens=getattr(metadata, "candidates_token_count", 0) or 0,
            ),
            model=self.model,
            provider=self.provider,
        )


def create_client(provider: str | None = None, model: str | None = None, **kwargs) -> LLMClient:
    """Client for ``provider``, or for the first provider with an API key set (anthropic if none)."""
    if provider is None:
        provider = next((name for name in PROVIDERS if os.environ.get(f"{name.upper()}_API_KEY")), None)
        if provider is None:
            provider = "anthropic"
            logger.warning("[LLM] No API key found. Defaulting to anthropic.")
    return LLMClient(provider=provider, model=model, **kwargs)
