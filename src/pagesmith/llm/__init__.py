"""
LLM Client -- provider-agnostic completion wrapper with prompt caching.

Supports Anthropic (Claude), OpenAI (GPT) and Google (Gemini). Handles
prompt caching, per-stage token tracking, retries and prompt sanitization.

Usage:
    from pagesmith.llm import create_client

    client = create_client()  # Auto-detects provider from env
    data = await client.complete_json(prompt=prompt, stage="specification")
    print(client.stage_usage["specification"].total_tokens)
"""

from .client import CacheablePrompt, LLMClient, LLMResponse, TokenUsage, create_client
from .json_parser import extract_code, extract_json

__all__ = [
    "CacheablePrompt",
    "LLMClient",
    "LLMResponse",
    "TokenUsage",
    "create_client",
    "extract_code",
    "extract_json",
]
