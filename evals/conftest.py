"""Eval fixtures -- mock LLM client, stub stages, configs, sample payloads."""

import pytest
from unittest.mock import AsyncMock, MagicMock

from pagesmith.config import PipelineConfig
from pagesmith.llm.client import LLMResponse
from pagesmith.orchestration.context import GenerationContext, GenerationRequest
from pagesmith.tracing import MemoryTraceSink

from evals.stubs import REQUEST_TEXT, SAMPLE_ARTIFACT, SAMPLE_CONTENT, build_stage_set


@pytest.fixture
def mock_llm():
    """Mock LLM client that returns configurable responses without API calls."""
    client = AsyncMock()
    client.call.return_value = LLMResponse(
        content='```jsx\nexport default () => <main>ok</main>\n```',
        model="mock-model",
        provider="mock",
    )
    client.complete_json.return_value = {"title": "Mock page", "industry": "Technology"}
    client.total_usage = MagicMock(total_tokens=0, cached_input_tokens=0, estimated_cost_usd=0.0)
    return client


@pytest.fixture
def config():
    return PipelineConfig()


@pytest.fixture
def sample_content():
    return SAMPLE_CONTENT


@pytest.fixture
def sample_artifact():
    return SAMPLE_ARTIFACT


@pytest.fixture
def stage_set():
    return build_stage_set()


@pytest.fixture
def trace_sink():
    return MemoryTraceSink()


@pytest.fixture
def make_context():
    """Factory for a context whose artifact stage already ran."""

    def _make(max_attempts: int = 2, artifact: str = "<main>draft</main>") -> GenerationContext:
        context = GenerationContext(GenerationRequest(text=REQUEST_TEXT), max_attempts=max_attempts)
        context.set_artifact({"artifact": artifact})
        return context

    return _make
