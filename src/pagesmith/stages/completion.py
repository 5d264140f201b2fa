"""
CompletionStage -- a producer stage backed by the completion client.

The stage projection goes to the model as JSON inside prompt-guard
delimiters; the answer comes back as a JSON payload or as artifact code,
depending on the stage. Any failure becomes StageResult.fail so the
scheduler decides whether it is fatal.
"""

import logging
from typing import Any, Mapping

from ..content import content_mapping
from ..errors import CompletionError
from ..llm import CacheablePrompt, LLMClient, extract_code
from ..orchestration.stages import StageName, StageResult
from ..security import detect_injection_attempt, extract_request_hints, wrap_stage_context, wrap_user_content
from .prompts import CODE_OUTPUT, STAGE_PROMPTS, StagePrompt

logger = logging.getLogger(__name__)


class CompletionStage:
    """Producer-stage contract over an LLMClient.

    Usage:
        stage = CompletionStage(StageName.DESIGN, client)
        result = await stage(context.projection(["specification"]))
    """

    def __init__(self, stage: StageName, client: LLMClient, prompt: StagePrompt | None = None):
        self.stage = stage
        self.client = client
        self.prompt = prompt or STAGE_PROMPTS[stage]

    def build_prompt(self, projection: Mapping[str, Any]) -> CacheablePrompt:
        request = projection.get("request") or {}
        request_text = request.get("text", "")
        findings = detect_injection_attempt(request_text)
        if findings:
            logger.warning(
                f"[Stages] {self.stage.value}: request matched {len(findings)} injection pattern(s)"
            )

        data = dict(projection)
        data.pop("request", None)
        if self.stage is StageName.SPECIFICATION:
            data["hints"] = extract_request_hints(request_text)
        if self.stage is StageName.REFINE and projection.get("content") is not None:
            data["content_mapping"] = content_mapping(projection["content"])

        parts = [wrap_user_content(request_text)]
        if data:
            parts.append(wrap_stage_context(data))
        return CacheablePrompt(
            system=self.prompt.system,
            context=self.prompt.contract,
            user_message="\n\n".join(parts),
        )

    async def __call__(self, projection: Mapping[str, Any]) -> StageResult:
        prompt = self.build_prompt(projection)
        try:
            if self.prompt.output == CODE_OUTPUT:
                response = await self.client.call(
                    prompt, stage=self.stage.value, temperature=self.prompt.temperature
                )
                code = extract_code(response.content)
                if not code:
                    return StageResult.fail(f"{self.stage.value}: no code in response")
                return StageResult.ok({"artifact": code})

            data = await self.client.complete_json(
                prompt, stage=self.stage.value, temperature=self.prompt.temperature
            )
        except CompletionError as e:
            logger.warning(f"[Stages] {self.stage.value} completion failed: {e}")
            return StageResult.fail(str(e))

        if not isinstance(data, dict):
            return StageResult.fail(
                f"{self.stage.value}: expected a JSON object, got {type(data).__name__}"
            )
        return StageResult.ok(data)
