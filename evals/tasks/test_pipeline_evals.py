"""
Pipeline Evals -- stage graph, fan-out joins, failure semantics, tracing.

CODE-BASED graders over PipelineOrchestrator with stub stages. No
completion service is involved.
"""

import asyncio
import json
import logging

import pytest

from pagesmith.config import PipelineConfig
from pagesmith.orchestration import (
    GenerationRequest,
    LoopStatus,
    PipelineOrchestrator,
    StageResult,
)
from pagesmith.scoring import ArtifactValidator
from pagesmith.tracing import LoggingTraceSink, MemoryTraceSink, MultiTraceSink, TracePhase

from evals.graders import CodeGrader
from evals.stubs import (
    REQUEST_TEXT,
    SAMPLE_ARTIFACT,
    SAMPLE_CONTENT,
    SAMPLE_DESIGN,
    ScriptedScorer,
    StaticStage,
    build_stage_set,
)

REQUIRED_ORDER = ["specification", "design", "content", "layout", "artifact"]


class TestHappyPath:
    """Eval: Does a request flow through every stage in graph order?"""

    @pytest.mark.asyncio
    async def test_full_run_converges(self, stage_set, trace_sink):
        """All stages succeed and the first score clears the gate."""
        orchestrator = PipelineOrchestrator(stage_set, trace_sink=trace_sink)
        result = await orchestrator.submit(REQUEST_TEXT)

        grader = CodeGrader("pipeline_happy_path")
        grader.add_check("success", lambda r: r.success)
        grader.add_check("converged", lambda r: r.outcome.state is LoopStatus.CONVERGED)
        grader.add_check("passed", lambda r: r.passed)
        grader.add_check("score", lambda r: r.validation_score == 80)
        grader.add_check("complete", lambda r: r.context.completeness_percent() == 100)
        grader.add_check("refined_artifact", lambda r: r.final_artifact == "<main>refined attempt 1</main>")
        grader.add_check(
            "stage_order",
            lambda r: r.context.stages_used == REQUIRED_ORDER + [
                "design_implementation", "image_integration", "refine", "scoring",
            ],
        )
        result_grade = grader.grade(result)
        assert result_grade.passed, result_grade.summary()

    @pytest.mark.asyncio
    async def test_result_dict(self, stage_set):
        """A successful result serialises with loop state, attempts and timings."""
        result = await PipelineOrchestrator(stage_set).submit(REQUEST_TEXT, session_id="sess-1")
        data = result.to_dict()
        assert data["success"] is True
        assert data["loop_state"] == "CONVERGED"
        assert data["attempts"] == 1
        assert data["validation_passed"] is True
        assert data["completeness_percent"] == 100
        assert data["correlation_id"].startswith("gen_")
        assert set(REQUIRED_ORDER) <= set(data["timings_ms"])
        assert data["execution_time_ms"] >= 0
        assert result.context.request.session_id == "sess-1"

    @pytest.mark.asyncio
    async def test_stages_see_only_their_inputs(self):
        """Each producer receives the request plus its declared upstream fields."""
        stages = build_stage_set()
        await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert set(stages.specification.calls[0]) == {"request"}
        assert set(stages.design.calls[0]) == {"request", "specification"}
        assert set(stages.layout.calls[0]) == {"request", "specification", "design", "content"}
        assert set(stages.image_integration.calls[0]) == {"request", "specification", "artifact"}
        assert stages.layout.calls[0]["content"] == SAMPLE_CONTENT

    @pytest.mark.asyncio
    async def test_exhausted_run_still_succeeds(self):
        """Running out of attempts is a successful run that did not pass the gate."""
        stages = build_stage_set(scoring=ScriptedScorer([60, 63]))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.success is True
        assert result.passed is False
        assert result.outcome.state is LoopStatus.EXHAUSTED
        assert result.validation_score == 63
        assert result.to_dict()["attempts"] == 2

    @pytest.mark.asyncio
    async def test_concurrent_requests_are_isolated(self):
        """Two requests on one orchestrator keep separate contexts."""
        orchestrator = PipelineOrchestrator(build_stage_set(scoring=ScriptedScorer([90])))
        first, second = await asyncio.gather(
            orchestrator.submit(REQUEST_TEXT),
            orchestrator.submit("A pricing page for a small accounting firm"),
        )
        assert first.success and second.success
        assert first.context is not second.context
        assert first.context.request.correlation_id != second.context.request.correlation_id
        assert second.context.request.text.startswith("A pricing page")

    @pytest.mark.asyncio
    async def test_structured_industry_does_not_abort_scoring(self):
        """A specification whose industry is an object still gets scored by the real validator."""
        stages = build_stage_set(
            specification=StaticStage({"title": "Portland Smiles", "industry": {"primary": "Healthcare"}}),
            scoring=ArtifactValidator(PipelineConfig()),
        )
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)

        assert result.success, result.error
        assert result.outcome.state is not LoopStatus.ABORTED
        assert result.outcome.attempts >= 1
        assert result.outcome.report is not None
        assert result.context.validation.industry["industry"] == "Healthcare"


class TestFanOut:
    """Eval: Do parallel branches run together and join before anything downstream?"""

    @pytest.mark.asyncio
    async def test_design_and_content_overlap(self):
        """Design waits for content to start; a sequential scheduler would time out."""
        content_started = asyncio.Event()

        class WaitingDesign:
            async def __call__(self, projection):
                await asyncio.wait_for(content_started.wait(), timeout=1.0)
                return StageResult.ok(SAMPLE_DESIGN)

        class SignallingContent:
            async def __call__(self, projection):
                content_started.set()
                return StageResult.ok(SAMPLE_CONTENT)

        stages = build_stage_set(design=WaitingDesign(), content=SignallingContent())
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.success

    @pytest.mark.asyncio
    async def test_failed_branch_stops_pipeline_after_join(self):
        """A content failure waits for design, merges nothing and stops before layout."""
        stages = build_stage_set(
            design=StaticStage(SAMPLE_DESIGN, delay=0.01),
            content=StaticStage(error="no copy available"),
        )
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)

        assert result.success is False
        assert result.failed_stage == "content"
        assert "no copy available" in result.error
        assert len(stages.design.calls) == 1
        assert stages.layout.calls == []
        assert result.context.design is None
        assert result.context.specification is not None

        data = result.to_dict()
        assert data["failed_stage"] == "content"
        assert "specification" in data["partial_context"]
        assert "design" not in data["partial_context"]

    @pytest.mark.asyncio
    async def test_first_failure_in_stage_order_is_reported(self):
        """When both branches fail the earlier stage in the graph is reported."""
        stages = build_stage_set(
            design=StaticStage(raises=RuntimeError("design model down")),
            content=StaticStage(error="no copy"),
        )
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.failed_stage == "design"
        assert "RuntimeError: design model down" in result.error


class TestRequiredStageFailures:
    """Eval: Is every kind of required-stage failure fatal and attributed?"""

    @pytest.mark.asyncio
    async def test_specification_failure(self):
        """Nothing downstream runs after the first stage fails."""
        stages = build_stage_set(specification=StaticStage(error="unparseable"))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.failed_stage == "specification"
        assert stages.design.calls == [] and stages.content.calls == []
        assert result.context.completeness_percent() == 0

    @pytest.mark.asyncio
    async def test_malformed_design_payload(self):
        """A design payload without the core keys is a design failure."""
        stages = build_stage_set(design=StaticStage({"mood": "calm"}))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.failed_stage == "design"
        assert "design payload" in result.error

    @pytest.mark.asyncio
    async def test_blank_artifact_payload(self):
        """An artifact stage that returns no text is an artifact failure."""
        stages = build_stage_set(artifact=StaticStage({"artifact": "   "}))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.failed_stage == "artifact"
        assert stages.scoring.calls == 0

    @pytest.mark.asyncio
    async def test_non_result_return_value(self):
        """A stage returning a bare dict instead of a StageResult fails."""

        class BareLayout:
            async def __call__(self, projection):
                return {"sections": []}

        result = await PipelineOrchestrator(build_stage_set(layout=BareLayout())).submit(REQUEST_TEXT)
        assert result.failed_stage == "layout"
        assert "not StageResult" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_error_is_reported(self):
        """A scoring stage that returns garbage ends in an unexpected-error result."""

        async def broken_scorer(artifact, request_metadata, design_metadata, content_payload):
            return None

        result = await PipelineOrchestrator(build_stage_set(scoring=broken_scorer)).submit(REQUEST_TEXT)
        assert result.success is False
        assert result.failed_stage is None
        assert result.error.startswith("Unexpected error: AttributeError")


class TestEnrichment:
    """Eval: Are best-effort stages allowed to fail without stopping the run?"""

    @pytest.mark.asyncio
    async def test_image_integration_failure_is_tolerated(self):
        """A raising image stage is logged and skipped."""
        stages = build_stage_set(image_integration=StaticStage(raises=TimeoutError("image API")))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.success is True
        assert result.context.image_integration is None
        assert "image_integration" not in result.context.stages_used
        assert result.context.design_implementation is not None

    @pytest.mark.asyncio
    async def test_empty_enrichment_payload_is_skipped(self):
        """A successful enrichment with no payload is not merged."""
        stages = build_stage_set(design_implementation=StaticStage(None))
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.success
        assert result.context.design_implementation is None

    @pytest.mark.asyncio
    async def test_image_artifact_becomes_current(self):
        """With refine unavailable, the image-integrated artifact is what gets scored."""
        scorer = ScriptedScorer([90])
        stages = build_stage_set(
            image_integration=StaticStage({"artifact": "<main>with images</main>"}),
            refine=StaticStage(error="refine unavailable"),
            scoring=scorer,
        )
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert scorer.artifacts == ["<main>with images</main>"]
        assert result.final_artifact == "<main>with images</main>"

    @pytest.mark.asyncio
    async def test_design_implementation_goes_to_refine(self):
        """The design-implementation payload reaches refine but does not replace the artifact."""
        scorer = ScriptedScorer([90])
        stages = build_stage_set(refine=StaticStage(error="refine unavailable"), scoring=scorer)
        await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert scorer.artifacts == [SAMPLE_ARTIFACT]
        assert stages.refine.calls[0]["design_implementation"]["applied"] is True

    @pytest.mark.asyncio
    async def test_quick_mode_skips_enrichment(self):
        """Quick mode goes straight from the artifact to the loop."""
        stages = build_stage_set()
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT, mode="quick")
        assert result.success
        assert stages.design_implementation.calls == []
        assert stages.image_integration.calls == []

    @pytest.mark.asyncio
    async def test_missing_enrichment_handles(self):
        """Enrichment stages are optional in the StageSet."""
        stages = build_stage_set(design_implementation=None, image_integration=None)
        result = await PipelineOrchestrator(stages).submit(REQUEST_TEXT)
        assert result.success
        assert result.context.completeness_percent() == 100


class TestSubmitValidation:
    """Eval: Is bad input rejected before any stage runs?"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kwargs", [
        {"text": "hi"},
        {"text": "   "},
        {"text": REQUEST_TEXT, "mode": "turbo"},
        {"text": REQUEST_TEXT, "session_id": "1-starts-with-digit"},
        {"text": "x" * 20_001},
    ])
    async def test_rejected_input(self, kwargs):
        """Short, blank, oversized text, unknown modes and bad session ids come back as a failed result."""
        stages = build_stage_set()
        result = await PipelineOrchestrator(stages).submit(**kwargs)

        assert result.success is False
        assert result.failed_stage == "input"
        assert result.error
        assert result.final_artifact is None
        assert result.context.stages_used == []
        assert result.to_dict()["success"] is False
        assert stages.specification.calls == []

    @pytest.mark.asyncio
    async def test_run_accepts_prebuilt_request(self):
        """run() takes a GenerationRequest directly and keeps its correlation id."""
        request = GenerationRequest(text=REQUEST_TEXT, correlation_id="gen_1_abcdefghi")
        result = await PipelineOrchestrator(build_stage_set()).run(request)
        assert result.context.request.correlation_id == "gen_1_abcdefghi"


class TestTracing:
    """Eval: Does every stage boundary produce one IN and one OUT event?"""

    @pytest.mark.asyncio
    async def test_in_out_pairs(self, stage_set, trace_sink):
        """Pipeline and every stage are bracketed by IN/OUT events."""
        result = await PipelineOrchestrator(stage_set, trace_sink=trace_sink).submit(REQUEST_TEXT)
        cid = result.context.request.correlation_id
        summary = trace_sink.summary(cid)

        assert summary["stages"][0] == "pipeline"
        assert summary["stages"][1] == "specification"
        assert summary["phases"]["IN"] == summary["phases"]["OUT"]
        assert summary["errors"] == []
        for stage in REQUIRED_ORDER + ["refine", "scoring"]:
            phases = [e.phase for e in trace_sink.events_for(cid) if e.stage == stage]
            assert phases == [TracePhase.IN, TracePhase.OUT], stage
        assert trace_sink.events_for(cid)[-1].data["success"] is True

    @pytest.mark.asyncio
    async def test_failures_are_traced(self, trace_sink):
        """A failing stage's OUT event carries its error."""
        stages = build_stage_set(content=StaticStage(error="no copy available"))
        result = await PipelineOrchestrator(stages, trace_sink=trace_sink).submit(REQUEST_TEXT)
        errors = trace_sink.summary(result.context.request.correlation_id)["errors"]
        assert {"stage": "content", "error": "no copy available"} in errors
        assert any(e["stage"] == "pipeline" for e in errors)

    @pytest.mark.asyncio
    async def test_json_file_sink_from_config(self, tmp_path):
        """A trace_dir in the config writes one JSON-lines file per request."""
        config = PipelineConfig(trace_dir=tmp_path)
        result = await PipelineOrchestrator(build_stage_set(), config).submit(REQUEST_TEXT)
        path = tmp_path / f"{result.context.request.correlation_id}.jsonl"
        events = [json.loads(line) for line in path.read_text().splitlines()]
        assert events[0]["stage"] == "pipeline" and events[0]["phase"] == "IN"
        assert events[-1]["stage"] == "pipeline" and events[-1]["phase"] == "OUT"

    @pytest.mark.asyncio
    async def test_broken_sink_never_breaks_the_run(self, trace_sink):
        """A sink that raises is isolated from the pipeline and from other sinks."""

        class ExplodingSink:
            def emit(self, event):
                raise OSError("disk full")

        sink = MultiTraceSink(ExplodingSink(), trace_sink)
        result = await PipelineOrchestrator(build_stage_set(), trace_sink=sink).submit(REQUEST_TEXT)
        assert result.success
        assert trace_sink.events_for(result.context.request.correlation_id)

    @pytest.mark.asyncio
    async def test_unguarded_sink_failure_is_logged(self):
        """Even without MultiTraceSink a raising sink does not fail the request."""

        class ExplodingSink:
            def emit(self, event):
                raise OSError("disk full")

        result = await PipelineOrchestrator(build_stage_set(), trace_sink=ExplodingSink()).submit(REQUEST_TEXT)
        assert result.success

    @pytest.mark.asyncio
    async def test_logging_sink(self, caplog):
        """The logging sink writes one [Trace] line per event."""
        caplog.set_level(logging.INFO, logger="pagesmith.tracing")
        sink = LoggingTraceSink(level=logging.INFO)
        result = await PipelineOrchestrator(build_stage_set(), trace_sink=sink).submit(REQUEST_TEXT)
        lines = [r.getMessage() for r in caplog.records if r.getMessage().startswith("[Trace]")]
        assert any(f"{result.context.request.correlation_id} specification IN" in line for line in lines)
        assert any(" scoring OUT " in line for line in lines)

    @pytest.mark.asyncio
    async def test_memory_sink_is_bounded(self):
        """Only the newest requests are kept and clear() releases the rest."""
        sink = MemoryTraceSink(max_requests=2)
        orchestrator = PipelineOrchestrator(build_stage_set(), trace_sink=sink)
        results = [await orchestrator.submit(REQUEST_TEXT) for _ in range(3)]
        first, second, third = (r.context.request.correlation_id for r in results)

        assert list(sink.events) == [second, third]
        assert sink.events_for(first) == []
        sink.clear(second)
        assert list(sink.events) == [third]
        sink.clear()
        assert sink.events == {}
        with pytest.raises(ValueError):
            MemoryTraceSink(max_requests=0)
