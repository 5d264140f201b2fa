"""
Loop Evals -- stopping policy, attempt budget, guidance, per-request context.

CODE-BASED graders over ConvergenceLoop and GenerationContext, driven by
scripted scorers so every score sequence is known up front.
"""

import re

import pytest

from pagesmith.config import PipelineConfig
from pagesmith.errors import ContextWriteError
from pagesmith.orchestration import (
    ConvergenceLoop,
    GenerationContext,
    GenerationRequest,
    HistoryEntry,
    LoopStatus,
    build_guidance,
    decide,
    min_improvement,
)

from evals.graders import CodeGrader
from evals.stubs import (
    REQUEST_TEXT,
    SAMPLE_SPECIFICATION,
    NumberedRefine,
    ScriptedScorer,
    StaticStage,
    make_report,
)


def loop_for(scorer, refine=None, max_attempts=2):
    return ConvergenceLoop(refine or NumberedRefine(), scorer, PipelineConfig(max_attempts=max_attempts))


class TestStoppingPolicy:
    """Eval: Does the loop stop for the right reason?"""

    @pytest.mark.asyncio
    async def test_exhausts_budget_below_gate(self, make_context):
        """60 then 63 with two attempts ends EXHAUSTED after exactly two scorings."""
        scorer = ScriptedScorer([60, 63])
        context = make_context(max_attempts=2)
        outcome = await loop_for(scorer).run(context)

        grader = CodeGrader("exhausted_loop")
        grader.add_check("exhausted", lambda o: o.state is LoopStatus.EXHAUSTED)
        grader.add_check("two_attempts", lambda o: o.attempts == 2)
        grader.add_check("history_scores", lambda o: [h.score for h in o.history] == [60, 63])
        grader.add_check("not_passed", lambda o: not o.passed)
        grader.add_check("last_artifact", lambda o: o.final_artifact == "<main>refined attempt 2</main>")
        result = grader.grade(outcome)
        assert result.passed, result.summary()
        assert scorer.calls == 2
        assert context.loop.status is LoopStatus.EXHAUSTED

    @pytest.mark.asyncio
    async def test_converges_on_first_attempt(self, make_context):
        """A first score at the gate converges with one scoring call."""
        scorer = ScriptedScorer([82])
        outcome = await loop_for(scorer).run(make_context())
        assert outcome.state is LoopStatus.CONVERGED
        assert outcome.attempts == 1
        assert outcome.passed
        assert outcome.report.overall_score == 82
        assert scorer.calls == 1

    @pytest.mark.asyncio
    async def test_never_exceeds_budget(self, make_context):
        """Flat low scores run exactly max_attempts scorings, never more."""
        scorer = ScriptedScorer([10])
        context = make_context(max_attempts=5)
        outcome = await loop_for(scorer, max_attempts=5).run(context)
        assert scorer.calls == 5
        assert outcome.attempts == 5
        assert outcome.state is LoopStatus.EXHAUSTED
        assert len(context.loop.history) == context.loop.attempt == 5

    @pytest.mark.asyncio
    async def test_converges_after_improvement(self, make_context):
        """A refined artifact that reaches the gate on attempt 2 converges there."""
        scorer = ScriptedScorer([60, 78, 90])
        outcome = await loop_for(scorer, max_attempts=3).run(make_context(max_attempts=3))
        assert outcome.state is LoopStatus.CONVERGED
        assert outcome.attempts == 2
        assert scorer.calls == 2

    def test_decide(self):
        """Gate first, then budget, then keep iterating."""
        assert decide([HistoryEntry(1, 80, True)], 2, 75) is LoopStatus.CONVERGED
        assert decide([HistoryEntry(1, 60, False)], 1, 75) is LoopStatus.EXHAUSTED
        assert decide([HistoryEntry(1, 60, False)], 3, 75) is LoopStatus.ITERATING
        stalled = [HistoryEntry(1, 60, False), HistoryEntry(2, 61, False)]
        assert decide(stalled, 3, 75) is LoopStatus.ITERATING
        flat = [HistoryEntry(1, 60, False), HistoryEntry(2, 60, False)]
        assert decide(flat, 3, 75) is LoopStatus.ITERATING
        assert decide(flat, 2, 75) is LoopStatus.EXHAUSTED

    def test_min_improvement(self):
        """Expected improvement shrinks with each attempt."""
        assert [min_improvement(a) for a in (1, 2, 3, 7)] == [3, 2, 1, 1]


class TestAbort:
    """Eval: Does a scoring error end the loop cleanly?"""

    @pytest.mark.asyncio
    async def test_scoring_error_keeps_last_scored_artifact(self, make_context):
        """A failure on attempt 2 aborts with attempt 1's artifact and passed=False."""
        scorer = ScriptedScorer([50], fail_on=2)
        context = make_context(max_attempts=3)
        outcome = await loop_for(scorer, max_attempts=3).run(context)

        assert outcome.state is LoopStatus.ABORTED
        assert outcome.attempts == 1
        assert outcome.passed is False
        assert outcome.final_artifact == "<main>refined attempt 1</main>"
        assert outcome.report.overall_score == 50
        assert context.loop.status is LoopStatus.ABORTED
        assert context.loop.current_artifact == outcome.final_artifact
        assert context.styled_artifact == outcome.final_artifact

    @pytest.mark.asyncio
    async def test_scoring_error_on_first_attempt(self, make_context):
        """With nothing scored yet the outcome and the context keep the pre-loop artifact."""
        scorer = ScriptedScorer([90], fail_on=1)
        context = make_context()
        outcome = await loop_for(scorer).run(context)
        assert outcome.state is LoopStatus.ABORTED
        assert outcome.attempts == 0
        assert outcome.report is None
        assert outcome.final_artifact == "<main>draft</main>"
        assert context.loop.current_artifact == "<main>draft</main>"
        assert context.styled_artifact is None
        assert scorer.artifacts == ["<main>refined attempt 1</main>"]


class TestRefinement:
    """Eval: What does the refine stage see, and what happens when it fails?"""

    @pytest.mark.asyncio
    async def test_guidance_reaches_second_refine(self, make_context):
        """After a 60 the next refine gets issues plus fallback guidance for 15 points."""
        refine = NumberedRefine()
        await loop_for(ScriptedScorer([60, 63]), refine=refine).run(make_context())

        first, second = refine.calls
        assert first["guidance"] is None
        assert first["previous_issues"] == []
        assert first["current_artifact"] == "<main>draft</main>"
        assert second["previous_issues"] == ["score 60"]
        assert second["guidance"]["needed_improvement"] == 15
        assert second["guidance"]["attempts_remaining"] == 1
        assert len(second["guidance"]["priority_fixes"]) == 2
        assert second["attempt"] == 2
        assert second["current_artifact"] == "<main>refined attempt 1</main>"

    @pytest.mark.asyncio
    async def test_refine_exception_keeps_current_artifact(self, make_context):
        """A raising refine stage leaves the current artifact to be scored."""
        scorer = ScriptedScorer([90])
        refine = StaticStage(raises=RuntimeError("model overloaded"))
        context = make_context()
        outcome = await loop_for(scorer, refine=refine).run(context)
        assert scorer.artifacts == ["<main>draft</main>"]
        assert outcome.final_artifact == "<main>draft</main>"
        assert context.styled_artifact is None

    @pytest.mark.asyncio
    async def test_refine_failure_result_keeps_current_artifact(self, make_context):
        """A refine result with success=False is treated like no refinement."""
        scorer = ScriptedScorer([90])
        refine = StaticStage(error="empty completion")
        await loop_for(scorer, refine=refine).run(make_context())
        assert scorer.artifacts == ["<main>draft</main>"]

    @pytest.mark.asyncio
    async def test_refine_projection_is_read_only(self, make_context):
        """The refine stage cannot write back into the context through its projection."""
        refine = NumberedRefine()
        context = make_context()
        context.set_specification(dict(SAMPLE_SPECIFICATION))
        await loop_for(ScriptedScorer([90]), refine=refine).run(context)

        projection = refine.calls[0]
        with pytest.raises(TypeError):
            projection["specification"] = {}
        projection["specification"]["title"] = "Changed"
        assert context.specification["title"] == "Portland Smiles"

    def test_guidance_from_failed_rules(self):
        """Failed rules become priority fixes with rule-specific instructions."""
        from pagesmith.scoring.models import CategoryResult, RuleResult, RuleStatus

        report = make_report(40)
        report.categories["LayoutAndStructure"] = CategoryResult(
            category="LayoutAndStructure",
            max_score=1,
            rules=[RuleResult(
                rule_id="responsiveDesign",
                category="LayoutAndStructure",
                text="Pages must be fully responsive",
                status=RuleStatus.FAIL,
                reason="No responsive design patterns detected",
            )],
        )
        guidance = build_guidance(report, 75, attempts_remaining=1)
        assert [f["rule"] for f in guidance.priority_fixes] == ["responsiveDesign"]
        assert len(guidance.specific_instructions["responsiveDesign"]) == 1
        assert "LayoutAndStructure" in guidance.category_instructions
        assert guidance.needed_improvement == 35


class TestGenerationContext:
    """Eval: Does the context enforce write-once fields and the attempt budget?"""

    def test_write_once(self, make_context):
        """A producer field can be written only once."""
        context = make_context()
        context.set_specification({"title": "A"})
        with pytest.raises(ContextWriteError):
            context.set_specification({"title": "B"})
        assert context.specification == {"title": "A"}

    def test_completeness(self):
        """Two of five required fields is 40% complete."""
        context = GenerationContext(GenerationRequest(text=REQUEST_TEXT))
        assert context.completeness_percent() == 0
        context.set_specification({"title": "A"})
        context.set_design({"brand": {}, "colors": {}})
        assert context.completeness_percent() == 40

    def test_projection_carries_only_named_fields(self):
        """A projection holds the request plus the fields asked for."""
        context = GenerationContext(GenerationRequest(text=REQUEST_TEXT, session_id="s1"))
        context.set_specification({"title": "A"})
        context.set_design({"brand": {}, "colors": {}})
        view = context.projection(["specification"])
        assert set(view) == {"request", "specification"}
        assert view["request"]["text"] == REQUEST_TEXT
        assert view["request"]["session_id"] == "s1"

    def test_validation_budget(self):
        """Scoring more often than max_attempts is refused."""
        context = GenerationContext(GenerationRequest(text=REQUEST_TEXT), max_attempts=1)
        context.set_validation(make_report(50))
        with pytest.raises(ContextWriteError):
            context.set_validation(make_report(60))
        assert context.loop.attempt == 1
        assert len(context.loop.history) == 1

    def test_image_artifact_replaces_current(self, make_context):
        """An image-integration payload with artifact text becomes the current artifact."""
        context = make_context()
        context.set_design_implementation({"artifact": "<main>styled</main>"})
        assert context.loop.current_artifact == "<main>draft</main>"
        context.set_image_integration({"artifact": "<main>with images</main>"})
        assert context.loop.current_artifact == "<main>with images</main>"

    def test_snapshot_and_partial(self, make_context):
        """The snapshot flags populated fields; partial carries the stage log."""
        context = make_context()
        context.set_validation(make_report(70))
        snapshot = context.final_state_snapshot()
        assert snapshot["has_artifact"] is True
        assert snapshot["has_specification"] is False
        assert snapshot["validation_score"] == 70
        assert snapshot["attempts"] == 1
        partial = context.partial()
        assert partial["stages_used"] == ["artifact", "scoring"]
        assert partial["validation"]["overall_score"] == 70

    def test_request_identity(self):
        """Requests get a gen_<ms>_<base36> correlation id and reject unknown modes."""
        request = GenerationRequest(text=REQUEST_TEXT)
        assert re.fullmatch(r"gen_\d+_[0-9a-z]{9}", request.correlation_id)
        assert request.correlation_id != GenerationRequest(text=REQUEST_TEXT).correlation_id
        assert GenerationRequest(text=REQUEST_TEXT, mode="quick").quick
        with pytest.raises(ValueError):
            GenerationRequest(text=REQUEST_TEXT, mode="turbo")
