"""
Deterministic stand-ins for producer and scoring stages.

No LLM, no network: each stub returns what it was told to and records the
projections it received so evals can assert on what the pipeline sent.
"""

import asyncio

from pagesmith.errors import ScoringFailure
from pagesmith.llm.client import LLMResponse, TokenUsage
from pagesmith.orchestration.stages import StageResult, StageSet
from pagesmith.scoring.models import Compliance, ValidationReport

SAMPLE_CONTENT = {
    "hero": {
        "title": "Care that fits your schedule",
        "subtitle": "Same-day dental visits across Portland",
        "ctaButtons": ["Book a visit", {"text": "Call the clinic"}],
    },
    "features": [
        {
            "title": "Gentle cleanings",
            "description": "Hygienists trained in anxiety-free techniques for every age",
        },
        {
            "title": "Emergency care",
            "description": "Open evenings and weekends for urgent dental problems",
        },
    ],
    "testimonials": [
        {"quote": "The calmest dentist visit I have ever had.", "author": "Maria Santos"},
    ],
    "stats": [
        {"value": "98%", "label": "Patient satisfaction"},
        {"value": "24/7", "label": "Emergency line"},
    ],
}

SAMPLE_ARTIFACT = """export default function Landing() {
  return (
    <main className="min-h-screen bg-teal-50">
      <section className="px-4 md:px-8 py-12">
        <h1 className="text-3xl md:text-5xl font-bold">Care that fits your schedule</h1>
        <p className="text-lg text-gray-700">Same-day dental visits across Portland</p>
        <button className="bg-teal-600 hover:bg-teal-700 focus:ring-2">Book a visit</button>
        <button className="border border-teal-600 hover:bg-teal-50 focus:ring-2">Call the clinic</button>
      </section>
      <section className="grid md:grid-cols-2 gap-6">
        <article><h3>Gentle cleanings</h3><p>Hygienists trained in anxiety-free techniques for every age</p></article>
        <article><h3>Emergency care</h3><p>Open evenings and weekends for urgent dental problems</p></article>
      </section>
      <blockquote>The calmest dentist visit I have ever had.<cite>Maria Santos</cite></blockquote>
      <dl><dt>98%</dt><dd>Patient satisfaction</dd><dt>24/7</dt><dd>Emergency line</dd></dl>
    </main>
  );
}
"""

SAMPLE_SPECIFICATION = {"title": "Portland Smiles", "industry": "Healthcare", "page_type": "landing"}
SAMPLE_DESIGN = {
    "brand": {"name": "Portland Smiles"},
    "colors": {"primary": "teal-600", "secondary": "teal-50"},
    "typography": {"headingFont": "Inter", "bodyFont": "Inter"},
}
SAMPLE_LAYOUT = {"sections": [{"name": "hero"}, {"name": "features"}, {"name": "stats"}]}

REQUEST_TEXT = "A landing page for a dental clinic in Portland with online booking"


def make_report(score: int, passed: bool | None = None) -> ValidationReport:
    """A gated report with the given canonical score and no failed rules."""
    return ValidationReport(
        overall_score=score,
        rule_score=score,
        passed=score >= 75 if passed is None else passed,
        compliance=Compliance.COMPLIANT if score >= 85 else Compliance.NEEDS_IMPROVEMENT,
        critical_issues=[f"score {score}"],
    )


class StaticStage:
    """Producer stage returning a fixed payload, a failure, or raising."""

    def __init__(self, payload=None, error=None, raises=None, delay=0.0):
        self.payload = payload
        self.error = error
        self.raises = raises
        self.delay = delay
        self.calls = []

    async def __call__(self, projection):
        self.calls.append(projection)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raises is not None:
            raise self.raises
        if self.error is not None:
            return StageResult.fail(self.error)
        return StageResult.ok(self.payload)


class NumberedRefine:
    """Refine stage that tags each artifact with the attempt it was made for."""

    def __init__(self):
        self.calls = []

    async def __call__(self, projection):
        self.calls.append(projection)
        return StageResult.ok({"artifact": f"<main>refined attempt {projection['attempt']}</main>"})


class ScriptedScorer:
    """Scoring stage returning reports with scripted scores, optionally failing."""

    def __init__(self, scores, fail_on=None):
        self.scores = list(scores)
        self.fail_on = fail_on
        self.artifacts = []

    @property
    def calls(self):
        return len(self.artifacts)

    async def __call__(self, artifact, request_metadata, design_metadata, content_payload):
        self.artifacts.append(artifact)
        if self.fail_on == self.calls:
            raise ScoringFailure("scorer exploded")
        score = self.scores[min(self.calls - 1, len(self.scores) - 1)]
        return make_report(score)


def build_stage_set(**overrides) -> StageSet:
    """A StageSet where every stage succeeds, with per-stage overrides."""
    stages = {
        "specification": StaticStage(SAMPLE_SPECIFICATION),
        "design": StaticStage(SAMPLE_DESIGN),
        "content": StaticStage(SAMPLE_CONTENT),
        "layout": StaticStage(SAMPLE_LAYOUT),
        "artifact": StaticStage({"artifact": SAMPLE_ARTIFACT}),
        "refine": NumberedRefine(),
        "scoring": ScriptedScorer([80]),
        "design_implementation": StaticStage({"artifact": SAMPLE_ARTIFACT, "applied": True}),
        "image_integration": StaticStage({"images": []}),
    }
    stages.update(overrides)
    return StageSet(**stages)


class FakeCompletionClient:
    """Completion client answering JSON stages from the samples and code stages with the sample artifact."""

    PAYLOADS = {
        "specification": SAMPLE_SPECIFICATION,
        "design": SAMPLE_DESIGN,
        "content": SAMPLE_CONTENT,
        "layout": SAMPLE_LAYOUT,
    }

    def __init__(self):
        self.stages = []
        self.total_usage = TokenUsage()

    async def complete_json(self, prompt, stage="default", temperature=0.3, max_tokens=0):
        self.stages.append(stage)
        return dict(self.PAYLOADS[stage])

    async def call(self, prompt, stage="default", temperature=0.5, max_tokens=0):
        self.stages.append(stage)
        return LLMResponse(content=f"```jsx\n{SAMPLE_ARTIFACT}```", provider="fake")
