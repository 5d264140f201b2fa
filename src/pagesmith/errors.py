"""
Error taxonomy for the generation pipeline.

  StageFailure       -- a required stage failed; fatal, the pipeline aborts
  EnrichmentFailure  -- a best-effort stage failed; logged, pipeline continues
  ScoringFailure     -- the scoring stage raised; the loop ends ABORTED
  MalformedPayload   -- a content payload had an unexpected shape; skipped
  ContextWriteError  -- a write-once context field was written twice
  CatalogError       -- a rule/profile/pattern catalog failed to load
  CompletionError    -- the completion service failed or returned nothing usable
"""


class PagesmithError(Exception):
    """Base class for all pipeline errors."""


class StageFailure(PagesmithError):
    """A required producer stage returned success=False or raised."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage} stage failed: {reason}")
        self.stage = stage
        self.reason = reason


class EnrichmentFailure(PagesmithError):
    """A best-effort stage failed. Never propagates past the scheduler."""

    def __init__(self, stage: str, reason: str):
        super().__init__(f"{stage} enrichment failed: {reason}")
        self.stage = stage
        self.reason = reason


class ScoringFailure(PagesmithError):
    """The scoring stage raised while evaluating an artifact."""


class MalformedPayload(PagesmithError, ValueError):
    """A content payload element did not match any known shape."""


class ContextWriteError(PagesmithError, RuntimeError):
    """A write-once GenerationContext field was written a second time."""


class CatalogError(PagesmithError, ValueError):
    """A data catalog (rules, industry profiles, template patterns) is invalid."""


class CompletionError(PagesmithError):
    """The text-completion service failed or returned an unusable response."""
