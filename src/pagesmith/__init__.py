"""
pagesmith -- request-to-UI generation pipeline with rule-based scoring.

  - orchestration: PipelineOrchestrator, GenerationContext, ConvergenceLoop
  - scoring: RuleEngine and ArtifactValidator (the combined gate)
  - content: content-utilization analysis
  - stages / llm: default completion-backed producer stages
"""

__version__ = "0.3.0"
